"""
Cyprus Jobs - Main Application

FastAPI backend with:
- PostgreSQL for structured data (users, jobs, applications, payments, GDPR logs)
- MongoDB for documents (CV text, search events)
- Stripe for payments, SMTP/HTTP gateways for email and SMS
- JWT authentication
- Websocket relay for live notifications

Run: uvicorn jobboard.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobboard import __version__
from jobboard.api.routes import api_router
from jobboard.core.config import get_settings
from jobboard.core.errors import unhandled_exception_handler
from jobboard.core.logging_config import setup_logging
from jobboard.db.mongodb import init_mongo_indexes
from jobboard.db.schema import init_db

settings = get_settings()
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Cyprus Jobs",
    description="""
    Job board for Cyprus.

    ## Features
    - **Authentication**: JWT-based auth for job seekers, employers and admins
    - **Job seekers**: Profile, skills, CV upload, saved jobs, job alerts
    - **Employers**: Job postings, application review, analytics, subscriptions
    - **Payments**: Stripe payment intents and webhook fulfilment
    - **GDPR**: Consent tracking, data export, account deletion
    - **Realtime**: Websocket notifications

    ## Databases
    - PostgreSQL: Structured data
    - MongoDB: Documents (CV text, search events)
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed input is a 400, like every other client error here."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


app.add_exception_handler(Exception, unhandled_exception_handler)

# Include API routes
app.include_router(api_router, prefix="/api")


# Startup event
@app.on_event("startup")
async def startup_event():
    """Create missing tables and MongoDB indexes."""
    init_db()
    try:
        init_mongo_indexes()
        logger.info("MongoDB indexes initialized")
    except Exception as e:
        logger.warning("MongoDB index initialization failed: %s", e)


@app.get("/", tags=["Health"])
async def root():
    return {"status": "healthy", "app": "Cyprus Jobs", "docs": "/docs"}


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    from jobboard.db.postgres import test_postgres_connection
    from jobboard.db.mongodb import test_mongo_connection

    return {
        "status": "healthy",
        "postgres": "connected" if test_postgres_connection() else "disconnected",
        "mongodb": "connected" if test_mongo_connection() else "disconnected"
    }
