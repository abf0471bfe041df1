"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from jobboard.api.routes.auth_routes import router as auth_router
from jobboard.api.routes.job_routes import router as job_router
from jobboard.api.routes.application_routes import router as application_router
from jobboard.api.routes.job_seeker_routes import router as job_seeker_router
from jobboard.api.routes.employer_routes import router as employer_router
from jobboard.api.routes.subscription_routes import router as subscription_router
from jobboard.api.routes.payment_routes import router as payment_router
from jobboard.api.routes.gdpr_routes import router as gdpr_router
from jobboard.api.routes.admin_routes import router as admin_router
from jobboard.api.routes.job_alert_routes import router as job_alert_router
from jobboard.api.routes.public_routes import router as public_router
from jobboard.api.routes.user_routes import router as user_router
from jobboard.api.routes.upload_routes import router as upload_router
from jobboard.api.routes.realtime_routes import router as realtime_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(job_router)
api_router.include_router(application_router)
api_router.include_router(job_seeker_router)
api_router.include_router(employer_router)
api_router.include_router(subscription_router)
api_router.include_router(payment_router)
api_router.include_router(gdpr_router)
api_router.include_router(admin_router)
api_router.include_router(job_alert_router)
api_router.include_router(public_router)
api_router.include_router(user_router)
api_router.include_router(upload_router)
api_router.include_router(realtime_router)
