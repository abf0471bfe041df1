"""
Public Routes (no authentication)

GET /health - Liveness
GET /stats - Platform statistics
GET /skills - Skill catalogue
GET /companies - Company directory
POST /newsletter/subscribe - Newsletter signup
GET /search/suggestions - Typeahead for jobs, skills, companies, locations
GET /analytics/search - Popular searches and job market breakdown
"""

import json
import logging
import math
import re
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from sqlalchemy import text

from jobboard import __version__
from jobboard.db.postgres import get_db_session, execute_raw_sql, fetch_one
from jobboard.services.audit_service import log_audit
from jobboard.services.job_service import LIVE_JOB_CONDITION
from jobboard.services.mongo_service import get_search_event_service
from jobboard.schemas.schemas import NewsletterSubscribe

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Public"])

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

TIMEFRAME_DAYS = {"7d": 7, "30d": 30, "90d": 90}

COMPANY_SORTS = {
    "name": "e.company_name ASC",
    "jobs": "active_jobs DESC, e.company_name ASC",
    "date": "e.created_at DESC",
}


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "message": "Cyprus Jobs API is running",
        "timestamp": datetime.utcnow(),
        "version": __version__,
    }


@router.get("/stats")
async def platform_stats():
    now = datetime.utcnow()
    params = {"now": now, "month_ago": now - timedelta(days=30), "week_ago": now - timedelta(days=7), "flag": True}

    def count(sql: str) -> int:
        return fetch_one(sql, params)["n"]

    active_jobs = count(f"SELECT COUNT(*) AS n FROM jobs j WHERE {LIVE_JOB_CONDITION}")
    recent_applications = count("SELECT COUNT(*) AS n FROM applications WHERE applied_at >= :month_ago")

    jobs_by_type = execute_raw_sql(
        f"SELECT j.type, COUNT(*) AS count FROM jobs j WHERE {LIVE_JOB_CONDITION} GROUP BY j.type ORDER BY count DESC",
        params
    )
    top_locations = execute_raw_sql(
        f"SELECT j.location, COUNT(*) AS count FROM jobs j WHERE {LIVE_JOB_CONDITION}"
        " GROUP BY j.location ORDER BY count DESC, j.location LIMIT 5",
        params
    )

    return {
        "overview": {
            "total_jobs": count("SELECT COUNT(*) AS n FROM jobs"),
            "active_jobs": active_jobs,
            "total_companies": count("SELECT COUNT(*) AS n FROM employers"),
            "total_job_seekers": count("SELECT COUNT(*) AS n FROM job_seekers"),
            "success_rate": round(recent_applications / active_jobs * 100) if active_jobs else 0,
        },
        "featured": {
            "featured_jobs": count(f"SELECT COUNT(*) AS n FROM jobs j WHERE {LIVE_JOB_CONDITION} AND j.featured = :flag"),
            "urgent_jobs": count(f"SELECT COUNT(*) AS n FROM jobs j WHERE {LIVE_JOB_CONDITION} AND j.urgent = :flag"),
        },
        "activity": {
            "recent_applications": recent_applications,
            "new_jobs_this_week": count(
                "SELECT COUNT(*) AS n FROM jobs WHERE created_at >= :week_ago AND status = 'PUBLISHED'"
            ),
            "new_companies_this_week": count("SELECT COUNT(*) AS n FROM employers WHERE created_at >= :week_ago"),
            "new_applications_this_week": count("SELECT COUNT(*) AS n FROM applications WHERE applied_at >= :week_ago"),
        },
        "distribution": {
            "jobs_by_type": jobs_by_type,
            "top_locations": top_locations,
        },
    }


@router.get("/skills")
async def list_skills(search: Optional[str] = None, limit: int = Query(100, ge=1, le=500)):
    sql = """
        SELECT sk.id, sk.name, sk.category,
               (SELECT COUNT(*) FROM job_skills js WHERE js.skill_id = sk.id) AS job_count
        FROM skills sk
    """
    params = {"limit": limit}
    if search and search.strip():
        sql += " WHERE LOWER(sk.name) LIKE :search"
        params["search"] = f"%{search.strip().lower()}%"
    return {"skills": execute_raw_sql(sql + " ORDER BY sk.name LIMIT :limit", params)}


@router.get("/companies")
async def list_companies(
    search: Optional[str] = None,
    industry: Optional[str] = None,
    location: Optional[str] = None,
    sort_by: str = "name",
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
):
    where = " WHERE u.deleted_at IS NULL"
    params = {"now": datetime.utcnow()}
    if search and search.strip():
        where += " AND (LOWER(e.company_name) LIKE :search OR LOWER(COALESCE(e.description, '')) LIKE :search)"
        params["search"] = f"%{search.strip().lower()}%"
    if industry and industry.strip():
        where += " AND LOWER(e.industry) LIKE :industry"
        params["industry"] = f"%{industry.strip().lower()}%"
    if location and location.strip():
        where += " AND LOWER(e.city) LIKE :location"
        params["location"] = f"%{location.strip().lower()}%"

    base = " FROM employers e JOIN users u ON e.user_id = u.id"
    total = fetch_one("SELECT COUNT(*) AS n" + base + where, params)["n"]
    params.update({"limit": limit, "offset": (page - 1) * limit})
    companies = execute_raw_sql(
        f"""
        SELECT e.id, e.company_name, e.description, e.website, e.industry, e.size, e.logo, e.city, e.country,
               e.created_at,
               (SELECT COUNT(*) FROM jobs j WHERE j.employer_id = e.id AND {LIVE_JOB_CONDITION}) AS active_jobs
        """ + base + where + f" ORDER BY {COMPANY_SORTS.get(sort_by, COMPANY_SORTS['name'])} LIMIT :limit OFFSET :offset",
        params
    )
    return {
        "companies": companies,
        "pagination": {"total": total, "page": page, "limit": limit, "total_pages": math.ceil(total / limit) if total else 0},
    }


@router.post("/newsletter/subscribe", status_code=201)
async def subscribe_newsletter(data: NewsletterSubscribe, request: Request):
    email = data.email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise HTTPException(status_code=400, detail="Invalid email address")

    preferences = json.dumps(data.preferences) if data.preferences is not None else None
    with get_db_session() as db:
        existing = db.execute(
            text("SELECT id, active FROM newsletter_subscribers WHERE email = :email"), {"email": email}
        ).fetchone()
        if existing and existing[1]:
            raise HTTPException(status_code=409, detail="Email is already subscribed")

        if existing:
            db.execute(
                text("""
                    UPDATE newsletter_subscribers SET active = :on, name = COALESCE(:name, name),
                        preferences = COALESCE(:prefs, preferences), subscribed_at = :now, unsubscribed_at = NULL
                    WHERE id = :id
                """),
                {"on": True, "name": data.name, "prefs": preferences, "now": datetime.utcnow(), "id": existing[0]}
            )
            subscriber_id, message = existing[0], "Subscription reactivated"
        else:
            subscriber_id = db.execute(
                text("""
                    INSERT INTO newsletter_subscribers (email, name, preferences, active)
                    VALUES (:email, :name, :prefs, :on) RETURNING id
                """),
                {"email": email, "name": data.name, "prefs": preferences, "on": True}
            ).fetchone()[0]
            message = "Successfully subscribed to newsletter"

        log_audit(
            None, "NEWSLETTER_SUBSCRIBED", "NewsletterSubscriber", subscriber_id,
            changes={"email": email}, request=request, db=db,
        )

    return {"message": message, "email": email}


@router.get("/search/suggestions")
async def search_suggestions(
    q: str = "",
    type: str = "all",
    limit: int = Query(10, ge=1, le=50),
):
    query = q.strip()
    if len(query) < 2:
        return {"suggestions": [], "message": "Query too short. Minimum 2 characters required."}

    params = {"q": f"%{query.lower()}%", "limit": limit, "now": datetime.utcnow()}
    kinds = {"jobs", "skills", "companies", "locations"} if type == "all" else {type}

    jobs = execute_raw_sql(
        f"""
        SELECT j.id, j.title, j.location, j.type, e.company_name
        FROM jobs j JOIN employers e ON j.employer_id = e.id
        WHERE {LIVE_JOB_CONDITION} AND (LOWER(j.title) LIKE :q OR LOWER(j.description) LIKE :q)
        ORDER BY j.featured DESC, j.urgent DESC, j.created_at DESC LIMIT :limit
        """,
        params
    ) if "jobs" in kinds else []
    skills = execute_raw_sql(
        """
        SELECT sk.id, sk.name, sk.category,
               (SELECT COUNT(*) FROM job_skills js WHERE js.skill_id = sk.id) AS usage_count
        FROM skills sk
        WHERE LOWER(sk.name) LIKE :q OR LOWER(COALESCE(sk.category, '')) LIKE :q
        ORDER BY sk.name LIMIT :limit
        """,
        params
    ) if "skills" in kinds else []
    companies = execute_raw_sql(
        f"""
        SELECT e.id, e.company_name, e.industry, e.logo,
               (SELECT COUNT(*) FROM jobs j WHERE j.employer_id = e.id AND {LIVE_JOB_CONDITION}) AS active_jobs
        FROM employers e
        WHERE LOWER(e.company_name) LIKE :q OR LOWER(COALESCE(e.industry, '')) LIKE :q
        ORDER BY e.company_name LIMIT :limit
        """,
        params
    ) if "companies" in kinds else []
    locations = execute_raw_sql(
        f"""
        SELECT j.location, COUNT(*) AS job_count FROM jobs j
        WHERE {LIVE_JOB_CONDITION} AND LOWER(j.location) LIKE :q
        GROUP BY j.location ORDER BY job_count DESC, j.location LIMIT :limit
        """,
        params
    ) if "locations" in kinds else []

    return {
        "suggestions": {
            "jobs": [
                {"id": j["id"], "text": j["title"], "type": "job", "subtitle": f"{j['company_name']} - {j['location']}",
                 "url": f"/jobs/{j['id']}", "metadata": {"location": j["location"], "type": j["type"],
                                                         "company": j["company_name"]}}
                for j in jobs
            ],
            "skills": [
                {"id": s["id"], "text": s["name"], "type": "skill",
                 "metadata": {"category": s["category"], "usage_count": s["usage_count"]}}
                for s in skills
            ],
            "companies": [
                {"id": c["id"], "text": c["company_name"], "type": "company", "url": f"/companies/{c['id']}",
                 "metadata": {"industry": c["industry"], "logo": c["logo"], "active_jobs": c["active_jobs"]}}
                for c in companies
            ],
            "locations": [
                {"text": loc["location"], "type": "location", "metadata": {"job_count": loc["job_count"]}}
                for loc in locations
            ],
        },
        "query": query,
        "total_results": {
            "jobs": len(jobs), "skills": len(skills), "companies": len(companies), "locations": len(locations),
        },
    }


@router.get("/analytics/search")
async def search_analytics(timeframe: str = "7d"):
    """
    Search behaviour from MongoDB search_events, plus where the
    posted jobs are. A Mongo outage leaves the search half empty.
    """
    days = TIMEFRAME_DAYS.get(timeframe, 7)
    since = datetime.utcnow() - timedelta(days=days)

    searches = {"total_searches": 0, "popular_locations": [], "popular_job_types": [],
                "popular_industries": [], "trending_skills": [], "popular_queries": []}
    try:
        events = get_search_event_service()
        searches = {
            "total_searches": events.count_since(days),
            "popular_locations": events.top_values("location", days),
            "popular_job_types": events.top_values("job_types", days),
            "popular_industries": events.top_values("industries", days),
            "trending_skills": events.top_values("skills", days),
            "popular_queries": events.top_values("query", days),
        }
    except Exception as e:
        logger.warning("Search analytics unavailable from MongoDB: %s", e)

    params = {"since": since}
    job_market = {
        "locations": execute_raw_sql(
            "SELECT location AS value, COUNT(*) AS count FROM jobs WHERE status = 'PUBLISHED' AND created_at >= :since"
            " GROUP BY location ORDER BY count DESC, location LIMIT 10",
            params
        ),
        "job_types": execute_raw_sql(
            "SELECT type AS value, COUNT(*) AS count FROM jobs WHERE status = 'PUBLISHED' AND created_at >= :since"
            " GROUP BY type ORDER BY count DESC",
            params
        ),
        "skills": execute_raw_sql(
            """
            SELECT sk.name AS value, COUNT(*) AS count
            FROM job_skills js JOIN skills sk ON js.skill_id = sk.id JOIN jobs j ON js.job_id = j.id
            WHERE j.status = 'PUBLISHED' AND j.created_at >= :since
            GROUP BY sk.name ORDER BY count DESC, sk.name LIMIT 10
            """,
            params
        ),
    }

    return {"timeframe": timeframe if timeframe in TIMEFRAME_DAYS else "7d", **searches, "job_market": job_market}
