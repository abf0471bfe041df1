"""
User Search Routes (any signed-in user)

GET /user/saved-searches - List saved searches
POST /user/saved-searches - Save a search
DELETE /user/saved-searches/{search_id} - Delete a saved search
GET /user/recent-searches - Last 10 searches from the past 30 days
POST /user/recent-searches - Record a search
"""

import json
from datetime import datetime, timedelta

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text

from jobboard.db.postgres import get_db_session, execute_raw_sql
from jobboard.core.auth import get_current_user
from jobboard.schemas.schemas import SavedSearchCreate, RecentSearchCreate, MessageResponse

router = APIRouter(prefix="/user", tags=["User Searches"])

RECENT_SEARCH_DAYS = 30
RECENT_SEARCH_LIMIT = 10
RECENT_SEARCH_KEEP = 20


def _decode_filters(rows: list) -> list:
    for row in rows:
        row["filters"] = json.loads(row["filters"]) if row.get("filters") else {}
    return rows


@router.get("/saved-searches")
async def list_saved_searches(user: dict = Depends(get_current_user)):
    rows = execute_raw_sql(
        """
        SELECT id, name, query, location, filters, alert_enabled, alert_frequency, created_at
        FROM saved_searches WHERE user_id = :uid ORDER BY created_at DESC, id DESC
        """,
        {"uid": user["user_id"]}
    )
    return {"saved_searches": _decode_filters(rows)}


@router.post("/saved-searches", status_code=201)
async def create_saved_search(data: SavedSearchCreate, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        search_id = db.execute(
            text("""
                INSERT INTO saved_searches (user_id, name, query, location, filters, alert_enabled, alert_frequency)
                VALUES (:uid, :name, :query, :location, :filters, :alert_enabled, :frequency)
                RETURNING id
            """),
            {
                "uid": user["user_id"], "name": data.name, "query": data.query, "location": data.location,
                "filters": json.dumps(data.filters), "alert_enabled": data.alert_enabled,
                "frequency": (data.alert_frequency or "DAILY").upper(),
            }
        ).fetchone()[0]
    return {"message": "Search saved", "id": search_id}


@router.delete("/saved-searches/{search_id}", response_model=MessageResponse)
async def delete_saved_search(search_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        result = db.execute(
            text("DELETE FROM saved_searches WHERE id = :id AND user_id = :uid"),
            {"id": search_id, "uid": user["user_id"]}
        )
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Saved search not found")
    return MessageResponse(message="Saved search deleted")


@router.get("/recent-searches")
async def list_recent_searches(user: dict = Depends(get_current_user)):
    rows = execute_raw_sql(
        f"""
        SELECT id, query, location, filters, created_at FROM recent_searches
        WHERE user_id = :uid AND created_at >= :since
        ORDER BY created_at DESC, id DESC LIMIT {RECENT_SEARCH_LIMIT}
        """,
        {"uid": user["user_id"], "since": datetime.utcnow() - timedelta(days=RECENT_SEARCH_DAYS)}
    )
    return {"recent_searches": _decode_filters(rows)}


@router.post("/recent-searches", status_code=201)
async def record_recent_search(data: RecentSearchCreate, user: dict = Depends(get_current_user)):
    """Same query and location replaces the older entry; only the newest 20 are kept."""
    query = (data.query or "").strip()
    location = (data.location or "").strip()
    if not query and not location:
        raise HTTPException(status_code=400, detail="Query or location is required")

    uid = user["user_id"]
    with get_db_session() as db:
        db.execute(
            text("DELETE FROM recent_searches WHERE user_id = :uid AND query = :query AND location = :location"),
            {"uid": uid, "query": query, "location": location}
        )
        db.execute(
            text("""
                INSERT INTO recent_searches (user_id, query, location, filters, created_at)
                VALUES (:uid, :query, :location, :filters, :now)
            """),
            {
                "uid": uid, "query": query, "location": location,
                "filters": json.dumps(data.filters) if data.filters else None, "now": datetime.utcnow(),
            }
        )
        db.execute(
            text(f"""
                DELETE FROM recent_searches WHERE user_id = :uid AND id NOT IN (
                    SELECT id FROM recent_searches WHERE user_id = :uid
                    ORDER BY created_at DESC, id DESC LIMIT {RECENT_SEARCH_KEEP}
                )
            """),
            {"uid": uid}
        )
    return {"message": "Search recorded"}
