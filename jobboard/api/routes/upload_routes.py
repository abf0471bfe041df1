"""
Upload Routes

GET /uploads/cvs/{filename} - Download a CV (owner, employer it was sent to, or admin)
"""

import os

from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import FileResponse

from jobboard.db.postgres import fetch_one
from jobboard.core.auth import get_current_user
from jobboard.utils.file_upload import CONTENT_TYPES, cv_owner_id, cv_path, get_file_extension

router = APIRouter(prefix="/uploads", tags=["Uploads"])


def can_access_cv(user: dict, filename: str) -> bool:
    if user["role"] == "ADMIN":
        return True
    if cv_owner_id(filename) == user["user_id"]:
        return True
    if user["role"] == "EMPLOYER":
        row = fetch_one(
            """
            SELECT a.id FROM applications a
            JOIN jobs j ON a.job_id = j.id JOIN employers e ON j.employer_id = e.id
            WHERE e.user_id = :uid AND a.cv_url = :url
            """,
            {"uid": user["user_id"], "url": f"/api/uploads/cvs/{filename}"}
        )
        return row is not None
    return False


@router.get("/cvs/{filename}")
async def download_cv(filename: str, user: dict = Depends(get_current_user)):
    path = cv_path(filename)
    if not can_access_cv(user, filename):
        raise HTTPException(status_code=403, detail="Access denied")
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="File not found")

    media_type = CONTENT_TYPES.get(get_file_extension(filename), "application/octet-stream")
    return FileResponse(path, media_type=media_type, filename=filename)
