"""
Realtime Routes

WS /ws?token=<jwt> - Notification and application status stream

Client frames:
    {"action": "join" | "leave", "room": "application_<id>"}
    {"action": "ping"}

Only the applicant, the hiring employer and admins may join an application room.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from jobboard.core.auth import get_user_from_token
from jobboard.db.postgres import fetch_one
from jobboard.services.realtime import manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])

JOINABLE_PREFIX = "application_"


def can_join(user: dict, room: str) -> bool:
    """Application rooms are open to the applicant, the hiring employer and admins."""
    application_id = room[len(JOINABLE_PREFIX):]
    if not application_id.isdigit():
        return False
    if user["role"] == "ADMIN":
        return True
    row = fetch_one(
        """
        SELECT js.user_id AS seeker_user_id, e.user_id AS employer_user_id
        FROM applications a
        JOIN jobs j ON a.job_id = j.id
        JOIN employers e ON j.employer_id = e.id
        LEFT JOIN job_seekers js ON a.job_seeker_id = js.id
        WHERE a.id = :id
        """,
        {"id": int(application_id)}
    )
    return bool(row) and user["user_id"] in (row["seeker_user_id"], row["employer_user_id"])


def initial_rooms(user: dict) -> list:
    rooms = [f"user_{user['user_id']}"]
    if user["role"] == "JOB_SEEKER":
        profile = fetch_one("SELECT id FROM job_seekers WHERE user_id = :uid", {"uid": user["user_id"]})
        if profile:
            rooms.append(f"job_seeker_{profile['id']}")
    elif user["role"] == "EMPLOYER":
        profile = fetch_one("SELECT id FROM employers WHERE user_id = :uid", {"uid": user["user_id"]})
        if profile:
            rooms.append(f"employer_{profile['id']}")
    return rooms


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str = ""):
    user = get_user_from_token(token)
    if not user or user["deleted"]:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    rooms = initial_rooms(user)
    await manager.connect(websocket, rooms)
    await websocket.send_json({"event": "connected", "data": {"user_id": user["user_id"], "rooms": rooms}})
    logger.info("Websocket connected for user %s", user["user_id"])

    try:
        while True:
            message = await websocket.receive_json()
            action = message.get("action") if isinstance(message, dict) else None
            room = message.get("room", "") if isinstance(message, dict) else ""

            if action == "ping":
                await websocket.send_json({"event": "pong", "data": {}})
            elif action in ("join", "leave") and isinstance(room, str) and room.startswith(JOINABLE_PREFIX):
                if action == "join":
                    if not can_join(user, room):
                        await websocket.send_json({"event": "error", "data": {"message": "Not allowed to join this room"}})
                        continue
                    manager.join(websocket, room)
                    event = "joined"
                else:
                    manager.leave(websocket, room)
                    event = "left"
                await websocket.send_json({"event": event, "data": {"room": room}})
            else:
                await websocket.send_json({"event": "error", "data": {"message": "Unsupported message"}})
    except WebSocketDisconnect:
        logger.info("Websocket disconnected for user %s", user["user_id"])
    finally:
        manager.disconnect(websocket)
