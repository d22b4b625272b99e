"""Chat session and message rows."""

from datetime import datetime, timezone

from consultai import db
from consultai.models import ChatMessage, ChatSession

SESSIONS_TABLE = "chat_sessions"
MESSAGES_TABLE = "messages"
STATUSES = ("in_progress", "completed", "scheduled")


def create_session(user_id: str) -> ChatSession:
    response = db.get_client().table(SESSIONS_TABLE).insert({
        "user_id": user_id,
        "status": "in_progress",
    }).execute()
    return ChatSession.model_validate(db.first_row(response.data, "Created session"))


def update_session(
    session_id: str,
    status: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
) -> ChatSession:
    changes = {}
    if status is not None:
        if status not in STATUSES:
            raise ValueError(f"Unknown session status: {status}")
        changes["status"] = status
        if status == "completed":
            changes["finished_at"] = datetime.now(timezone.utc).isoformat()
    if latitude is not None and longitude is not None:
        changes["latitude"] = latitude
        changes["longitude"] = longitude
    if not changes:
        return get_session(session_id)

    response = db.get_client().table(SESSIONS_TABLE).update(changes).eq("id", session_id).execute()
    return ChatSession.model_validate(db.first_row(response.data, f"Session {session_id}"))


def get_session(session_id: str) -> ChatSession:
    response = db.get_client().table(SESSIONS_TABLE).select("*").eq("id", session_id).limit(1).execute()
    return ChatSession.model_validate(db.first_row(response.data, f"Session {session_id}"))


def list_sessions(user_id: str) -> list[ChatSession]:
    response = (
        db.get_client()
        .table(SESSIONS_TABLE)
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    return [ChatSession.model_validate(r) for r in response.data or []]


def add_messages(session_id: str, messages: list[ChatMessage]) -> None:
    if not messages:
        return
    rows = [
        {
            "session_id": session_id,
            "sender": m.role,
            "message": m.content,
            "timestamp": m.timestamp,
            "message_type": "text",
        }
        for m in messages
    ]
    db.get_client().table(MESSAGES_TABLE).insert(rows).execute()


def get_messages(session_id: str) -> list[dict]:
    response = (
        db.get_client()
        .table(MESSAGES_TABLE)
        .select("*")
        .eq("session_id", session_id)
        .order("timestamp")
        .execute()
    )
    return response.data or []
