"""Profiles, basic information and dashboard counts."""

from datetime import datetime, timezone

from consultai import db
from consultai.models import BasicInformation, Profile, ProfileUpdate


def get_profile(user_id: str) -> Profile:
    response = db.get_client().table("profiles").select("*").eq("id", user_id).limit(1).execute()
    return Profile.model_validate(db.first_row(response.data, f"Profile {user_id}"))


def update_profile(user_id: str, changes: ProfileUpdate) -> Profile:
    data = {k: v for k, v in changes.model_dump().items() if v is not None}
    data["updated_at"] = datetime.now(timezone.utc).isoformat()
    response = db.get_client().table("profiles").update(data).eq("id", user_id).execute()
    return Profile.model_validate(db.first_row(response.data, f"Profile {user_id}"))


def get_basic_information(user_id: str) -> BasicInformation:
    response = db.get_client().table("basic_information").select("*").eq("user_id", user_id).limit(1).execute()
    return BasicInformation.model_validate(db.first_row(response.data, f"Basic information for {user_id}"))


def upsert_basic_information(info: BasicInformation) -> BasicInformation:
    row = info.model_dump()
    row["updated_at"] = datetime.now(timezone.utc).isoformat()
    response = db.get_client().table("basic_information").upsert(row, on_conflict="user_id").execute()
    return BasicInformation.model_validate(db.first_row(response.data, "Stored basic information"))


def dashboard_counts(user_id: str) -> dict:
    client = db.get_client()
    counts = {}
    for key, table in (("sessions", "chat_sessions"), ("reports", "reports"), ("assessments", "assessments")):
        response = client.table(table).select("id", count="exact").eq("user_id", user_id).execute()
        counts[key] = response.count if response.count is not None else len(response.data or [])
    return counts
