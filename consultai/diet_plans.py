"""Stored diet plans, one per report."""

from consultai import db, gemini
from consultai.models import DietPlan, StoredDietPlan, StoredReport

TABLE = "diet_plans"


def get_diet_plan_by_report_id(report_id: str) -> StoredDietPlan | None:
    response = db.get_client().table(TABLE).select("*").eq("report_id", report_id).limit(1).execute()
    if not response.data:
        return None
    return StoredDietPlan.model_validate(response.data[0])


def create_diet_plan(report: StoredReport, user_id: str) -> StoredDietPlan:
    """Return the report's diet plan, generating and storing one if it has none yet."""
    existing = get_diet_plan_by_report_id(report.id)
    if existing is not None:
        return existing

    data = report.report_data
    details = data.basic_details
    diet = gemini.generate_diet_plan(
        condition=data.estimated_condition,
        weight=details.weight if details else None,
        height=details.height if details else None,
        allergies=details.allergies if details else [],
        medications=[m.model_dump() for m in data.medications],
    )

    response = db.get_client().table(TABLE).insert({
        "report_id": report.id,
        "user_id": user_id,
        "diet_data": diet.model_dump(by_alias=True),
    }).execute()
    return StoredDietPlan.model_validate(db.first_row(response.data, "Stored diet plan"))


def get_user_diet_plans(user_id: str) -> list[StoredDietPlan]:
    response = (
        db.get_client()
        .table(TABLE)
        .select("*, reports(*)")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    return [StoredDietPlan.model_validate(r) for r in response.data or []]


def update_diet_plan(plan_id: str, diet_data: DietPlan) -> StoredDietPlan:
    response = (
        db.get_client()
        .table(TABLE)
        .update({"diet_data": diet_data.model_dump(by_alias=True)})
        .eq("id", plan_id)
        .execute()
    )
    return StoredDietPlan.model_validate(db.first_row(response.data, f"Diet plan {plan_id}"))
