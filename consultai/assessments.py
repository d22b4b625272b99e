"""Health assessments — questionnaires, Gemini analysis and stored results."""

from datetime import datetime, timezone

from consultai import db, gemini
from consultai.models import Assessment

TABLE = "assessments"

ASSESSMENT_TYPES = {
    "heart": {"title": "Heart Health Assessment", "icon": "heart", "color": "#e11d48"},
    "brain": {"title": "Cognitive Health Assessment", "icon": "brain", "color": "#7c3aed"},
    "mental": {"title": "Mental Wellbeing Assessment", "icon": "smile", "color": "#0ea5e9"},
    "depression": {"title": "Depression Screening", "icon": "alert-triangle", "color": "#f59e0b"},
    "vitals": {"title": "Vitals Check", "icon": "activity", "color": "#04724d"},
}
DEFAULT_STYLE = {"title": "Health Assessment", "icon": "activity", "color": "#64748b"}

RISK_LEVEL_COLORS = {
    "low": "green",
    "moderate": "yellow",
    "high": "red",
}

QUESTIONNAIRE_SECTIONS = [
    {
        "id": "general",
        "title": "General Health Assessment",
        "priority": 1,
        "questions": [
            {"id": "name", "question": "What is your full name?", "type": "text", "required": True},
            {"id": "age", "question": "How old are you?", "type": "text", "required": True},
            {"id": "gender", "question": "What is your gender?", "type": "select",
             "options": ["Male", "Female", "Other"], "required": True},
            {"id": "location", "question": "Where are you located?", "type": "text", "required": True},
        ],
    },
    {
        "id": "lifestyle",
        "title": "Lifestyle Information",
        "priority": 2,
        "questions": [
            {"id": "exercise", "question": "How often do you exercise?", "type": "select",
             "options": ["Daily", "Few times a week", "Rarely", "Never"]},
            {"id": "diet", "question": "Describe your diet", "type": "multiselect",
             "options": ["Vegetarian", "Vegan", "Paleo", "Ketogenic", "Mediterranean", "Other"]},
            {"id": "sleep", "question": "How many hours of sleep do you get on average?", "type": "text"},
        ],
    },
    {
        "id": "medical_history",
        "title": "Medical History",
        "priority": 3,
        "questions": [
            {"id": "conditions", "question": "Do you have any pre-existing medical conditions?",
             "type": "multiselect",
             "options": ["Diabetes", "Hypertension", "Asthma", "Heart Disease", "Arthritis", "None"]},
            {"id": "allergies", "question": "Do you have any allergies?", "type": "multiselect",
             "options": ["Pollen", "Dust", "Food", "Medications", "None"]},
            {"id": "medications", "question": "Are you currently taking any medications?", "type": "text"},
        ],
    },
    {
        "id": "symptoms",
        "title": "Current Symptoms",
        "priority": 4,
        "questions": [
            {"id": "symptom_fever", "question": "Do you have a fever?", "type": "select", "options": ["Yes", "No"]},
            {"id": "symptom_cough", "question": "Do you have a cough?", "type": "select", "options": ["Yes", "No"]},
            {"id": "symptom_fatigue", "question": "Do you feel unusually tired or fatigued?", "type": "select",
             "options": ["Yes", "No"]},
        ],
    },
]


def assessment_style(assessment_type: str | None) -> dict:
    return ASSESSMENT_TYPES.get(assessment_type or "", DEFAULT_STYLE)


def find_section_by_id(section_id: str) -> dict | None:
    return next((s for s in QUESTIONNAIRE_SECTIONS if s["id"] == section_id), None)


def find_question_by_id(section_id: str, question_id: str) -> dict | None:
    section = find_section_by_id(section_id)
    if section is None:
        return None
    return next((q for q in section["questions"] if q["id"] == question_id), None)


def create_assessment(user_id: str, assessment_type: str, answers: dict[str, str]) -> Assessment:
    result = gemini.process_medical_assessment(assessment_type, answers, user_id)
    now = datetime.now(timezone.utc).isoformat()
    style = assessment_style(assessment_type)

    response = db.get_client().table(TABLE).insert({
        "user_id": user_id,
        "title": style["title"],
        "description": result.summary[:200],
        "results": {
            **result.model_dump(),
            "answers": answers,
            "assessment_type": assessment_type,
        },
        "status": "completed",
        "completed_at": now,
    }).execute()
    return Assessment.model_validate(db.first_row(response.data, "Stored assessment"))


def list_assessments(user_id: str) -> list[Assessment]:
    response = (
        db.get_client()
        .table(TABLE)
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    return [Assessment.model_validate(r) for r in response.data or []]


def assessment_summary(assessments: list[Assessment]) -> dict:
    return {
        "total": len(assessments),
        "completed": sum(1 for a in assessments if a.status == "completed"),
        "latest": assessments[0].created_at if assessments else None,
    }
