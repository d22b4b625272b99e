"""Pydantic models for request/response schemas and stored rows."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Report and diet plan JSON is stored with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -- Consultation --

class Location(BaseModel):
    latitude: float | None = None
    longitude: float | None = None
    address: str


class BasicDetails(BaseModel):
    name: str = ""
    weight: float | None = None
    height: float | None = None
    allergies: list[str] = []
    conditions: list[str] = []


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: str


class Question(BaseModel):
    id: str
    question: str
    type: Literal["text", "number", "select", "multiselect"] = "select"
    options: list[str] = []


class Prompt(BaseModel):
    stage: str
    field: str | None = None
    text: str
    input_type: str
    options: list[str] = []


# -- Reports and diet plans --

class Medication(CamelModel):
    name: str
    dosage: str = ""
    duration: str = ""
    instructions: str = ""


class Meal(CamelModel):
    type: str
    suggestions: list[str] = []
    timing: str = ""
    portions: str = ""
    notes: str = ""


class Supplement(CamelModel):
    name: str
    dosage: str = ""
    timing: str = ""


class DietPlan(CamelModel):
    meals: list[Meal]
    guidelines: list[str]
    restrictions: list[str]
    hydration: str
    supplements: list[Supplement] = []
    duration: str = ""
    special_instructions: str = ""


class ReportData(CamelModel):
    estimated_condition: str
    symptoms_analysis: str
    diagnosis: str
    treatment: list[str]
    medications: list[Medication]
    recommendations: list[str]
    precautions: str
    follow_up: str
    diet_plan: DietPlan | None = None
    basic_details: BasicDetails | None = None


class StoredReport(BaseModel):
    id: str
    session_id: str
    user_id: str | None = None
    report_data: ReportData
    generated_at: str


class StoredDietPlan(BaseModel):
    id: str
    report_id: str
    user_id: str
    diet_data: DietPlan
    created_at: str | None = None
    updated_at: str | None = None
    reports: dict[str, Any] | None = None


# -- Stored rows --

class Profile(BaseModel):
    id: str
    email: str | None = None
    full_name: str | None = None
    location: str | dict[str, Any] | None = None
    avatar_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class EmergencyContact(BaseModel):
    name: str = ""
    phone: str = ""
    relationship: str = ""


class LifestyleHabits(BaseModel):
    smoking: bool = False
    alcohol: str = ""
    exercise: str = ""
    diet: list[str] = []


class BasicInformation(BaseModel):
    user_id: str
    date_of_birth: str | None = None
    gender: str | None = None
    height: float | None = None
    weight: float | None = None
    blood_type: str | None = None
    allergies: list[str] = []
    medical_conditions: list[str] = []
    exercise_frequency: str | None = None
    dietary_preferences: list[str] = []
    emergency_contact: EmergencyContact = Field(default_factory=EmergencyContact)
    lifestyle_habits: LifestyleHabits = Field(default_factory=LifestyleHabits)

    @field_validator("allergies", "medical_conditions", "dietary_preferences", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("emergency_contact", "lifestyle_habits", mode="before")
    @classmethod
    def _null_object(cls, v: Any) -> Any:
        return {} if v is None else v


class ChatSession(BaseModel):
    id: str
    user_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    status: Literal["in_progress", "completed", "scheduled"] | None = "in_progress"
    created_at: str | None = None
    finished_at: str | None = None


class AssessmentResult(BaseModel):
    summary: str
    recommendations: list[str] = []
    risk_level: Literal["low", "moderate", "high"] = "low"
    follow_up_required: bool = False


class Assessment(BaseModel):
    id: str
    user_id: str | None = None
    title: str
    description: str | None = None
    results: dict[str, Any] = {}
    status: str | None = None
    created_at: str | None = None
    completed_at: str | None = None

    @field_validator("results", mode="before")
    @classmethod
    def _null_results(cls, v: Any) -> Any:
        return {} if v is None else v


# -- API requests --

class CreateSessionRequest(BaseModel):
    user_id: str


class LocationRequest(BaseModel):
    latitude: float
    longitude: float


class ManualLocationRequest(BaseModel):
    address: str = Field(..., min_length=1)


class DetailRequest(BaseModel):
    value: str | list[str] | None = None


class ComplaintRequest(BaseModel):
    complaint: str = Field(..., min_length=1)


class AnswerRequest(BaseModel):
    answer: str | list[str]


class AssessmentRequest(BaseModel):
    user_id: str
    assessment_type: str
    answers: dict[str, str]


class DietPlanRequest(BaseModel):
    user_id: str


class ProfileUpdate(BaseModel):
    full_name: str | None = None
    location: str | None = None


class MedicalChatRequest(BaseModel):
    messages: list[dict[str, str]]
    context: str = ""


# -- API responses --

class FlowState(BaseModel):
    session_id: str
    user_id: str
    stage: str
    progress: float
    location: Location | None = None
    basic_details: BasicDetails
    chief_complaint: str | None = None
    questions: list[Question] = []
    answers: dict[str, str] = {}
    messages: list[ChatMessage] = []
    prompt: Prompt | None = None
    report: StoredReport | None = None


class MedicalChatResponse(BaseModel):
    reply: str
