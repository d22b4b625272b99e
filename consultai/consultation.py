"""Consultation flow — walks a patient from location to a generated report."""

from datetime import datetime, timezone
from enum import Enum

from consultai import gemini, location, reports
from consultai.models import BasicDetails, ChatMessage, FlowState, Location, Prompt, Question, StoredReport

ALLERGY_OPTIONS = [
    "None",
    "Penicillin",
    "Aspirin",
    "Latex",
    "Pollen",
    "Dust",
    "Food Allergies",
    "Other",
]

CONDITION_OPTIONS = [
    "None",
    "Diabetes",
    "Hypertension",
    "Asthma",
    "Heart Disease",
    "Arthritis",
    "Other",
]

CHIEF_COMPLAINTS = [
    "Fever",
    "Cough",
    "Headache",
    "Chest Pain",
    "Abdominal Pain",
    "Breathing Difficulty",
    "Joint Pain",
    "Skin Issues",
    "Other",
]

WELCOME_MESSAGE = (
    "Welcome to ConsultAI! Let's start by getting your location to provide "
    "relevant medical facilities near you."
)
LOCATION_FAILED_MESSAGE = "Unable to get your location. Please enter your address manually."
COMPLAINT_PROMPT = "What is your main medical concern today?"
QUESTIONS_FAILED_MESSAGE = "I apologize, but I'm having trouble generating questions. Please try again."
GENERATING_MESSAGE = "Thank you for providing all the information. I'm generating your medical report now..."
REPORT_SAVED_MESSAGE = (
    "Your medical report has been generated and saved. You can view it in your "
    "reports section or download it now."
)
REPORT_FAILED_MESSAGE = (
    "I apologize, but I encountered an error while generating your report. Please try again."
)


class Stage(str, Enum):
    LOCATION = "location"
    BASIC_DETAILS = "basic_details"
    CHIEF_COMPLAINT = "chief_complaint"
    DYNAMIC_QUESTIONS = "dynamic_questions"
    REPORT = "report"


class StageError(Exception):
    """An operation was called while the flow is in a different stage."""


# (field, prompt, input type, options)
DETAIL_STEPS = [
    ("name", "Great! Now, let's get some basic information about you. What's your full name?", "text", []),
    ("weight", "What is your weight in kg?", "number", []),
    ("height", "What is your height in cm?", "number", []),
    ("allergies", "Do you have any allergies? (Select all that apply)", "multiselect", ALLERGY_OPTIONS),
    ("conditions", "Do you have any chronic conditions? (Select all that apply)", "multiselect", CONDITION_OPTIONS),
]

PROGRESS = {
    Stage.LOCATION: 0,
    Stage.BASIC_DETAILS: 20,
    Stage.CHIEF_COMPLAINT: 40,
    Stage.DYNAMIC_QUESTIONS: 60,
    Stage.REPORT: 100,
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_text(value) -> str:
    return ", ".join(value) if isinstance(value, list) else str(value)


def generate_summary(basic_details: BasicDetails, chief_complaint: str) -> str:
    def measure(value, unit):
        return "not provided" if value is None else f"{value} {unit}"

    return (
        "Patient Information:\n"
        f"Name: {basic_details.name}\n"
        f"Weight: {measure(basic_details.weight, 'kg')}\n"
        f"Height: {measure(basic_details.height, 'cm')}\n"
        f"Allergies: {', '.join(basic_details.allergies) or 'None'}\n"
        f"Chronic Conditions: {', '.join(basic_details.conditions) or 'None'}\n"
        f"Chief Complaint: {chief_complaint}"
    )


def _parse_measure(field: str, value) -> float | None:
    if value is None or str(value).strip() == "":
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        raise ValueError(f"{field.capitalize()} must be a number") from None
    if number <= 0:
        raise ValueError(f"{field.capitalize()} must be positive")
    return number


def _parse_selection(field: str, value) -> list[str]:
    if value is None:
        value = []
    values = [value] if isinstance(value, str) else list(value)
    values = [v for v in (str(v).strip() for v in values) if v]
    if not values:
        raise ValueError(f"Select at least one option for {field}")
    if "None" in values:
        return ["None"]
    return values


class ConsultationFlow:
    """One consultation run, advanced one user input at a time.

    Collaborators default to the Gemini, report and geocoding modules and can be
    replaced per flow.
    """

    def __init__(
        self,
        session_id: str,
        user_id: str,
        question_generator=None,
        report_generator=None,
        report_store=None,
        geocoder=None,
    ):
        self.session_id = session_id
        self.user_id = user_id
        self.question_generator = question_generator
        self.report_generator = report_generator
        self.report_store = report_store
        self.geocoder = geocoder

        self.stage = Stage.LOCATION
        self.progress = 0.0
        self.messages: list[ChatMessage] = []
        self.location: Location | None = None
        self.basic_details = BasicDetails()
        self.detail_index = 0
        self.chief_complaint: str | None = None
        self.questions: list[Question] = []
        self.question_index = 0
        self.answers: dict[str, str] = {}
        self.report: StoredReport | None = None

    # -- transcript --

    def _say(self, content: str) -> ChatMessage:
        message = ChatMessage(role="assistant", content=content, timestamp=_now())
        self.messages.append(message)
        return message

    def _hear(self, content: str) -> ChatMessage:
        message = ChatMessage(role="user", content=content, timestamp=_now())
        self.messages.append(message)
        return message

    def _require(self, stage: Stage) -> None:
        if self.stage != stage:
            raise StageError(f"Expected stage '{stage.value}', flow is at '{self.stage.value}'")

    # -- stages --

    def start(self) -> ChatMessage:
        return self._say(WELCOME_MESSAGE)

    def share_location(self, latitude: float, longitude: float) -> None:
        self._require(Stage.LOCATION)
        geocoder = self.geocoder or location.reverse_geocode
        address = geocoder(latitude, longitude)
        if not address or address == "Location not found":
            address = location.coordinates_label(latitude, longitude)
        self._set_location(Location(latitude=latitude, longitude=longitude, address=address))

    def enter_location(self, address: str) -> None:
        self._require(Stage.LOCATION)
        address = address.strip()
        if not address:
            raise ValueError("Address must not be empty")
        self._hear(address)
        self._set_location(Location(address=address))

    def location_unavailable(self) -> None:
        self._require(Stage.LOCATION)
        self._say(LOCATION_FAILED_MESSAGE)

    def _set_location(self, loc: Location) -> None:
        self.location = loc
        self.stage = Stage.BASIC_DETAILS
        self.detail_index = 0
        self.progress = PROGRESS[Stage.BASIC_DETAILS]
        self._say(DETAIL_STEPS[0][1])

    def current_prompt(self) -> Prompt | None:
        if self.stage == Stage.LOCATION:
            return Prompt(stage=self.stage.value, text=WELCOME_MESSAGE, input_type="location")
        if self.stage == Stage.BASIC_DETAILS:
            field, text, input_type, options = DETAIL_STEPS[self.detail_index]
            return Prompt(stage=self.stage.value, field=field, text=text, input_type=input_type, options=options)
        if self.stage == Stage.CHIEF_COMPLAINT:
            return Prompt(stage=self.stage.value, text=COMPLAINT_PROMPT, input_type="select", options=CHIEF_COMPLAINTS)
        if self.stage == Stage.DYNAMIC_QUESTIONS:
            question = self.questions[self.question_index]
            return Prompt(
                stage=self.stage.value,
                field=question.id,
                text=question.question,
                input_type=question.type,
                options=question.options,
            )
        return None

    def submit_detail(self, value) -> None:
        self._require(Stage.BASIC_DETAILS)
        field, _, input_type, _ = DETAIL_STEPS[self.detail_index]

        if input_type == "number":
            parsed = _parse_measure(field, value)
        elif input_type == "multiselect":
            parsed = _parse_selection(field, value)
        else:
            parsed = str(value or "").strip()
            if not parsed:
                raise ValueError(f"{field.capitalize()} must not be empty")

        if input_type != "multiselect":
            self._hear("(left blank)" if parsed is None else _as_text(value).strip())
        setattr(self.basic_details, field, parsed)

        self.detail_index += 1
        if self.detail_index < len(DETAIL_STEPS):
            self._say(DETAIL_STEPS[self.detail_index][1])
        else:
            self.stage = Stage.CHIEF_COMPLAINT
            self.progress = PROGRESS[Stage.CHIEF_COMPLAINT]
            self._say(COMPLAINT_PROMPT)

    def select_complaint(self, complaint: str) -> None:
        self._require(Stage.CHIEF_COMPLAINT)
        complaint = complaint.strip()
        if not complaint:
            raise ValueError("Complaint must not be empty")
        self._hear(complaint)
        self.chief_complaint = complaint

        generator = self.question_generator or gemini.generate_dynamic_questions
        try:
            questions = generator(complaint, generate_summary(self.basic_details, complaint))
        except Exception as e:
            print(f"[Consultation] Question generation failed for session {self.session_id}: {e}")
            self._say(QUESTIONS_FAILED_MESSAGE)
            return
        if not questions:
            self._say(QUESTIONS_FAILED_MESSAGE)
            return

        self.questions = list(questions)
        self.question_index = 0
        self.answers = {}
        self.stage = Stage.DYNAMIC_QUESTIONS
        self.progress = PROGRESS[Stage.DYNAMIC_QUESTIONS]
        self._say(self.questions[0].question)

    def answer_question(self, answer) -> None:
        self._require(Stage.DYNAMIC_QUESTIONS)
        text = _as_text(answer).strip()
        if not text:
            raise ValueError("Answer must not be empty")
        self._hear(text)
        self.answers[self.questions[self.question_index].id] = text

        if self.question_index < len(self.questions) - 1:
            self.question_index += 1
            self.progress = PROGRESS[Stage.DYNAMIC_QUESTIONS] + self.question_index * (20 / len(self.questions))
            self._say(self.questions[self.question_index].question)
        else:
            self._generate_report()

    def answered_pairs(self) -> list[dict]:
        return [
            {"question": q.question, "answer": self.answers[q.id]}
            for q in self.questions
            if q.id in self.answers
        ]

    def _generate_report(self) -> None:
        self._say(GENERATING_MESSAGE)
        generator = self.report_generator or gemini.generate_medical_report
        store = self.report_store or reports.store_report

        try:
            report_data = generator(
                basic_details=self.basic_details.model_dump(),
                chief_complaint=self.chief_complaint,
                answers=self.answered_pairs(),
                location=self.location.model_dump() if self.location else None,
                context=generate_summary(self.basic_details, self.chief_complaint),
            )
            stored = store(self.session_id, report_data, self.user_id)
        except Exception as e:
            print(f"[Consultation] Report generation failed for session {self.session_id}: {e}")
            self._say(REPORT_FAILED_MESSAGE)
            return

        self.report = stored
        self.stage = Stage.REPORT
        self.progress = PROGRESS[Stage.REPORT]
        self._say(REPORT_SAVED_MESSAGE)

    def snapshot(self) -> FlowState:
        return FlowState(
            session_id=self.session_id,
            user_id=self.user_id,
            stage=self.stage.value,
            progress=self.progress,
            location=self.location,
            basic_details=self.basic_details,
            chief_complaint=self.chief_complaint,
            questions=self.questions,
            answers=self.answers,
            messages=self.messages,
            prompt=self.current_prompt(),
            report=self.report,
        )


_flows: dict[str, ConsultationFlow] = {}


def create_flow(session_id: str, user_id: str, **collaborators) -> ConsultationFlow:
    flow = ConsultationFlow(session_id, user_id, **collaborators)
    flow.start()
    _flows[session_id] = flow
    return flow


def get_flow(session_id: str) -> ConsultationFlow:
    if session_id not in _flows:
        raise KeyError(f"Session {session_id} not found")
    return _flows[session_id]


def clear_flow(session_id: str) -> bool:
    if session_id in _flows:
        del _flows[session_id]
        return True
    return False
