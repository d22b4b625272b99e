"""Tests for the consultation stage controller."""

import pytest

from consultai.consultation import (
    COMPLAINT_PROMPT,
    REPORT_FAILED_MESSAGE,
    QUESTIONS_FAILED_MESSAGE,
    ConsultationFlow,
    Stage,
    StageError,
    create_flow,
    generate_summary,
    get_flow,
)
from consultai.models import BasicDetails, Question, ReportData, StoredReport


def make_questions(n=10):
    return [Question(id=f"q{i + 1}", question=f"Question {i + 1}?", options=["Yes", "No"]) for i in range(n)]


def make_report(complaint="Cough") -> ReportData:
    return ReportData.model_validate({
        "estimatedCondition": f"{complaint} condition",
        "symptomsAnalysis": "analysis",
        "diagnosis": "diagnosis",
        "treatment": ["rest"],
        "medications": [{"name": "Paracetamol"}],
        "recommendations": ["sleep"],
        "precautions": "watch out",
        "followUp": "one week",
    })


class Recorder:
    def __init__(self, questions=None, fail_report=False, fail_questions=False):
        self.questions = questions if questions is not None else make_questions()
        self.fail_report = fail_report
        self.fail_questions = fail_questions
        self.report_calls = []
        self.stored = []

    def generate_questions(self, complaint, context):
        if self.fail_questions:
            raise RuntimeError("LLM down")
        return self.questions

    def generate_report(self, **kwargs):
        self.report_calls.append(kwargs)
        if self.fail_report:
            raise RuntimeError("LLM down")
        return make_report(kwargs["chief_complaint"])

    def store(self, session_id, report_data, user_id):
        self.stored.append((session_id, report_data, user_id))
        return StoredReport(
            id="report-1",
            session_id=session_id,
            user_id=user_id,
            report_data=report_data,
            generated_at="2025-01-01T00:00:00+00:00",
        )


def new_flow(recorder=None):
    recorder = recorder or Recorder()
    flow = ConsultationFlow(
        "session-1",
        "user-1",
        question_generator=recorder.generate_questions,
        report_generator=recorder.generate_report,
        report_store=recorder.store,
        geocoder=lambda lat, lon: "Baker Street, London",
    )
    flow.start()
    return flow, recorder


def through_details(flow, weight="70", height="175"):
    flow.share_location(51.52, -0.15)
    flow.submit_detail("Ada Lovelace")
    flow.submit_detail(weight)
    flow.submit_detail(height)
    flow.submit_detail(["Penicillin"])
    flow.submit_detail(["None", "Asthma"])


class TestLocationStage:
    def test_starts_at_location_with_welcome(self):
        flow, _ = new_flow()
        assert flow.stage == Stage.LOCATION
        assert flow.messages[0].role == "assistant"
        assert flow.current_prompt().input_type == "location"

    def test_share_location_moves_to_basic_details(self):
        flow, _ = new_flow()
        flow.share_location(51.52, -0.15)
        assert flow.stage == Stage.BASIC_DETAILS
        assert flow.location.address == "Baker Street, London"
        assert flow.progress == 20
        assert "full name" in flow.messages[-1].content

    def test_geocoder_miss_uses_coordinates(self):
        flow, _ = new_flow()
        flow.geocoder = lambda lat, lon: "Location not found"
        flow.share_location(1.5, 2.25)
        assert flow.location.address == "1.500000, 2.250000"

    def test_manual_location_entry(self):
        flow, _ = new_flow()
        flow.enter_location("  221B Baker Street  ")
        assert flow.stage == Stage.BASIC_DETAILS
        assert flow.location.address == "221B Baker Street"
        assert flow.location.latitude is None

    def test_location_unavailable_stays_on_location(self):
        flow, _ = new_flow()
        flow.location_unavailable()
        assert flow.stage == Stage.LOCATION
        assert "manually" in flow.messages[-1].content


class TestBasicDetails:
    def test_prompt_follows_step_index(self):
        flow, _ = new_flow()
        flow.share_location(0, 0)
        flow.submit_detail("Ada")
        flow.submit_detail("60")
        prompt = flow.current_prompt()
        assert prompt.field == "height"
        assert prompt.text == "What is your height in cm?"

    def test_blank_weight_still_advances(self):
        flow, _ = new_flow()
        flow.share_location(0, 0)
        flow.submit_detail("Ada")
        flow.submit_detail("")
        assert flow.basic_details.weight is None
        assert flow.current_prompt().field == "height"

    def test_non_numeric_weight_does_not_advance(self):
        flow, _ = new_flow()
        flow.share_location(0, 0)
        flow.submit_detail("Ada")
        with pytest.raises(ValueError):
            flow.submit_detail("heavy")
        assert flow.current_prompt().field == "weight"

    def test_none_option_collapses_selection(self):
        flow, _ = new_flow()
        through_details(flow)
        assert flow.basic_details.allergies == ["Penicillin"]
        assert flow.basic_details.conditions == ["None"]

    def test_empty_selection_does_not_advance(self):
        flow, _ = new_flow()
        flow.share_location(0, 0)
        for value in ("Ada", "60", "170"):
            flow.submit_detail(value)
        with pytest.raises(ValueError):
            flow.submit_detail([])
        with pytest.raises(ValueError):
            flow.submit_detail(["  "])
        assert flow.current_prompt().field == "allergies"

    def test_multiselect_answers_are_not_echoed(self):
        flow, _ = new_flow()
        through_details(flow)
        user_messages = [m.content for m in flow.messages if m.role == "user"]
        assert user_messages == ["Ada Lovelace", "70", "175"]

    def test_completing_details_moves_to_complaint(self):
        flow, _ = new_flow()
        through_details(flow)
        assert flow.stage == Stage.CHIEF_COMPLAINT
        assert flow.progress == 40
        assert flow.messages[-1].content == COMPLAINT_PROMPT

    def test_empty_name_rejected(self):
        flow, _ = new_flow()
        flow.share_location(0, 0)
        with pytest.raises(ValueError):
            flow.submit_detail("   ")


class TestQuestionsAndReport:
    def test_complaint_generates_questions(self):
        flow, _ = new_flow()
        through_details(flow)
        flow.select_complaint("Cough")
        assert flow.stage == Stage.DYNAMIC_QUESTIONS
        assert flow.progress == 60
        assert flow.messages[-1].content == "Question 1?"

    def test_question_failure_stays_on_complaint(self):
        flow, _ = new_flow(Recorder(fail_questions=True))
        through_details(flow)
        flow.select_complaint("Cough")
        assert flow.stage == Stage.CHIEF_COMPLAINT
        assert flow.messages[-1].content == QUESTIONS_FAILED_MESSAGE

    def test_progress_advances_per_question(self):
        flow, _ = new_flow()
        through_details(flow)
        flow.select_complaint("Cough")
        flow.answer_question("Yes")
        assert flow.progress == pytest.approx(62)
        assert flow.current_prompt().field == "q2"

    def test_final_answer_shows_report(self):
        flow, recorder = new_flow()
        through_details(flow)
        flow.select_complaint("Cough")
        for _ in range(10):
            flow.answer_question("Yes")

        assert flow.stage == Stage.REPORT
        assert flow.progress == 100
        assert flow.report.id == "report-1"
        assert flow.current_prompt() is None

        call = recorder.report_calls[0]
        assert call["chief_complaint"] == "Cough"
        assert len(call["answers"]) == 10
        assert call["basic_details"]["name"] == "Ada Lovelace"
        assert call["location"]["address"] == "Baker Street, London"
        assert recorder.stored[0][0] == "session-1"
        assert recorder.stored[0][2] == "user-1"

    def test_report_failure_is_a_chat_message(self):
        flow, recorder = new_flow(Recorder(questions=make_questions(2), fail_report=True))
        through_details(flow)
        flow.select_complaint("Cough")
        flow.answer_question("Yes")
        flow.answer_question(["No"])

        assert flow.stage == Stage.DYNAMIC_QUESTIONS
        assert flow.messages[-1].content == REPORT_FAILED_MESSAGE
        assert recorder.stored == []

    def test_wrong_stage_raises(self):
        flow, _ = new_flow()
        with pytest.raises(StageError):
            flow.answer_question("Yes")
        with pytest.raises(StageError):
            flow.select_complaint("Cough")


class TestRegistry:
    def test_create_and_get(self):
        flow = create_flow("abc", "user-1")
        assert get_flow("abc") is flow
        assert len(flow.messages) == 1

    def test_missing_flow_raises(self):
        with pytest.raises(KeyError):
            get_flow("nope")


class TestSummary:
    def test_summary_lists_details(self):
        details = BasicDetails(name="Ada", weight=None, height=170, allergies=[], conditions=["Asthma"])
        summary = generate_summary(details, "Fever")
        assert "Weight: not provided\n" in summary
        assert "Height: 170.0 cm" in summary
        assert "Allergies: None" in summary
        assert "Chronic Conditions: Asthma" in summary
        assert summary.endswith("Chief Complaint: Fever")
