"""Tests for report storage, PDF rendering and diet plans."""

import json

import fitz
import pytest

from consultai import diet_plans, reports
from consultai.models import DietPlan, ReportData, StoredReport

REPORT = {
    "estimatedCondition": "Tension-type headache",
    "symptomsAnalysis": "Bilateral pressing pain, worse in the evening.",
    "diagnosis": "Tension-type headache; differential includes migraine without aura.",
    "treatment": ["Regular sleep schedule", "Neck stretches twice daily"],
    "medications": [{
        "name": "Ibuprofen",
        "dosage": "400mg",
        "duration": "Up to 3 days",
        "instructions": "Take with food",
    }],
    "recommendations": ["Limit screen time", "Stay hydrated"],
    "precautions": "Seek care for sudden severe headache or vision changes.",
    "followUp": "Review in 2 weeks.",
    "basicDetails": {"name": "Ada", "weight": 60, "height": 170, "allergies": ["Latex"], "conditions": []},
}

DIET = {
    "meals": [{"type": "lunch", "suggestions": ["Lentil soup (250ml)"], "timing": "1 PM",
               "portions": "400 kcal", "notes": "Warm"}],
    "guidelines": ["Regular meals"],
    "restrictions": ["Less caffeine"],
    "hydration": "2L water",
    "supplements": [],
    "duration": "4 weeks",
    "specialInstructions": "",
}


def stored_report(**overrides) -> StoredReport:
    data = {**REPORT, **overrides}
    return StoredReport(
        id="r-1",
        session_id="s-1",
        user_id="user-1",
        report_data=ReportData.model_validate(data),
        generated_at="2025-01-01T10:00:00+00:00",
    )


def pdf_text(pdf_bytes: bytes) -> tuple[int, str]:
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    text = "\n".join(page.get_text() for page in doc)
    count = doc.page_count
    doc.close()
    return count, text


class TestFormatSessionId:
    def test_dashes_bare_hex(self):
        bare = "0123456789abcdef0123456789abcdef"
        assert reports.format_session_id(bare) == "01234567-89ab-cdef-0123-456789abcdef"

    def test_keeps_uuid(self):
        value = "01234567-89ab-cdef-0123-456789abcdef"
        assert reports.format_session_id(value) == value


class TestStoreAndFetch:
    def test_store_report_keeps_camel_case_json(self, fake_db):
        data = ReportData.model_validate(REPORT)
        stored = reports.store_report("0123456789abcdef0123456789abcdef", data, "user-1")

        row = fake_db.tables["reports"][0]
        assert row["session_id"] == "01234567-89ab-cdef-0123-456789abcdef"
        assert row["user_id"] == "user-1"
        assert row["report_data"]["followUp"] == "Review in 2 weeks."
        assert "dietPlan" not in row["report_data"]
        assert stored.report_data.follow_up == "Review in 2 weeks."

    def test_user_reports_newest_first(self, fake_db):
        data = ReportData.model_validate(REPORT)
        first = reports.store_report("s-1", data, "user-1")
        second = reports.store_report("s-2", data, "user-1")
        reports.store_report("s-3", data, "someone-else")

        listed = reports.get_user_reports("user-1")
        assert [r.id for r in listed] == [second.id, first.id]

    def test_missing_report_raises_key_error(self, fake_db):
        with pytest.raises(KeyError):
            reports.get_report_by_id("nope")


class TestRenderPdf:
    def test_renders_all_sections(self):
        count, text = pdf_text(reports.render_report_pdf(stored_report()))
        assert count == 1
        for heading in ("Estimated Condition", "Diagnosis", "Treatment Plan", "Medications",
                        "Recommendations", "Precautions", "Follow-up"):
            assert heading in text
        assert "Ibuprofen" in text
        assert "Patient: Ada" in text

    def test_long_report_breaks_pages(self):
        long_treatment = [f"Step {i}: " + "keep resting and drinking water " * 6 for i in range(80)]
        count, text = pdf_text(reports.render_report_pdf(stored_report(treatment=long_treatment)))
        assert count > 1
        assert "Step 79:" in text

    def test_diet_plan_section(self):
        report = stored_report(dietPlan=DIET)
        _, text = pdf_text(reports.render_report_pdf(report))
        assert "Diet Plan" in text
        assert "Lentil soup" in text

    def test_filename(self):
        assert reports.report_filename(stored_report()).startswith("medical-report-2025-01-01T10-00-00")


class TestDietPlans:
    def test_create_is_lookup_then_create(self, fake_db, fake_llm):
        fake_llm.responses = [json.dumps(DIET)]
        report = stored_report()

        first = diet_plans.create_diet_plan(report, "user-1")
        second = diet_plans.create_diet_plan(report, "user-1")

        assert first.id == second.id
        assert len(fake_db.tables["diet_plans"]) == 1
        assert len(fake_llm.prompts) == 1
        assert "Allergies: Latex" in fake_llm.prompts[0]
        assert "Medical Condition: Tension-type headache" in fake_llm.prompts[0]

    def test_get_by_report_id_missing(self, fake_db):
        assert diet_plans.get_diet_plan_by_report_id("r-404") is None

    def test_update(self, fake_db, fake_llm):
        fake_llm.responses = [json.dumps(DIET)]
        plan = diet_plans.create_diet_plan(stored_report(), "user-1")

        changed = DietPlan.model_validate({**DIET, "hydration": "3L water"})
        updated = diet_plans.update_diet_plan(plan.id, changed)
        assert updated.diet_data.hydration == "3L water"
        assert fake_db.tables["diet_plans"][0]["diet_data"]["hydration"] == "3L water"

    def test_user_diet_plans(self, fake_db, fake_llm):
        fake_llm.responses = [json.dumps(DIET)]
        diet_plans.create_diet_plan(stored_report(), "user-1")
        assert len(diet_plans.get_user_diet_plans("user-1")) == 1
        assert diet_plans.get_user_diet_plans("user-2") == []
