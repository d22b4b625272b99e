"""Report persistence and PDF rendering."""

import fitz  # PyMuPDF

from consultai import db
from consultai.gemini import MEDICAL_DISCLAIMER
from consultai.models import ReportData, StoredReport

TABLE = "reports"

# A4 in points
PAGE_WIDTH = 595
PAGE_HEIGHT = 842
MARGIN = 50

FONT = "helv"
BOLD_FONT = "hebo"
TITLE_SIZE = 18
HEADING_SIZE = 13
BODY_SIZE = 10.5
LINE_SPACING = 1.4


def format_session_id(session_id: str) -> str:
    """Dash a bare 32-hex id into canonical UUID form."""
    if "-" in session_id or len(session_id) != 32:
        return session_id
    s = session_id
    return f"{s[:8]}-{s[8:12]}-{s[12:16]}-{s[16:20]}-{s[20:]}"


def store_report(session_id: str, report_data: ReportData, user_id: str | None = None) -> StoredReport:
    row = {
        "session_id": format_session_id(session_id),
        "report_data": report_data.model_dump(by_alias=True, exclude_none=True),
    }
    if user_id:
        row["user_id"] = user_id

    response = db.get_client().table(TABLE).insert(row).execute()
    stored = db.first_row(response.data, "Stored report")
    print(f"[Reports] Stored report {stored['id']} for session {row['session_id']}")
    return StoredReport.model_validate(stored)


def get_user_reports(user_id: str) -> list[StoredReport]:
    response = (
        db.get_client()
        .table(TABLE)
        .select("*")
        .eq("user_id", user_id)
        .order("generated_at", desc=True)
        .execute()
    )
    return [StoredReport.model_validate(r) for r in response.data or []]


def get_report_by_id(report_id: str) -> StoredReport:
    response = db.get_client().table(TABLE).select("*").eq("id", report_id).limit(1).execute()
    return StoredReport.model_validate(db.first_row(response.data, f"Report {report_id}"))


def report_filename(report: StoredReport) -> str:
    stamp = report.generated_at.replace(":", "-").replace("+", "_")
    return f"medical-report-{stamp}.pdf"


class _PdfWriter:
    """Writes wrapped lines top to bottom, opening a new page when one fills up."""

    def __init__(self):
        self.doc = fitz.open()
        self.page = None
        self.y = 0.0
        self._new_page()

    @property
    def text_width(self) -> float:
        return PAGE_WIDTH - 2 * MARGIN

    def _new_page(self) -> None:
        self.page = self.doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        self.y = MARGIN

    def _ensure_room(self, height: float) -> None:
        if self.y + height > PAGE_HEIGHT - MARGIN:
            self._new_page()

    def wrap(self, text: str, fontname: str, fontsize: float, width: float) -> list[str]:
        lines = []
        for paragraph in str(text).splitlines() or [""]:
            current = ""
            for word in paragraph.split():
                candidate = f"{current} {word}".strip()
                if current and fitz.get_text_length(candidate, fontname=fontname, fontsize=fontsize) > width:
                    lines.append(current)
                    current = word
                else:
                    current = candidate
            lines.append(current)
        return lines

    def text(self, text: str, fontsize: float = BODY_SIZE, bold: bool = False, indent: float = 0) -> None:
        fontname = BOLD_FONT if bold else FONT
        line_height = fontsize * LINE_SPACING
        for line in self.wrap(text, fontname, fontsize, self.text_width - indent):
            self._ensure_room(line_height)
            self.y += fontsize
            self.page.insert_text((MARGIN + indent, self.y), line, fontname=fontname, fontsize=fontsize)
            self.y += line_height - fontsize

    def heading(self, text: str) -> None:
        # Keep a heading on the same page as at least one body line.
        self._ensure_room(HEADING_SIZE * LINE_SPACING + BODY_SIZE * LINE_SPACING + 8)
        self.y += 8
        self.text(text, fontsize=HEADING_SIZE, bold=True)

    def bullets(self, items: list[str], numbered: bool = False) -> None:
        for i, item in enumerate(items, 1):
            marker = f"{i}." if numbered else "-"
            self.text(f"{marker} {item}", indent=10)

    def gap(self, points: float = 6) -> None:
        self.y += points

    def tobytes(self) -> bytes:
        data = self.doc.tobytes()
        self.doc.close()
        return data


def render_report_pdf(report: StoredReport) -> bytes:
    data = report.report_data
    pdf = _PdfWriter()

    pdf.text("Medical Consultation Report", fontsize=TITLE_SIZE, bold=True)
    pdf.text(f"Generated: {report.generated_at}")
    pdf.text(f"Session: {report.session_id}")
    if data.basic_details and data.basic_details.name:
        pdf.text(f"Patient: {data.basic_details.name}")
    pdf.gap()

    pdf.heading("Estimated Condition")
    pdf.text(data.estimated_condition)
    pdf.heading("Symptoms Analysis")
    pdf.text(data.symptoms_analysis)
    pdf.heading("Diagnosis")
    pdf.text(data.diagnosis)

    pdf.heading("Treatment Plan")
    pdf.bullets(data.treatment, numbered=True)

    pdf.heading("Medications")
    for med in data.medications:
        pdf.text(med.name, bold=True, indent=10)
        if med.dosage:
            pdf.text(f"Dosage: {med.dosage}", indent=20)
        if med.duration:
            pdf.text(f"Duration: {med.duration}", indent=20)
        if med.instructions:
            pdf.text(f"Instructions: {med.instructions}", indent=20)

    pdf.heading("Recommendations")
    pdf.bullets(data.recommendations)
    pdf.heading("Precautions")
    pdf.text(data.precautions)
    pdf.heading("Follow-up")
    pdf.text(data.follow_up)

    if data.diet_plan:
        plan = data.diet_plan
        pdf.heading("Diet Plan")
        for meal in plan.meals:
            label = meal.type.capitalize()
            pdf.text(f"{label} ({meal.timing})" if meal.timing else label, bold=True, indent=10)
            pdf.bullets(meal.suggestions)
            if meal.notes:
                pdf.text(meal.notes, indent=20)
        if plan.guidelines:
            pdf.text("Guidelines", bold=True)
            pdf.bullets(plan.guidelines)
        if plan.restrictions:
            pdf.text("Restrictions", bold=True)
            pdf.bullets(plan.restrictions)
        pdf.text(f"Hydration: {plan.hydration}")

    pdf.gap(12)
    pdf.text(MEDICAL_DISCLAIMER, fontsize=8.5)
    return pdf.tobytes()
