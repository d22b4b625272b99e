"""FastAPI service for ConsultAI."""

from dotenv import load_dotenv

load_dotenv()

import asyncio

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from consultai import assessments, db, diet_plans, profiles, reports, sessions
from consultai.consultation import Stage, StageError, clear_flow, create_flow, get_flow
from consultai.gemini import process_medical_chat
from consultai.location import FACILITY_TYPES, find_nearby_facilities, static_map_url
from consultai.models import (
    AnswerRequest,
    AssessmentRequest,
    BasicInformation,
    ComplaintRequest,
    CreateSessionRequest,
    DetailRequest,
    DietPlan,
    DietPlanRequest,
    FlowState,
    LocationRequest,
    ManualLocationRequest,
    MedicalChatRequest,
    MedicalChatResponse,
    ProfileUpdate,
)
from consultai.realtime import MIRRORED_TABLES, RealtimeMirror

app = FastAPI(
    title="ConsultAI",
    description="AI-assisted medical consultation, assessments, diet plans and reports using Google Gemini",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "consultai"}


# -- Consultation sessions --

def _flow_or_404(session_id: str):
    try:
        return get_flow(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")


def _advance(session_id: str, step) -> FlowState:
    flow = _flow_or_404(session_id)
    before = len(flow.messages)
    was_report = flow.stage == Stage.REPORT

    try:
        step(flow)
    except StageError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        sessions.add_messages(session_id, flow.messages[before:])
        if flow.stage == Stage.REPORT and not was_report:
            sessions.update_session(session_id, status="completed")
    except Exception as e:
        print(f"[API] Could not persist session {session_id}: {e}")

    return flow.snapshot()


@app.post("/sessions", response_model=FlowState)
def start_session(request: CreateSessionRequest):
    try:
        session = sessions.create_session(request.user_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Session creation failed: {str(e)}")

    flow = create_flow(session.id, request.user_id)
    try:
        sessions.add_messages(session.id, flow.messages)
    except Exception as e:
        print(f"[API] Could not persist welcome message for {session.id}: {e}")
    return flow.snapshot()


@app.get("/sessions")
def list_sessions(user_id: str):
    try:
        return [s.model_dump() for s in sessions.list_sessions(user_id)]
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Listing sessions failed: {str(e)}")


@app.get("/sessions/{session_id}", response_model=FlowState)
def get_session_state(session_id: str):
    return _flow_or_404(session_id).snapshot()


@app.get("/sessions/{session_id}/messages")
def session_messages(session_id: str):
    try:
        return {"session_id": session_id, "messages": sessions.get_messages(session_id)}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Fetching messages failed: {str(e)}")


@app.delete("/sessions/{session_id}")
def close_session(session_id: str):
    if not clear_flow(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return {"status": "closed", "session_id": session_id}


@app.post("/sessions/{session_id}/location", response_model=FlowState)
def share_location(session_id: str, request: LocationRequest):
    state = _advance(session_id, lambda flow: flow.share_location(request.latitude, request.longitude))
    try:
        sessions.update_session(session_id, latitude=request.latitude, longitude=request.longitude)
    except Exception as e:
        print(f"[API] Could not store location for session {session_id}: {e}")
    return state


@app.post("/sessions/{session_id}/location/manual", response_model=FlowState)
def enter_location(session_id: str, request: ManualLocationRequest):
    return _advance(session_id, lambda flow: flow.enter_location(request.address))


@app.post("/sessions/{session_id}/location/unavailable", response_model=FlowState)
def location_unavailable(session_id: str):
    return _advance(session_id, lambda flow: flow.location_unavailable())


@app.post("/sessions/{session_id}/details", response_model=FlowState)
def submit_detail(session_id: str, request: DetailRequest):
    return _advance(session_id, lambda flow: flow.submit_detail(request.value))


@app.post("/sessions/{session_id}/complaint", response_model=FlowState)
def select_complaint(session_id: str, request: ComplaintRequest):
    return _advance(session_id, lambda flow: flow.select_complaint(request.complaint))


@app.post("/sessions/{session_id}/answer", response_model=FlowState)
def answer_question(session_id: str, request: AnswerRequest):
    return _advance(session_id, lambda flow: flow.answer_question(request.answer))


# -- Reports and diet plans --

def _report_or_404(report_id: str):
    try:
        return reports.get_report_by_id(report_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found")


@app.get("/reports")
def list_reports(user_id: str):
    try:
        return [r.model_dump(by_alias=True) for r in reports.get_user_reports(user_id)]
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Listing reports failed: {str(e)}")


@app.get("/reports/{report_id}")
def get_report(report_id: str):
    return _report_or_404(report_id).model_dump(by_alias=True)


@app.get("/reports/{report_id}/pdf")
def download_report(report_id: str):
    report = _report_or_404(report_id)
    return Response(
        content=reports.render_report_pdf(report),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{reports.report_filename(report)}"'},
    )


@app.post("/reports/{report_id}/diet-plan")
def create_diet_plan(report_id: str, request: DietPlanRequest):
    report = _report_or_404(report_id)
    try:
        plan = diet_plans.create_diet_plan(report, request.user_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Diet plan creation failed: {str(e)}")
    return plan.model_dump(by_alias=True)


@app.get("/diet-plans")
def list_diet_plans(user_id: str):
    try:
        return [p.model_dump(by_alias=True) for p in diet_plans.get_user_diet_plans(user_id)]
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Listing diet plans failed: {str(e)}")


@app.get("/diet-plans/report/{report_id}")
def get_diet_plan_for_report(report_id: str):
    plan = diet_plans.get_diet_plan_by_report_id(report_id)
    if plan is None:
        raise HTTPException(status_code=404, detail=f"No diet plan for report {report_id}")
    return plan.model_dump(by_alias=True)


@app.put("/diet-plans/{plan_id}")
def update_diet_plan(plan_id: str, diet_data: DietPlan):
    try:
        return diet_plans.update_diet_plan(plan_id, diet_data).model_dump(by_alias=True)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Diet plan {plan_id} not found")


# -- Assessments --

@app.post("/assessments")
def create_assessment(request: AssessmentRequest):
    try:
        assessment = assessments.create_assessment(request.user_id, request.assessment_type, request.answers)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Assessment failed: {str(e)}")
    return {**assessment.model_dump(), "style": assessments.assessment_style(request.assessment_type)}


@app.get("/assessments")
def list_assessments(user_id: str):
    try:
        rows = assessments.list_assessments(user_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Listing assessments failed: {str(e)}")
    return {
        "summary": assessments.assessment_summary(rows),
        "assessments": [
            {**a.model_dump(), "style": assessments.assessment_style(a.results.get("assessment_type"))}
            for a in rows
        ],
    }


@app.get("/questionnaires")
def questionnaires():
    return {"sections": assessments.QUESTIONNAIRE_SECTIONS}


# -- Profile and basic information --

@app.get("/profile/{user_id}")
def get_profile(user_id: str):
    try:
        return profiles.get_profile(user_id).model_dump()
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Profile {user_id} not found")


@app.put("/profile/{user_id}")
def update_profile(user_id: str, changes: ProfileUpdate):
    try:
        return profiles.update_profile(user_id, changes).model_dump()
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Profile {user_id} not found")


@app.get("/basic-info/{user_id}")
def get_basic_info(user_id: str):
    try:
        return profiles.get_basic_information(user_id).model_dump()
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Basic information for {user_id} not found")


@app.put("/basic-info/{user_id}")
def upsert_basic_info(user_id: str, info: BasicInformation):
    if info.user_id != user_id:
        raise HTTPException(status_code=400, detail="user_id in body does not match path")
    try:
        return profiles.upsert_basic_information(info).model_dump()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Saving basic information failed: {str(e)}")


@app.get("/dashboard/{user_id}")
def dashboard(user_id: str):
    try:
        return profiles.dashboard_counts(user_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Dashboard failed: {str(e)}")


# -- Facilities and free-text chat --

@app.get("/facilities")
def facilities(
    latitude: float,
    longitude: float,
    facility_type: str = Query("hospital", alias="type"),
    radius: int = 5000,
):
    if facility_type not in FACILITY_TYPES:
        raise HTTPException(status_code=400, detail=f"type must be one of {', '.join(FACILITY_TYPES)}")
    return {
        "facilities": find_nearby_facilities(latitude, longitude, facility_type, radius),
        "map_url": static_map_url(latitude, longitude),
    }


@app.post("/chat", response_model=MedicalChatResponse)
def chat(request: MedicalChatRequest):
    try:
        return MedicalChatResponse(reply=process_medical_chat(request.messages, request.context))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Chat failed: {str(e)}")


# -- Realtime --

@app.websocket("/realtime/{table}")
async def realtime(websocket: WebSocket, table: str, user_id: str):
    if table not in MIRRORED_TABLES:
        await websocket.close(code=1008)
        return
    await websocket.accept()

    mirror = RealtimeMirror(table, user_id, MIRRORED_TABLES[table])
    updates: asyncio.Queue = asyncio.Queue()
    mirror.add_listener(lambda m: updates.put_nowait(m.state()))

    async def push():
        while True:
            await websocket.send_json(await updates.get())

    pusher = asyncio.create_task(push())
    try:
        await mirror.start(await db.get_async_client())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    except Exception as e:
        print(f"[Realtime] {table} mirror for {user_id} failed: {e}")
        await websocket.close(code=1011)
    finally:
        pusher.cancel()
        await mirror.stop()
