"""Streamlit UI for ConsultAI."""

import os

import requests
import streamlit as st
from dotenv import load_dotenv

load_dotenv()

API_URL = os.environ.get("API_URL", "http://localhost:8000")

st.set_page_config(page_title="ConsultAI", layout="wide")
st.title("ConsultAI")
st.markdown("AI-assisted medical consultation powered by Google Gemini")
st.divider()

try:
    requests.get(f"{API_URL}/health", timeout=5)
except Exception:
    st.error(f"Could not connect to API at {API_URL}. Is the FastAPI server running?")
    st.stop()

user_id = st.sidebar.text_input("User ID", value=st.session_state.get("user_id", ""))
st.session_state.user_id = user_id
if not user_id:
    st.info("Enter your user ID in the sidebar to begin.")
    st.stop()


def post_step(path: str, payload: dict | None = None, timeout: int = 10):
    """POST a consultation step and keep the returned flow state."""
    try:
        resp = requests.post(f"{API_URL}{path}", json=payload, timeout=timeout)
    except requests.exceptions.Timeout:
        st.error("Request timed out. Please try again.")
        return
    except Exception as e:
        st.error(f"Error: {str(e)}")
        return

    if resp.status_code == 200:
        st.session_state.consultation = resp.json()
        st.rerun()
    st.error(f"API error: {resp.status_code} - {resp.text}")


def render_report(report_data: dict):
    st.markdown(f"### {report_data['estimatedCondition']}")
    st.markdown("**Symptoms Analysis**")
    st.markdown(report_data["symptomsAnalysis"])
    st.markdown("**Diagnosis**")
    st.markdown(report_data["diagnosis"])
    st.markdown("**Treatment Plan**")
    for i, step in enumerate(report_data["treatment"], 1):
        st.markdown(f"{i}. {step}")
    st.markdown("**Medications**")
    for med in report_data["medications"]:
        with st.expander(med["name"]):
            st.markdown(f"**Dosage:** {med.get('dosage', '')}")
            st.markdown(f"**Duration:** {med.get('duration', '')}")
            st.markdown(f"**Instructions:** {med.get('instructions', '')}")
    st.markdown("**Recommendations**")
    for item in report_data["recommendations"]:
        st.markdown(f"- {item}")
    st.warning(report_data["precautions"])
    st.markdown(f"**Follow-up:** {report_data['followUp']}")


def render_diet_plan(diet: dict):
    for meal in diet["meals"]:
        with st.expander(f"{meal['type'].capitalize()} {meal.get('timing', '')}"):
            for suggestion in meal.get("suggestions", []):
                st.markdown(f"- {suggestion}")
            if meal.get("notes"):
                st.caption(meal["notes"])
    st.markdown(f"**Hydration:** {diet['hydration']}")
    if diet.get("restrictions"):
        st.markdown("**Avoid:** " + ", ".join(diet["restrictions"]))


def pdf_download(report_id: str, key: str):
    try:
        resp = requests.get(f"{API_URL}/reports/{report_id}/pdf", timeout=30)
        if resp.status_code == 200:
            filename = resp.headers.get("content-disposition", "").split("filename=")[-1].strip('"')
            st.download_button("Download PDF", resp.content, file_name=filename or "medical-report.pdf",
                               mime="application/pdf", key=key)
    except Exception:
        st.warning("Could not prepare the PDF.")


tab_consult, tab_reports, tab_assess, tab_diet, tab_profile = st.tabs(
    ["Consultation", "Reports", "Assessments", "Diet Plans", "Profile"]
)


# -- Consultation Tab --

with tab_consult:
    state = st.session_state.get("consultation")

    if st.button("New Consultation", key="new_consultation", type="primary"):
        post_step("/sessions", {"user_id": user_id})

    if state:
        session_id = state["session_id"]
        st.progress(int(state["progress"]) / 100)

        for msg in state["messages"]:
            with st.chat_message(msg["role"]):
                st.markdown(msg["content"])

        prompt = state.get("prompt")
        base = f"/sessions/{session_id}"

        if state["stage"] == "location":
            col1, col2 = st.columns(2)
            with col1:
                latitude = st.number_input("Latitude", value=0.0, format="%.6f")
                longitude = st.number_input("Longitude", value=0.0, format="%.6f")
                if st.button("Share Location"):
                    post_step(f"{base}/location", {"latitude": latitude, "longitude": longitude}, timeout=20)
            with col2:
                address = st.text_input("Or enter your address")
                if st.button("Use Address") and address:
                    post_step(f"{base}/location/manual", {"address": address})

        elif state["stage"] == "basic_details" and prompt:
            if prompt["input_type"] == "multiselect":
                value = st.multiselect(prompt["text"], prompt["options"], key=f"detail_{prompt['field']}")
            else:
                value = st.text_input(prompt["text"], key=f"detail_{prompt['field']}")
            if st.button("Continue"):
                post_step(f"{base}/details", {"value": value})

        elif state["stage"] == "chief_complaint" and prompt:
            complaint = st.selectbox(prompt["text"], prompt["options"])
            other = st.text_input("Or describe it in your own words")
            if st.button("Submit Complaint"):
                with st.spinner("Preparing follow-up questions..."):
                    post_step(f"{base}/complaint", {"complaint": other or complaint}, timeout=60)

        elif state["stage"] == "dynamic_questions" and prompt:
            if prompt["input_type"] == "multiselect":
                answer = st.multiselect(prompt["text"], prompt["options"], key=f"answer_{prompt['field']}")
            else:
                answer = st.radio(prompt["text"], prompt["options"], key=f"answer_{prompt['field']}")
            if st.button("Answer"):
                with st.spinner("Thinking..."):
                    post_step(f"{base}/answer", {"answer": answer}, timeout=120)

        elif state["stage"] == "report" and state.get("report"):
            report = state["report"]
            render_report(report["report_data"])
            pdf_download(report["id"], key=f"pdf_{report['id']}")
    else:
        st.info("Click 'New Consultation' to talk to the assistant.")


# -- Reports Tab --

with tab_reports:
    st.subheader("Your Reports")
    try:
        resp = requests.get(f"{API_URL}/reports", params={"user_id": user_id}, timeout=10)
        user_reports = resp.json() if resp.status_code == 200 else []
    except Exception:
        st.error("Could not fetch reports.")
        user_reports = []

    if not user_reports:
        st.info("No reports yet.")
    for report in user_reports:
        with st.expander(f"{report['generated_at'][:10]} - {report['report_data']['estimatedCondition']}"):
            render_report(report["report_data"])
            pdf_download(report["id"], key=f"pdf_list_{report['id']}")
            if st.button("Get Diet Plan", key=f"diet_{report['id']}"):
                with st.spinner("Creating your diet plan..."):
                    try:
                        resp = requests.post(
                            f"{API_URL}/reports/{report['id']}/diet-plan",
                            json={"user_id": user_id},
                            timeout=60,
                        )
                        if resp.status_code == 200:
                            render_diet_plan(resp.json()["diet_data"])
                        else:
                            st.error(f"API error: {resp.status_code} - {resp.text}")
                    except requests.exceptions.Timeout:
                        st.error("Request timed out. Please try again.")
                    except Exception as e:
                        st.error(f"Error: {str(e)}")


# -- Assessments Tab --

with tab_assess:
    st.subheader("Health Assessment")
    assessment_type = st.selectbox("Assessment", ["heart", "brain", "mental", "depression", "vitals"])

    try:
        sections = requests.get(f"{API_URL}/questionnaires", timeout=5).json()["sections"]
    except Exception:
        st.error("Could not fetch the questionnaire.")
        sections = []

    answers = {}
    for section in sections:
        st.markdown(f"**{section['title']}**")
        for question in section["questions"]:
            key = f"{section['id']}_{question['id']}"
            if question["type"] == "select":
                answers[question["question"]] = st.selectbox(question["question"], question["options"], key=key)
            elif question["type"] == "multiselect":
                answers[question["question"]] = ", ".join(
                    st.multiselect(question["question"], question["options"], key=key)
                )
            else:
                answers[question["question"]] = st.text_input(question["question"], key=key)

    if st.button("Analyze", type="primary"):
        with st.spinner("Analyzing your answers..."):
            try:
                resp = requests.post(
                    f"{API_URL}/assessments",
                    json={"user_id": user_id, "assessment_type": assessment_type, "answers": answers},
                    timeout=60,
                )
                if resp.status_code == 200:
                    results = resp.json()["results"]
                    risk = results["risk_level"]
                    if risk == "high":
                        st.error(f"**Risk Level: {risk}**")
                    elif risk == "moderate":
                        st.warning(f"**Risk Level: {risk}**")
                    else:
                        st.success(f"**Risk Level: {risk}**")
                    st.markdown(results["summary"])
                    for item in results["recommendations"]:
                        st.markdown(f"- {item}")
                else:
                    st.error(f"API error: {resp.status_code} - {resp.text}")
            except requests.exceptions.Timeout:
                st.error("Request timed out. Please try again.")
            except Exception as e:
                st.error(f"Error: {str(e)}")

    try:
        history = requests.get(f"{API_URL}/assessments", params={"user_id": user_id}, timeout=10).json()
        summary = history["summary"]
        st.caption(f"{summary['completed']} of {summary['total']} assessments completed")
        for item in history["assessments"]:
            st.markdown(f"- **{item['title']}** ({item['results'].get('risk_level', 'n/a')})")
    except Exception:
        st.warning("Could not fetch assessment history.")


# -- Diet Plans Tab --

with tab_diet:
    st.subheader("Your Diet Plans")
    try:
        plans = requests.get(f"{API_URL}/diet-plans", params={"user_id": user_id}, timeout=10).json()
    except Exception:
        st.error("Could not fetch diet plans.")
        plans = []

    if not plans:
        st.info("Generate a diet plan from one of your reports.")
    for plan in plans:
        condition = (plan.get("reports") or {}).get("report_data", {}).get("estimatedCondition", "Diet plan")
        with st.expander(condition):
            render_diet_plan(plan["diet_data"])


# -- Profile Tab --

with tab_profile:
    st.subheader("Profile")
    try:
        counts = requests.get(f"{API_URL}/dashboard/{user_id}", timeout=10).json()
        col1, col2, col3 = st.columns(3)
        col1.metric("Consultations", counts.get("sessions", 0))
        col2.metric("Reports", counts.get("reports", 0))
        col3.metric("Assessments", counts.get("assessments", 0))
    except Exception:
        st.warning("Could not fetch dashboard counts.")

    try:
        resp = requests.get(f"{API_URL}/profile/{user_id}", timeout=10)
        profile = resp.json() if resp.status_code == 200 else {}
    except Exception:
        st.warning("Could not fetch your profile.")
        profile = {}
    home = profile.get("location") or ""
    if isinstance(home, dict):
        home = home.get("address", "")
    full_name = st.text_input("Full name", value=profile.get("full_name") or "")
    home = st.text_input("Location", value=home)
    if st.button("Save Profile"):
        try:
            resp = requests.put(f"{API_URL}/profile/{user_id}", json={"full_name": full_name, "location": home},
                                timeout=10)
            if resp.status_code == 200:
                st.success("Profile saved.")
            else:
                st.error(f"API error: {resp.status_code} - {resp.text}")
        except Exception as e:
            st.error(f"Error: {str(e)}")
