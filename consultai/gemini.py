"""Gemini calls: medical chat, question generation, reports, diet plans and assessments."""

import json
import os

from langchain_google_genai import ChatGoogleGenerativeAI, HarmBlockThreshold, HarmCategory

from consultai.models import AssessmentResult, BasicDetails, DietPlan, Question, ReportData

GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")
MAX_QUESTIONS = 10
MAX_OPTIONS = 5

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
}

MEDICAL_DISCLAIMER = (
    "Note: This is an AI-powered medical consultation system. The information provided "
    "is for general guidance only and should not be considered as professional medical "
    "advice. Please consult with a qualified healthcare provider for proper diagnosis "
    "and treatment."
)

CHAT_PROMPT = """You are an AI medical assistant conducting a patient consultation.
Previous conversation:
{history}

Context: {context}

Provide a natural, empathetic response and ask specific follow-up questions.
Keep your response concise and focused."""

QUESTIONS_PROMPT = """Based on the patient's chief complaint of "{complaint}" and context: {context}
Generate 10 relevant multiple choice questions to assess the patient's condition.

Return ONLY a JSON array with this exact structure (no markdown, no explanations, just the raw JSON array):
[
  {{
    "id": "q1",
    "question": "clear question text",
    "type": "select",
    "options": ["option1", "option2", "option3", "option4"]
  }}
]

Requirements:
- Generate EXACTLY 10 questions, no more
- Each question must have 4-5 clear options
- Focus on symptoms, severity, triggers, and impact on daily life
- Questions should be specific to {complaint}
- Make options clear and distinct
- No duplicate questions or options
- Return only the JSON array"""

REPORT_PROMPT = """Based on the following patient information, generate a comprehensive medical report:
Patient Context: {context}

Chief Complaint: {complaint}

Patient Responses:
{responses}

Generate a detailed medical report that includes disease estimation based on symptoms and
appropriate medication recommendations.

IMPORTANT: You MUST return a valid JSON object with this exact structure. Do not include any
explanatory text, markdown, or code blocks. The response must start with '{{' and end with '}}':
{{
  "estimatedCondition": "detailed description of the estimated condition/disease based on symptoms",
  "symptomsAnalysis": "detailed analysis of the symptoms and their correlation",
  "diagnosis": "detailed diagnosis including possible differential diagnoses",
  "treatment": ["array of specific treatment steps"],
  "medications": [
    {{
      "name": "specific medication name",
      "dosage": "precise dosage information",
      "duration": "specific duration of treatment",
      "instructions": "detailed instructions including timing and precautions"
    }}
  ],
  "recommendations": ["array of detailed lifestyle and self-care recommendations"],
  "precautions": "specific precautions and warning signs to watch for",
  "followUp": "specific follow-up instructions including timeframe"
}}

CRITICAL REQUIREMENTS:
1. Be specific with medication names and dosages
2. Always provide at least one medication recommendation with specific details
3. Always provide a specific estimated condition based on the symptoms, not a generic response
4. Always provide specific treatment steps, not generic advice to "consult a healthcare provider"
5. Format your response as a valid JSON object only"""

DIET_PROMPT = """You are a specialized medical nutrition AI. Your task is to generate a diet plan in JSON format.

Patient Details:
Medical Condition: {condition}
Weight: {weight} kg
Height: {height} cm
Allergies: {allergies}
Current Medications: {medications}

IMPORTANT: You must ONLY return a valid JSON object. Do not include any explanatory text,
markdown, or code blocks. Follow this EXACT structure:
{{
  "meals": [
    {{
      "type": "breakfast",
      "suggestions": ["Oatmeal (100g) with berries (50g)"],
      "timing": "7:00 AM - 8:00 AM",
      "portions": "Total meal: 300-350 calories",
      "notes": "Cook oatmeal with low-fat milk."
    }}
  ],
  "guidelines": ["Eat every 3-4 hours to maintain stable blood sugar"],
  "restrictions": ["Limit sodium intake to 2000mg per day"],
  "hydration": "Drink 8-10 glasses (2.5-3L) of water daily",
  "supplements": [{{"name": "Vitamin D3", "dosage": "2000 IU", "timing": "With breakfast"}}],
  "duration": "Follow this plan for 4 weeks, then reassess",
  "specialInstructions": "Take medications 1 hour before meals."
}}

The plan should be tailored to the patient's condition, consider medication interactions, and
account for allergies. Include at least 3 meals and 2 snacks in the meals array. Each meal should
have 3-5 specific food suggestions with exact portions. Use metric units (g, ml, mg)."""

ASSESSMENT_PROMPT = """Analyze the following medical assessment responses for a {assessment_type} assessment:

{answers}

Respond with ONLY this JSON (no markdown, no extra text):
{{
  "summary": "<summary of the assessment>",
  "recommendations": ["<key recommendation>"],
  "risk_level": "<low | moderate | high>",
  "follow_up_required": <true | false>
}}"""

DEFAULT_OPTIONS = ["Yes", "No", "Sometimes", "Not sure"]

GENERIC_PHRASE = "consult with a healthcare provider"

DEFAULT_RECOMMENDATIONS = [
    "Maintain adequate rest and sleep",
    "Stay hydrated with at least 8 glasses of water daily",
    "Eat a balanced diet rich in fruits and vegetables",
    "Avoid triggers that may worsen symptoms",
]

FALLBACK_DIET_PLAN = {
    "meals": [
        {
            "type": "breakfast",
            "suggestions": ["Oatmeal with fruits", "Whole grain toast with eggs"],
            "timing": "7:00 AM - 8:00 AM",
            "portions": "Standard serving sizes",
            "notes": "Adjust portions based on hunger levels",
        },
        {
            "type": "lunch",
            "suggestions": ["Grilled chicken with vegetables", "Vegetable soup with whole grain bread"],
            "timing": "12:00 PM - 1:00 PM",
            "portions": "Standard serving sizes",
            "notes": "Focus on lean proteins and vegetables",
        },
        {
            "type": "dinner",
            "suggestions": ["Baked fish with quinoa", "Stir-fried vegetables with tofu"],
            "timing": "6:00 PM - 7:00 PM",
            "portions": "Standard serving sizes",
            "notes": "Light dinner to aid digestion before sleep",
        },
    ],
    "guidelines": ["Eat balanced meals", "Stay hydrated", "Limit processed foods"],
    "restrictions": ["Avoid excessive caffeine", "Limit alcohol consumption"],
    "hydration": "Drink 8-10 glasses of water daily",
    "supplements": [],
    "duration": "Follow this plan until symptoms improve",
    "specialInstructions": "Adjust diet based on individual tolerance and symptom response",
}


def _build_llm():
    return ChatGoogleGenerativeAI(
        model=GEMINI_MODEL,
        google_api_key=os.environ.get("GOOGLE_API_KEY"),
        temperature=0.4,
        safety_settings=SAFETY_SETTINGS,
    )


def _generate(prompt: str) -> str:
    content = _build_llm().invoke([("user", prompt)]).content
    if isinstance(content, list):
        # Newer Gemini models return a list of content parts.
        content = "".join(p if isinstance(p, str) else p.get("text", "") for p in content)
    return content


def parse_json_response(raw_text: str):
    """Parse a JSON value out of an LLM reply, tolerating code fences and chatter."""
    text = raw_text
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        text = text.split("```")[1].split("```")[0]

    try:
        return json.loads(text.strip())
    except json.JSONDecodeError:
        # Whichever bracket opens first is the outermost value.
        openers = [(raw_text.find(o), o, c) for o, c in (("{", "}"), ("[", "]")) if o in raw_text]
        for first, open_char, close_char in sorted(openers):
            last = raw_text.rfind(close_char)
            if last > first:
                try:
                    return json.loads(raw_text[first:last + 1])
                except json.JSONDecodeError:
                    continue
        raise


# -- Free-text chat --

def process_medical_chat(messages: list[dict], context: str = "") -> str:
    history = "\n".join(f"{m['role']}: {m['content']}" for m in messages)
    return _generate(CHAT_PROMPT.format(history=history, context=context))


# -- Dynamic questions --

def fallback_questions(complaint: str) -> list[Question]:
    return [
        Question(
            id="q1",
            question=f"How long have you been experiencing {complaint}?",
            options=["Less than 24 hours", "1-3 days", "4-7 days", "More than a week"],
        ),
        Question(
            id="q2",
            question=f"How severe is your {complaint}?",
            options=[
                "Mild - barely noticeable",
                "Moderate - noticeable but manageable",
                "Severe - affects daily activities",
                "Very severe - needs immediate attention",
            ],
        ),
        Question(
            id="q3",
            question="Does anything make it better or worse?",
            options=[
                "Gets better with rest",
                "Gets worse with activity",
                "Varies throughout the day",
                "No clear pattern",
            ],
        ),
    ]


def generate_dynamic_questions(complaint: str, context: str) -> list[Question]:
    raw_text = _generate(QUESTIONS_PROMPT.format(complaint=complaint, context=context))

    try:
        parsed = parse_json_response(raw_text)
        if not isinstance(parsed, list) or not parsed:
            raise ValueError("Response is not a non-empty array")
    except (json.JSONDecodeError, ValueError) as e:
        print(f"[Gemini] Could not parse questions, using fallback: {e}")
        return fallback_questions(complaint)

    questions = []
    for index, q in enumerate(parsed[:MAX_QUESTIONS]):
        q = q if isinstance(q, dict) else {}
        options = q.get("options")
        if isinstance(options, list) and options:
            options = [str(o) for o in options[:MAX_OPTIONS]]
        else:
            options = list(DEFAULT_OPTIONS)
        questions.append(Question(
            id=f"q{index + 1}",
            question=str(q.get("question") or f"Question {index + 1}"),
            type="select",
            options=options,
        ))
    return questions


# -- Diet plans --

def _validate_diet_plan(data) -> DietPlan:
    if not isinstance(data, dict):
        raise ValueError("Invalid diet plan: not an object")
    if not isinstance(data.get("meals"), list) or not data["meals"]:
        raise ValueError("Invalid diet plan: missing or empty meals array")
    if not isinstance(data.get("guidelines"), list):
        raise ValueError("Invalid diet plan: missing guidelines")
    if not isinstance(data.get("restrictions"), list):
        raise ValueError("Invalid diet plan: missing restrictions")
    if not data.get("hydration"):
        raise ValueError("Invalid diet plan: missing hydration information")
    return DietPlan.model_validate(data)


def fallback_diet_plan() -> DietPlan:
    return DietPlan.model_validate(FALLBACK_DIET_PLAN)


def generate_diet_plan(
    condition: str,
    weight: float | None,
    height: float | None,
    allergies: list[str],
    medications: list[dict],
) -> DietPlan:
    prompt = DIET_PROMPT.format(
        condition=condition,
        weight=weight if weight is not None else "unknown",
        height=height if height is not None else "unknown",
        allergies=", ".join(allergies) or "None reported",
        medications=", ".join(f"{m.get('name')} ({m.get('dosage')})" for m in medications) or "None",
    )
    raw_text = _generate(prompt)

    try:
        return _validate_diet_plan(parse_json_response(raw_text))
    except (json.JSONDecodeError, ValueError) as e:
        print(f"[Gemini] Could not parse diet plan, using fallback: {e}")
        return fallback_diet_plan()


# -- Medical reports --

def default_medication(complaint: str) -> dict:
    lower = complaint.lower()
    if "pain" in lower:
        return {
            "name": "Ibuprofen (Advil, Motrin)",
            "dosage": "400-600mg",
            "duration": "Every 6-8 hours as needed for pain, not to exceed 3200mg per day",
            "instructions": "Take with food to reduce stomach irritation. Not recommended for "
                            "those with kidney problems or certain heart conditions.",
        }
    if "cough" in lower or "cold" in lower or "flu" in lower:
        return {
            "name": "Dextromethorphan (Robitussin DM)",
            "dosage": "10-20mg",
            "duration": "Every 4 hours as needed, not to exceed 120mg per day",
            "instructions": "May cause drowsiness. Drink plenty of water. Avoid alcohol.",
        }
    if "allergy" in lower or "itch" in lower:
        return {
            "name": "Cetirizine (Zyrtec)",
            "dosage": "10mg",
            "duration": "Once daily",
            "instructions": "May cause drowsiness. Take at the same time each day for best results.",
        }
    return {
        "name": "Acetaminophen (Tylenol)",
        "dosage": "500-1000mg",
        "duration": "As needed for symptom relief, not to exceed 3000mg per day",
        "instructions": "Take with food. Do not combine with other medications containing acetaminophen.",
    }


def _default_sections(complaint: str) -> dict:
    return {
        "estimatedCondition": f"Possible {complaint}-related condition based on reported symptoms",
        "symptomsAnalysis": (
            f"The reported symptoms of {complaint} suggest potential underlying issues "
            "that should be evaluated by a healthcare professional."
        ),
        "diagnosis": f"Preliminary assessment suggests symptoms consistent with {complaint}-related conditions",
        "treatment": [
            f"Rest and monitor {complaint} symptoms",
            "Stay hydrated and maintain a balanced diet",
            "Consider over-the-counter remedies appropriate for symptoms",
            "Seek professional medical evaluation if symptoms persist or worsen",
        ],
        "medications": [default_medication(complaint)],
        "recommendations": list(DEFAULT_RECOMMENDATIONS),
        "precautions": (
            f"If {complaint} symptoms worsen, or if you develop fever, severe pain, or "
            "difficulty breathing, seek immediate medical attention."
        ),
        "followUp": "Schedule an appointment with your primary care physician within the next 7 days "
                    "if symptoms persist.",
    }


def _is_generic(value, *phrases: str) -> bool:
    if not value:
        return True
    lower = str(value).lower()
    return any(p.lower() in lower for p in phrases)


def _fill_weak_sections(data: dict, complaint: str) -> dict:
    """Replace missing or boilerplate sections with complaint-specific defaults."""
    defaults = _default_sections(complaint)

    if _is_generic(data.get("estimatedCondition"), "Unable to estimate", GENERIC_PHRASE):
        data["estimatedCondition"] = defaults["estimatedCondition"]
    if _is_generic(data.get("symptomsAnalysis"), "requires professional medical evaluation"):
        data["symptomsAnalysis"] = defaults["symptomsAnalysis"]
    if _is_generic(data.get("diagnosis"), "Unable to generate diagnosis"):
        data["diagnosis"] = defaults["diagnosis"]

    treatment = data.get("treatment")
    if not isinstance(treatment, list) or not treatment or _is_generic(treatment[0], GENERIC_PHRASE):
        data["treatment"] = defaults["treatment"]

    medications = data.get("medications")
    if (
        not isinstance(medications, list)
        or not medications
        or not isinstance(medications[0], dict)
        or _is_generic(medications[0].get("name"), "No medications")
    ):
        data["medications"] = defaults["medications"]

    recommendations = data.get("recommendations")
    if not isinstance(recommendations, list) or not recommendations or _is_generic(recommendations[0], GENERIC_PHRASE):
        data["recommendations"] = defaults["recommendations"]

    for key in ("precautions", "followUp"):
        if not data.get(key):
            data[key] = defaults[key]
    return data


def fallback_report(complaint: str) -> ReportData:
    data = _default_sections(complaint)
    data["dietPlan"] = FALLBACK_DIET_PLAN
    return ReportData.model_validate(data)


def generate_medical_report(
    basic_details: dict,
    chief_complaint: str,
    answers: list[dict],
    location: dict | None,
    context: str,
) -> ReportData:
    """Generate the consultation report, attaching a diet plan and the patient's basics.

    ``answers`` is a list of ``{"question", "answer"}`` pairs. Malformed model output
    yields the fallback report rather than an exception.
    """
    responses = "\n".join(f"Q: {a['question']}\nA: {a['answer']}" for a in answers)
    if location and location.get("address"):
        context = f"{context}\nLocation: {location['address']}"
    raw_text = _generate(REPORT_PROMPT.format(
        context=context,
        complaint=chief_complaint,
        responses=responses,
    ))

    try:
        parsed = parse_json_response(raw_text)
        if not isinstance(parsed, dict):
            raise ValueError("Report is not a JSON object")
        report = ReportData.model_validate(_fill_weak_sections(parsed, chief_complaint))
    except (json.JSONDecodeError, ValueError) as e:
        print(f"[Gemini] Could not parse report, using fallback: {e}")
        report = fallback_report(chief_complaint)
        report.basic_details = BasicDetails.model_validate(basic_details)
        return report

    report.diet_plan = generate_diet_plan(
        condition=report.estimated_condition,
        weight=basic_details.get("weight"),
        height=basic_details.get("height"),
        allergies=basic_details.get("allergies") or [],
        medications=[m.model_dump() for m in report.medications],
    )
    report.basic_details = BasicDetails.model_validate(basic_details)
    return report


# -- Assessments --

def _parse_assessment_text(text: str) -> AssessmentResult:
    """Heading-split reading of a prose assessment reply."""
    summary = ""
    if "Summary:" in text:
        summary = text.split("Summary:")[1].split("Recommendations:")[0].strip()

    recommendations = []
    if "Recommendations:" in text:
        block = text.split("Recommendations:")[1].split("Risk Level:")[0]
        recommendations = [
            line.strip().lstrip("-*").strip()
            for line in block.split("\n")
            if line.strip()
        ]

    lower = text.lower()
    if "high risk" in lower:
        risk_level = "high"
    elif "moderate risk" in lower:
        risk_level = "moderate"
    else:
        risk_level = "low"

    return AssessmentResult(
        summary=summary or text.strip(),
        recommendations=recommendations,
        risk_level=risk_level,
        follow_up_required="follow-up recommended" in lower or "consult healthcare provider" in lower,
    )


def process_medical_assessment(assessment_type: str, answers: dict[str, str], user_id: str) -> AssessmentResult:
    prompt = ASSESSMENT_PROMPT.format(
        assessment_type=assessment_type,
        answers="\n".join(f"- {q}: {a}" for q, a in answers.items()),
    )
    raw_text = _generate(prompt)

    try:
        parsed = parse_json_response(raw_text)
        if not isinstance(parsed, dict):
            raise ValueError("Assessment is not a JSON object")
        risk = str(parsed.get("risk_level", "low")).lower()
        parsed["risk_level"] = risk if risk in ("low", "moderate", "high") else "low"
        return AssessmentResult.model_validate(parsed)
    except (json.JSONDecodeError, ValueError):
        print(f"[Gemini] Assessment for user {user_id} was not JSON, parsing headings")
        return _parse_assessment_text(raw_text)
