from typing import Optional

from .schemas import ClinicalInfoContext

LANGUAGE_LABELS = {"es": "Spanish", "fr": "Canadian French"}

TOPICS = {
    "medication": "general medication considerations in physiotherapy contexts",
    "tecartherapy": "tecartherapy usage principles for musculoskeletal conditions",
    "modality": "physical modality mechanisms and clinical considerations",
    "exercise_safety": "exercise prescription safety cues for physiotherapy patients",
    "flag_criteria": "red-flag and referral indicators for physiotherapy triage",
    "rom_norms": "functional range of motion norms and clinical interpretation",
}

def language_label(language: str) -> str:
    return LANGUAGE_LABELS.get(language, "Canadian English")

def build_voice_summary_prompt(transcript: str, language: str) -> str:
    return f"""You are AiDuxCare's physiotherapy assistant helping a Canadian clinician.
Summarize the following consultation transcript in {language_label(language)} using 3 concise bullet points.
Focus on clinician observations, patient concerns, and safety alerts.
Do NOT include patient identifiers, prescriptions, or dosage instructions.
End with "Review required by clinician.".
Transcript:
\"\"\"
{transcript.strip()}
\"\"\""""

def build_clinical_info_prompt(
    query_text: str,
    category: str,
    language: str,
    context: Optional[ClinicalInfoContext] = None,
) -> str:
    topic = TOPICS.get(category, "physiotherapy clinical context")

    parts = []
    if context is not None:
        if context.medication_name:
            parts.append(f"Medication focus: {context.medication_name}")
        if context.condition_or_region:
            parts.append(f"Region/condition focus: {context.condition_or_region}")
        if context.modality_name:
            parts.append(f"Modality focus: {context.modality_name}")
    extra = f"\nContext: {' · '.join(parts)}" if parts else ""

    return f"""You are AiDuxCare's informational assistant for Canadian physiotherapists.{extra}
Provide high-level, evidence-informed context about {topic}.
Respond in {language_label(language)} with 2-3 short bullet points and finish with a caution sentence about clinical judgment.
Do NOT provide medical prescriptions, doses, or detailed treatment schedules.
Do NOT provide parameter ranges, frequencies, or session counts.
Emphasize that guidance is informational only and requires clinician decision-making.
Query: {query_text.strip()}"""
