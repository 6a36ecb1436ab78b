import re
from typing import List, Optional

from .schemas import ProfessionalProfile

PROMPT_HEADER = """AiDuxCare copilot for Canadian PTs. CPO scope. PHIPA/PIPEDA compliant.
CORE: Expose clinical variables. Never diagnose. Present differential considerations. Highlight when medical referral needed.
Output JSON: {medicolegal_alerts:{red_flags:[],yellow_flags:[],legal_exposure:"low|moderate|high",alert_notes:[]},conversation_highlights:{chief_complaint:"",key_findings:[],medical_history:[],medications:[],summary:""},recommended_physical_tests:[{name:"",objective:"",region:"",rationale:"",evidence_level:"strong|moderate|emerging"}],biopsychosocial_factors:{psychological:[],social:[],occupational:[],protective_factors:[],functional_limitations:[],legal_or_employment_context:[],patient_strengths:[]}}

Rules: {language_rule}. Max 22w/item. Exposure lang ("suggest/consider", NOT "is/has"). Cite provincial (WSIB). No fabrication.

CRITICAL INSTRUCTIONS:
- Red flags: Unexplained weight loss, night pain, neurological deficits, incontinence, systemic infection, major trauma, progressive weakness, cancer history, anticoagulants, steroids, age >65 trauma, symptom escalation on rest, medication interactions (NSAIDs+SSRIs/SNRIs MUST be red_flags, not yellow_flags). Include clinical concern and referral urgency.
- Medications: Format as "name, dosage (units), frequency, duration". Correct dosage errors (oral meds are mg, not g). Flag interactions (NSAIDs+SSRIs/SNRIs = red flag).
- Chief complaint: Capture precise anatomical location, quality, radiation, temporal evolution (onset/progression/triggers), aggravating/relieving factors, functional impact. Include intensity scales and active symptoms.
- Physical tests: Consider anatomical structures, neural involvement (dermatomes, myotomes, spinal segments when indicated), joint integrity, functional capacity. Frame as "Consider assessing..." not "Perform...".
- Temporal info: Capture when symptoms started, evolution over time, medication duration, intervention timelines, progression patterns.
- Biopsychosocial: Comprehensive capture of psychological, social, occupational, functional limitations, protective factors, patient strengths, legal/employment context."""

INSTRUCTIONS_INITIAL = (
    "Analyse the transcript as a clinical reasoning assistant supporting a Canadian physiotherapist. "
    "Expose clinical variables, patterns, and correlations from the patient presentation. "
    "Recommend evidence-based physiotherapy assessments as considerations, not prescriptions. "
    "Summarise biopsychosocial factors comprehensively. "
    "Note when medical imaging or physician follow-up is required because findings exceed physiotherapy scope or pose safety risks."
)

INSTRUCTIONS_FOLLOW_UP = (
    "Analyse this FOLLOW-UP visit transcript as a clinical reasoning assistant supporting a Canadian physiotherapist. "
    "Focus on PROGRESS ASSESSMENT and CLINICAL CONTINUITY rather than initial evaluation: treatment response, "
    "symptom progression, functional gains or limitations, adherence to the previous plan and new concerns. "
    "Recommend physiotherapy assessments ONLY if new concerns arise or progress monitoring requires specific tests. "
    "Summarise biopsychosocial factors with emphasis on changes since last visit."
)

LANGUAGE_RULES = {"en": "EN-CA", "fr": "FR-CA", "es": "ES"}

GENERAL_SPECIALTIES = {"General", "MSK", "Musculoskeletal"}

def sanitize_transcript(text: Optional[str], max_chars: int = 6000) -> str:
    """Collapse whitespace; over the limit keep the tail, where the most recent dialogue is."""
    if not text:
        return ""
    collapsed = re.sub(r"\s+", " ", text).strip()
    if len(collapsed) <= max_chars:
        return collapsed
    return collapsed[len(collapsed) - max_chars:]

def build_micro_context(profile: Optional[ProfessionalProfile]) -> str:
    """Compact clinician flags, empty when everything is default."""
    if profile is None:
        return ""

    flags: List[str] = []
    years = profile.experience_years or 0
    if years < 3:
        flags.append("Junior-guide")
    elif years >= 10:
        flags.append("Senior-terse")
    if profile.specialty and profile.specialty not in GENERAL_SPECIALTIES:
        flags.append(profile.specialty)
    if profile.excluded_techniques:
        flags.append(f"Exclude:{','.join(profile.excluded_techniques)}")

    return f"\n[{']['.join(flags)}]\n" if flags else ""

def build_analysis_prompt(
    transcript: str,
    language: str = "en",
    visit_type: str = "initial",
    profile: Optional[ProfessionalProfile] = None,
    patient_context: str = "Patient under physiotherapy assessment",
) -> str:
    header = PROMPT_HEADER.replace("{language_rule}", LANGUAGE_RULES.get(language, "EN-CA"))
    instructions = INSTRUCTIONS_FOLLOW_UP if visit_type == "follow-up" else INSTRUCTIONS_INITIAL
    visit_flag = "[Follow-up]" if visit_type == "follow-up" else ""

    return f"""{header}{build_micro_context(profile)}{visit_flag}

Patient: {patient_context.strip()}

{instructions}

Transcript:
{transcript.strip()}""".strip()
