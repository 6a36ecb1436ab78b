"""
SOAP prompt factory: initial assessment, follow-up, WSIB/MVA, certificate and
the optimized follow-up variant.
"""

import json
import math
from typing import Dict, List, Optional

from .schemas import PhysicalExamResult, PreviousVisit, SOAPAnalysisContext, TokenOptimization

ROLE_HEADER = """You are a clinical documentation assistant for a registered physiotherapist in Ontario, Canada. Generate a SOAP note for {visit_label}.

ROLE:
- You assist with documentation, you do NOT diagnose
- Use language: "Patterns consistent with..." not "Patient has..."
- Reflect ONLY information provided by the clinician
- Output in Canadian English (en-CA)
- Use Canadian medical terminology and spelling (e.g., "physiotherapy" not "physical therapy", "registered" not "licensed")
- {focus}"""

STANDARDS = """CLINICAL DOCUMENTATION STANDARDS - EMR-READY:
- CONCISE but complete - each section serves its SPECIFIC purpose
- NO repetition between sections - each section adds NEW clinical information
- Use standard medical terminology and abbreviations (ROM, B/L, R/L, /10)
- TARGET LENGTH: Total SOAP <1200 characters (ideal 800-1000 chars)"""

INITIAL_SECTIONS = """SOAP SECTION PURPOSES:
**SUBJECTIVE:** chief complaint and symptom description, functional limitations and aggravating factors, patient's goals, relevant history (brief). DO NOT include objective findings here.
**OBJECTIVE:** key physical examination results, significant test findings, measurable data (ROM degrees, strength grades, pain scales). Include KEY FINDINGS from the clinical analysis (imaging, lab findings). DO NOT repeat complaints from Subjective.
**ASSESSMENT:** clinical reasoning based on S+O findings, key impairments, prognosis indicators. DO NOT repeat examination details from Objective."""

FOLLOW_UP_SECTIONS = """SOAP SECTION PURPOSES:
**SUBJECTIVE:** changes since last visit, treatment response, patient-reported outcomes, new concerns.
**OBJECTIVE:** re-assessment findings compared to baseline, progress measures (use numbers to show change).
**ASSESSMENT:** progress and treatment effectiveness, reasoning for plan modifications, brief comparison to previous visit."""

CERTIFICATE_SECTIONS = """SOAP SECTION PURPOSES:
**SUBJECTIVE:** specific functional limitations, work or activity restrictions, impact on daily activities.
**OBJECTIVE:** findings relevant to the certificate purpose with specific measurements (ROM, strength, functional capacity).
**ASSESSMENT:** functional capacity assessment and specific limitations identified, focused on the certificate purpose."""

PLAN_FORMAT = """**PLAN:** MUST use this structured format (parsed for "Today's Plan" in follow-up visits):
- Interventions: [specific interventions]
- Modalities: [TENS, Tecar therapy, US, etc. or "None"]
- Home Exercises: [specific exercises or "None"]
- Patient Education: [topics or "None"]
- Goals: [measurable treatment goals]
- Follow-up: [next appointment]
- Next Session Focus: [what to focus on next visit]"""

OUTPUT_FORMAT = """OUTPUT FORMAT (JSON):
{
  "subjective": "MAX 200 chars",
  "objective": "MAX 350 chars",
  "assessment": "MAX 250 chars",
  "plan": "Structured format above. MAX 500 chars"
}"""

REGION_RULES = """CRITICAL REGIONAL RESTRICTION RULES:
1. In the Objective section, describe ONLY findings from the tested region(s)
2. Do NOT mention any body regions, anatomical structures, or body parts that are NOT represented in the test list
3. Do NOT infer or assume tests were performed on regions not listed
4. This is a legal medical document - accuracy and precision are mandatory"""

CRITICAL_RULES = """CRITICAL RULES:
- No medical diagnoses (physiotherapists do not diagnose)
- No prescription of medications (outside scope of practice)
- Use "Patterns consistent with..." language, not "Patient has..."
- Reflect ONLY the information provided above; do NOT add information not present in the provided data"""

SESSION_CONTEXT: Dict[str, str] = {
    "wsib": (
        "WSIB claim documentation. Capture the mechanism of injury and date of injury, job demands, "
        "functional abilities relevant to modified duties, and return-to-work recommendations."
    ),
    "mva": (
        "Motor vehicle accident documentation. Capture the accident date and mechanism, whether the "
        "presentation fits the Minor Injury Guideline, functional impairments and activity limitations."
    ),
    "certificate": (
        "Medical certificate assessment. Document only the functional limitations, work or activity "
        "restrictions and expected duration relevant to the certificate purpose."
    ),
}

def _bullets(items: List[str], empty: str) -> str:
    return "\n- ".join(items) if items else empty

def tested_regions_from_exam(results: List[PhysicalExamResult]) -> List[str]:
    regions: List[str] = []
    for r in results:
        if r.segment and r.segment not in regions:
            regions.append(r.segment)
    return regions

def _tested_regions_line(results: List[PhysicalExamResult]) -> str:
    regions = tested_regions_from_exam(results)
    if not regions:
        return "No specific regions identified from test list. Describe only the tests performed."
    return f"The following body regions were tested: {', '.join(regions)}. ONLY describe findings from these regions."

def _exam_narrative(results: List[PhysicalExamResult]) -> str:
    lines = [
        f"{i}. {r.test_name}: {r.result or 'undocumented'}{f' - {r.findings_text}' if r.findings_text else ''}"
        for i, r in enumerate(results, start=1)
    ]
    return "\n".join(lines) or "No tests performed"

def _physical_exam_block(results: List[PhysicalExamResult], with_narrative: bool = True) -> str:
    structured = json.dumps([r.model_dump(exclude_none=True) for r in results], indent=2)
    block = f"""PHYSICAL EXAMINATION: STRUCTURED DATA (SOURCE OF TRUTH):
Use ONLY these tests and findings when describing the physical exam. Do NOT add tests or results that are not present here.

{REGION_RULES}

TESTED REGIONS (extracted from test list):
{_tested_regions_line(results)}

physical_evaluation_structured:
{structured}"""
    if with_narrative:
        block += f"\n\nPHYSICAL EXAMINATION: NARRATIVE SUMMARY (for reference):\n{_exam_narrative(results)}"
    return block

def _analysis_block(transcript: str, analysis: SOAPAnalysisContext) -> str:
    bps = analysis.biopsychosocial
    return f"""CONTEXT DATA:

TRANSCRIPT:
{transcript or 'No transcript available'}

CHIEF COMPLAINT:
{analysis.chief_complaint or 'Not specified'}

KEY FINDINGS:
{_bullets(analysis.key_findings, 'None documented')}

MEDICAL HISTORY:
{_bullets(analysis.medical_history, 'None documented')}

MEDICATIONS:
{_bullets(analysis.medications, 'None documented')}

RED FLAGS:
{_bullets(analysis.red_flags, 'None identified')}

YELLOW FLAGS:
{_bullets(analysis.yellow_flags, 'None identified')}

BIOPSYCHOSOCIAL FACTORS:
- Occupational: {'; '.join(bps.occupational) or 'None'}
- Protective factors: {'; '.join(bps.protective) or 'None'}
- Functional limitations: {'; '.join(bps.functional_limitations) or 'None'}
- Patient strengths: {'; '.join(bps.patient_strengths) or 'None'}"""

def format_previous_visits(previous_visits: List[PreviousVisit]) -> str:
    """Visits arrive newest first; the newest gets the highest number."""
    if not previous_visits:
        return "No previous visit context available"
    total = len(previous_visits)
    blocks = []
    for idx, prev in enumerate(previous_visits):
        date = f" ({prev.visit_date})" if prev.visit_date else ""
        blocks.append(f"\nPREVIOUS VISIT #{total - idx}{date}:\nAssessment: {prev.assessment}\nPlan: {prev.plan}")
    return "\n---\n".join(blocks)

def build_initial_assessment_prompt(
    transcript: str,
    analysis: SOAPAnalysisContext,
    exam_results: List[PhysicalExamResult],
) -> str:
    header = ROLE_HEADER.format(
        visit_label="an INITIAL ASSESSMENT visit",
        focus="This is an INITIAL ASSESSMENT - be thorough and complete",
    )
    return "\n\n".join(
        [
            header,
            STANDARDS,
            INITIAL_SECTIONS,
            PLAN_FORMAT,
            OUTPUT_FORMAT,
            _analysis_block(transcript, analysis),
            _physical_exam_block(exam_results),
            CRITICAL_RULES,
        ]
    )

def build_follow_up_prompt(
    transcript: str,
    analysis: SOAPAnalysisContext,
    exam_results: List[PhysicalExamResult],
    previous_visits: List[PreviousVisit],
) -> str:
    header = ROLE_HEADER.format(
        visit_label="a FOLLOW-UP/TREATMENT CONTINUITY visit",
        focus="This is a FOLLOW-UP visit - focus on changes and progress",
    )
    current = f"""PREVIOUS VISIT CONTEXT:
{format_previous_visits(previous_visits)}

CURRENT VISIT DATA:

TRANSCRIPT:
{transcript or 'No transcript available'}

CHANGES/NEW CONCERNS:
{_bullets(analysis.key_findings, 'No new concerns reported')}

MEDICATIONS (current):
{_bullets(analysis.medications, 'No changes')}

RED FLAGS:
{_bullets(analysis.red_flags, 'None identified')}

YELLOW FLAGS:
{_bullets(analysis.yellow_flags, 'None identified')}"""
    return "\n\n".join(
        [
            header,
            STANDARDS,
            FOLLOW_UP_SECTIONS,
            PLAN_FORMAT,
            OUTPUT_FORMAT,
            current,
            _physical_exam_block(exam_results),
            CRITICAL_RULES + "\n- Compare to previous visit ONCE, then focus on current findings",
        ]
    )

def build_optimized_follow_up_prompt(
    transcript: str,
    analysis: SOAPAnalysisContext,
    exam_results: List[PhysicalExamResult],
    previous_visits: List[PreviousVisit],
) -> str:
    """Follow-up prompt without the narrative guidance blocks."""
    last = previous_visits[0] if previous_visits else None
    previous = f"Last visit: A: {last.assessment} | P: {last.plan}" if last else "Last visit: none on record"
    return "\n\n".join(
        [
            "Physiotherapy FOLLOW-UP SOAP note. en-CA. No diagnosis. Reflect only the data below.",
            previous,
            f"Transcript:\n{transcript or 'No transcript available'}",
            f"Changes: {'; '.join(analysis.key_findings) or 'None reported'}",
            f"Red flags: {'; '.join(analysis.red_flags) or 'None'}",
            f"Tested regions: {', '.join(tested_regions_from_exam(exam_results)) or 'none'}. Objective covers ONLY these.",
            f"Tests:\n{_exam_narrative(exam_results)}",
            'Return JSON {"subjective","objective","assessment","plan"}; plan uses Interventions/Modalities/'
            "Home Exercises/Patient Education/Goals/Follow-up/Next Session Focus. Total <1200 chars.",
        ]
    )

def build_legal_prompt(
    transcript: str,
    analysis: SOAPAnalysisContext,
    exam_results: List[PhysicalExamResult],
    session_type: str,
) -> str:
    label = (
        "WSIB (Workplace Safety and Insurance Board)" if session_type == "wsib" else "MVA (Motor Vehicle Accident)"
    )
    header = ROLE_HEADER.format(
        visit_label=f"a {label} ASSESSMENT visit",
        focus=(
            f"This is a {label} assessment - include injury mechanism, work-related factors or accident details, "
            "functional limitations affecting work capacity, and return-to-work recommendations\n"
            "- Ensure medico-legal clarity and precision"
        ),
    )
    return "\n\n".join(
        [
            header,
            f"SESSION-SPECIFIC CONTEXT:\n{SESSION_CONTEXT[session_type]}",
            STANDARDS,
            INITIAL_SECTIONS,
            PLAN_FORMAT,
            OUTPUT_FORMAT,
            _analysis_block(transcript, analysis),
            _physical_exam_block(exam_results, with_narrative=False),
            CRITICAL_RULES + "\n- Include work-related functional limitations and return-to-work considerations",
        ]
    )

def build_certificate_prompt(
    transcript: str,
    analysis: SOAPAnalysisContext,
    exam_results: List[PhysicalExamResult],
) -> str:
    header = ROLE_HEADER.format(
        visit_label="a MEDICAL CERTIFICATE ASSESSMENT",
        focus=(
            "This is a CERTIFICATE assessment - focus on specific functional limitations, work restrictions, "
            "or activity limitations relevant to the certificate purpose\n- Be precise and objective"
        ),
    )
    return "\n\n".join(
        [
            header,
            f"SESSION-SPECIFIC CONTEXT:\n{SESSION_CONTEXT['certificate']}",
            STANDARDS,
            CERTIFICATE_SECTIONS,
            PLAN_FORMAT,
            OUTPUT_FORMAT,
            _analysis_block(transcript, analysis),
            _physical_exam_block(exam_results, with_narrative=False),
            CRITICAL_RULES,
        ]
    )

def build_soap_prompt(
    transcript: str,
    analysis: SOAPAnalysisContext,
    exam_results: List[PhysicalExamResult],
    visit_type: str = "initial",
    session_type: Optional[str] = None,
    previous_visits: Optional[List[PreviousVisit]] = None,
    optimized: bool = False,
) -> str:
    """Session-specific prompts first, then the visit type decides."""
    if session_type in ("wsib", "mva"):
        return build_legal_prompt(transcript, analysis, exam_results, session_type)
    if session_type == "certificate":
        return build_certificate_prompt(transcript, analysis, exam_results)

    if visit_type == "initial":
        return build_initial_assessment_prompt(transcript, analysis, exam_results)
    if optimized:
        return build_optimized_follow_up_prompt(transcript, analysis, exam_results, previous_visits or [])
    return build_follow_up_prompt(transcript, analysis, exam_results, previous_visits or [])

def estimate_tokens(text: str) -> int:
    # ~4 characters per token for English clinical text
    return math.ceil(len(text) / 4)

def compare_token_usage(optimized_prompt: str, standard_prompt: str) -> TokenOptimization:
    optimized = estimate_tokens(optimized_prompt)
    standard = estimate_tokens(standard_prompt)
    reduction = standard - optimized
    percent = round(reduction / standard * 100, 1) if standard else 0.0
    return TokenOptimization(
        optimized_tokens=optimized,
        standard_tokens=standard,
        reduction=reduction,
        reduction_percent=percent,
    )
