from services.soap_service.src.prompt import (
    build_soap_prompt,
    compare_token_usage,
    estimate_tokens,
    format_previous_visits,
)
from services.soap_service.src.schemas import PhysicalExamResult, PreviousVisit, SOAPAnalysisContext

ANALYSIS = SOAPAnalysisContext(
    chief_complaint="Right wrist pain",
    key_findings=["Pain 6/10 with gripping"],
    red_flags=[],
)
EXAM = [PhysicalExamResult(test_name="Phalen's test", segment="wrist", result="positive")]
VISITS = [
    PreviousVisit(assessment="Improving", plan="Continue HEP", visit_date="2025-03-10"),
    PreviousVisit(assessment="Acute flare", plan="Rest", visit_date="2025-03-01"),
]


def test_initial_prompt_carries_context_and_regions():
    prompt = build_soap_prompt("Patient reports wrist pain", ANALYSIS, EXAM, visit_type="initial")

    assert "INITIAL ASSESSMENT" in prompt
    assert "Right wrist pain" in prompt
    assert "The following body regions were tested: wrist." in prompt
    assert '"test_name": "Phalen\'s test"' in prompt
    assert "1. Phalen's test: positive" in prompt


def test_follow_up_prompt_numbers_newest_visit_highest():
    prompt = build_soap_prompt("Better this week", ANALYSIS, EXAM, visit_type="follow-up", previous_visits=VISITS)

    assert "FOLLOW-UP" in prompt
    assert prompt.index("PREVIOUS VISIT #2 (2025-03-10)") < prompt.index("PREVIOUS VISIT #1 (2025-03-01)")


def test_session_type_overrides_visit_type():
    wsib = build_soap_prompt("Hurt at work", ANALYSIS, EXAM, visit_type="follow-up", session_type="wsib")
    certificate = build_soap_prompt("Needs a note", ANALYSIS, EXAM, session_type="certificate")

    assert "WSIB (Workplace Safety and Insurance Board)" in wsib
    assert "return-to-work" in wsib
    assert "MEDICAL CERTIFICATE ASSESSMENT" in certificate
    # legal and certificate prompts omit the narrative exam summary
    assert "NARRATIVE SUMMARY" not in wsib


def test_optimized_follow_up_is_shorter():
    standard = build_soap_prompt("Better", ANALYSIS, EXAM, visit_type="follow-up", previous_visits=VISITS)
    optimized = build_soap_prompt(
        "Better", ANALYSIS, EXAM, visit_type="follow-up", previous_visits=VISITS, optimized=True
    )

    stats = compare_token_usage(optimized, standard)
    assert "Last visit: A: Improving | P: Continue HEP" in optimized
    assert stats.optimized_tokens < stats.standard_tokens
    assert stats.reduction == stats.standard_tokens - stats.optimized_tokens
    assert 0 < stats.reduction_percent < 100


def test_token_estimate_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcde") == 2


def test_no_previous_visits():
    assert format_previous_visits([]) == "No previous visit context available"
