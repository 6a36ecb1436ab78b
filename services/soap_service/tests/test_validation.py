from services.soap_service.src.schemas import PhysicalExamResult, SOAPNote
from services.soap_service.src.validation import (
    SECTION_LIMITS,
    condense,
    detect_repetition,
    truncate_soap_to_limits,
    validate_soap,
)


def note(**overrides):
    base = dict(
        subjective="Right wrist pain for 2 weeks.",
        objective="Phalen's test positive. Wrist extension 50 degrees.",
        assessment="Patterns consistent with median nerve irritation.",
        plan="Interventions: splinting. Home Exercises: nerve glides.",
    )
    base.update(overrides)
    return SOAPNote(**base)


def test_concise_note_is_valid():
    result = validate_soap(note())

    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []
    assert result.total_characters == sum(result.section_lengths.values())


def test_hard_limit_is_an_error_and_guideline_a_warning():
    result = validate_soap(note(objective="a" * 701, subjective="b" * 250))

    assert not result.is_valid
    assert any(e.startswith("objective exceeds 700") for e in result.errors)
    assert any(w.startswith("subjective above 200") for w in result.warnings)


def test_repeated_phrase_across_sections():
    phrase = "pain worse with prolonged sitting"
    check = detect_repetition(note(subjective=f"Reports {phrase}.", assessment=f"Likely {phrase} pattern."))

    assert check.has_repetition
    assert "pain worse with prolonged sitting" in check.repeated_phrases


def test_objective_mentioning_untested_region():
    exam = [PhysicalExamResult(test_name="Phalen's test", segment="wrist", result="positive")]
    result = validate_soap(note(objective="Phalen's positive. Lumbar flexion limited."), exam)

    assert result.region_violations == ["lumbar"]
    assert result.is_valid


def test_no_exam_means_no_region_check():
    assert validate_soap(note(objective="Knee and hip ROM full.")).region_violations == []


def test_condense_prefers_sentence_boundary():
    text = "First sentence is here. Second sentence is a bit longer than the first."
    assert condense(text, 40) == "First sentence is here."
    assert condense("short", 40) == "short"


def test_condense_falls_back_to_word_boundary():
    out = condense("alpha beta gamma delta epsilon", 14)
    assert out == "alpha beta…"
    assert len(out) <= 14


def test_truncate_brings_sections_within_limits():
    long_note = note(plan="Continue exercises daily. " * 60)

    trimmed = truncate_soap_to_limits(long_note)

    assert len(trimmed.plan) <= SECTION_LIMITS["plan"][1]
    assert trimmed.subjective == long_note.subjective
    assert validate_soap(trimmed).is_valid
