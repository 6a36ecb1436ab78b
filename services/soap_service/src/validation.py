"""
Length, repetition and anatomical-region checks for generated SOAP notes.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .schemas import PhysicalExamResult, SOAPNote

SECTIONS = ("subjective", "objective", "assessment", "plan")

# (guideline, hard limit) in characters
SECTION_LIMITS: Dict[str, Tuple[int, int]] = {
    "subjective": (200, 400),
    "objective": (350, 700),
    "assessment": (250, 500),
    "plan": (500, 1000),
}
TOTAL_GUIDELINE = 1200
TOTAL_HARD_LIMIT = 2400

REPETITION_PHRASE_WORDS = 5

REGION_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "wrist": ("wrist", "carpal", "scaphoid", "phalen", "tinel", "finkelstein", "tfcc"),
    "lumbar": ("lumbar", "low back", "lower back", "slr", "straight leg raise", "slump", "sacroiliac", "l4", "l5", "s1"),
    "cervical": ("cervical", "neck", "spurling", "c5", "c6", "c7", "upper limb tension"),
    "shoulder": ("shoulder", "rotator cuff", "glenohumeral", "supraspinatus", "hawkins", "neer", "empty can"),
    "knee": ("knee", "patella", "patellar", "lachman", "mcmurray", "acl", "meniscus", "meniscal"),
    "ankle": ("ankle", "talofibular", "achilles", "thompson", "talar tilt"),
    "hip": ("hip", "faber", "fadir", "trendelenburg", "acetabular", "femoroacetabular"),
    "thoracic": ("thoracic", "rib", "costovertebral", "t4", "t6"),
}

@dataclass
class RepetitionCheck:
    has_repetition: bool = False
    repeated_phrases: List[str] = field(default_factory=list)

@dataclass
class SOAPValidation:
    is_valid: bool
    total_characters: int
    section_lengths: Dict[str, int]
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    repetition_check: RepetitionCheck = field(default_factory=RepetitionCheck)
    region_violations: List[str] = field(default_factory=list)

def _mentions(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}\b", text) is not None

def detect_regions(text: str) -> Set[str]:
    lowered = (text or "").lower()
    return {
        region for region, keywords in REGION_KEYWORDS.items()
        if any(_mentions(lowered, kw) for kw in keywords)
    }

def tested_regions(results: Iterable[PhysicalExamResult]) -> Set[str]:
    """Regions covered by the exam, from the segment label or the test name."""
    regions: Set[str] = set()
    for r in results:
        regions |= detect_regions(" ".join(filter(None, [r.segment, r.test_name])))
    return regions

def detect_repetition(soap: SOAPNote, phrase_words: int = REPETITION_PHRASE_WORDS) -> RepetitionCheck:
    counts: Counter = Counter()
    for section in SECTIONS:
        words = re.findall(r"[a-z0-9/']+", getattr(soap, section).lower())
        counts.update(
            " ".join(words[i: i + phrase_words]) for i in range(len(words) - phrase_words + 1)
        )
    repeated = sorted(phrase for phrase, n in counts.items() if n > 1)
    return RepetitionCheck(has_repetition=bool(repeated), repeated_phrases=repeated)

def validate_objective_regions(objective: str, regions: Set[str]) -> List[str]:
    """Regions the objective mentions that no test covered. No tests, nothing to check against."""
    if not regions:
        return []
    return sorted(detect_regions(objective) - regions)

def validate_soap(soap: SOAPNote, exam_results: Optional[List[PhysicalExamResult]] = None) -> SOAPValidation:
    lengths = {section: len(getattr(soap, section)) for section in SECTIONS}
    total = sum(lengths.values())
    errors: List[str] = []
    warnings: List[str] = []

    for section, (guideline, hard) in SECTION_LIMITS.items():
        if lengths[section] > hard:
            errors.append(f"{section} exceeds {hard} characters ({lengths[section]})")
        elif lengths[section] > guideline:
            warnings.append(f"{section} above {guideline} character guideline ({lengths[section]})")

    if total > TOTAL_HARD_LIMIT:
        errors.append(f"SOAP note exceeds {TOTAL_HARD_LIMIT} characters ({total})")
    elif total > TOTAL_GUIDELINE:
        warnings.append(f"SOAP note above {TOTAL_GUIDELINE} character guideline ({total})")

    repetition = detect_repetition(soap)
    if repetition.has_repetition:
        warnings.append(f"Repeated phrases: {', '.join(repetition.repeated_phrases[:5])}")

    violations = validate_objective_regions(soap.objective, tested_regions(exam_results or []))
    if violations:
        warnings.append(f"Objective mentions untested regions: {', '.join(violations)}")

    return SOAPValidation(
        is_valid=not errors,
        total_characters=total,
        section_lengths=lengths,
        errors=errors,
        warnings=warnings,
        repetition_check=repetition,
        region_violations=violations,
    )

def condense(text: str, limit: int) -> str:
    """Cut at the last sentence boundary within the limit, else at a word boundary."""
    if len(text) <= limit:
        return text
    window = text[:limit]
    boundary = max(window.rfind(". "), window.rfind(".\n"))
    if boundary >= limit // 2:
        return window[: boundary + 1]
    space = window[:-1].rfind(" ")
    cut = window[:space] if space > 0 else window[:-1]
    return cut.rstrip(" ,;:-") + "…"

def truncate_soap_to_limits(soap: SOAPNote) -> SOAPNote:
    updates = {
        section: condense(getattr(soap, section), hard)
        for section, (_, hard) in SECTION_LIMITS.items()
        if len(getattr(soap, section)) > hard
    }
    return soap.model_copy(update=updates)
