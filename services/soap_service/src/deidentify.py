"""
PHIPA de-identification: swap detected identifiers for [ENTITY_n] placeholders
before text leaves the service, and restore them in the generated note.
"""

from typing import Any, Dict, List, Optional, Tuple

from presidio_analyzer import AnalyzerEngine, Pattern, PatternRecognizer, RecognizerResult

from ...common.audit import AuditLogger
from ...common.logging import jlog
from .config import settings

_ANALYZER: Optional[AnalyzerEngine] = None

# Ontario health card: 10 digits, optional 2-letter version code
HEALTH_CARD_PATTERN = Pattern(
    name="ca_health_card_pattern",
    regex=r"\b\d{4}[- ]?\d{3}[- ]?\d{3}(?:[- ]?[A-Z]{2})?\b",
    score=0.6,
)

def health_card_recognizer() -> PatternRecognizer:
    return PatternRecognizer(
        supported_entity="CA_HEALTH_CARD",
        patterns=[HEALTH_CARD_PATTERN],
        context=["health card", "ohip", "hcn"],
        supported_language="en",
    )

def _get_analyzer() -> Any:
    global _ANALYZER
    if _ANALYZER is None:
        _ANALYZER = AnalyzerEngine()
        _ANALYZER.registry.add_recognizer(health_card_recognizer())
    return _ANALYZER

def _non_overlapping(results: List[RecognizerResult]) -> List[RecognizerResult]:
    ordered = sorted(results, key=lambda r: (r.start, -(r.end - r.start), -r.score))
    kept: List[RecognizerResult] = []
    cursor = 0
    for r in ordered:
        if r.start < cursor:  # overlap; keep the earlier, longer span
            continue
        kept.append(r)
        cursor = r.end
    return kept

def deidentify(text: str) -> Tuple[str, Dict[str, str]]:
    """Return (text with placeholders, placeholder -> original)."""
    if not text or not settings.deidentify_enabled:
        return text, {}

    results = _get_analyzer().analyze(
        text=text,
        entities=settings.deidentify_entities,
        language=settings.deidentify_language,
        score_threshold=settings.deidentify_score_threshold,
    )

    identifiers: Dict[str, str] = {}
    by_original: Dict[Tuple[str, str], str] = {}
    counters: Dict[str, int] = {}
    out: List[str] = []
    cursor = 0
    for r in _non_overlapping(results):
        original = text[r.start:r.end]
        key = (r.entity_type, original)
        placeholder = by_original.get(key)
        if placeholder is None:
            counters[r.entity_type] = counters.get(r.entity_type, 0) + 1
            placeholder = f"[{r.entity_type}_{counters[r.entity_type]}]"
            by_original[key] = placeholder
            identifiers[placeholder] = original
        out.append(text[cursor:r.start])
        out.append(placeholder)
        cursor = r.end
    out.append(text[cursor:])
    return "".join(out), identifiers

def reidentify(text: str, identifiers: Dict[str, str]) -> str:
    if not text or not identifiers:
        return text
    for placeholder, original in identifiers.items():
        text = text.replace(placeholder, original)
    return text

def entity_counts(identifiers: Dict[str, str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for placeholder in identifiers:
        entity = placeholder.strip("[]").rsplit("_", 1)[0]
        counts[entity] = counts.get(entity, 0) + 1
    return counts

def log_deidentification(
    operation: str,
    text_length: int,
    identifiers: Dict[str, str],
    actor_id: Optional[str],
    patient_id: Optional[str] = None,
    trace_id: Optional[str] = None,
) -> str:
    """Audit trail entry: counts only, never the identifiers themselves."""
    counts = entity_counts(identifiers)
    jlog(event=f"phi_{operation}", text_length=text_length, identifier_count=len(identifiers), entities=counts)
    return AuditLogger().log(
        f"phi_{operation}",
        actor_id,
        patient_id,
        {
            "text_length": text_length,
            "identifier_count": len(identifiers),
            "entities": counts,
            "request_trace_id": trace_id,
            "service": settings.service_name,
        },
    )
