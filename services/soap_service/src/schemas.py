from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

VisitType = Literal["initial", "follow-up"]
SessionType = Literal["initial", "followup", "wsib", "mva", "certificate"]
AnalysisLevel = Literal["full", "optimized"]

class PhysicalExamResult(BaseModel):
    test_name: str
    segment: Optional[str] = None
    result: Optional[str] = None
    findings_text: Optional[str] = None
    notes: Optional[str] = None

class PreviousVisit(BaseModel):
    assessment: str = ""
    plan: str = ""
    visit_date: Optional[str] = None

class BiopsychosocialContext(BaseModel):
    occupational: List[str] = []
    protective: List[str] = []
    functional_limitations: List[str] = []
    patient_strengths: List[str] = []

class SOAPAnalysisContext(BaseModel):
    chief_complaint: str = ""
    key_findings: List[str] = []
    medical_history: List[str] = []
    medications: List[str] = []
    red_flags: List[str] = []
    yellow_flags: List[str] = []
    suggested_tests: List[str] = []
    biopsychosocial: BiopsychosocialContext = BiopsychosocialContext()

class SoapNoteRequest(BaseModel):
    transcript: str = Field(..., description="Consultation transcript; de-identified before it reaches the model")
    visit_type: VisitType = "initial"
    session_type: Optional[SessionType] = None
    analysis: SOAPAnalysisContext = SOAPAnalysisContext()
    physical_exam_results: List[PhysicalExamResult] = []
    # newest first
    previous_visits: List[PreviousVisit] = []
    analysis_level: AnalysisLevel = "full"
    patient_id: Optional[str] = None

class SOAPNote(BaseModel):
    subjective: str
    objective: str
    assessment: str
    plan: str
    additional_notes: Optional[str] = None
    follow_up: Optional[str] = None
    precautions: Optional[str] = None
    referrals: Optional[str] = None

class TokenInfo(BaseModel):
    input: int = 0
    output: int = 0

class TokenOptimization(BaseModel):
    optimized_tokens: int
    standard_tokens: int
    reduction: int
    reduction_percent: float

class ValidationSummary(BaseModel):
    total_characters: int
    is_valid: bool
    has_repetition: bool
    region_violations: List[str] = []
    condensed: bool = False
    warnings: List[str] = []

class QualityInfo(BaseModel):
    level: Literal["ok", "degraded", "unsafe"] = "ok"
    flags: List[str] = []

class SoapMetadata(BaseModel):
    model: str
    tokens: TokenInfo = TokenInfo()
    timestamp: str
    visit_type: VisitType
    session_type: Optional[SessionType] = None
    analysis_level: AnalysisLevel = "full"
    token_optimization: Optional[TokenOptimization] = None
    validation: Optional[ValidationSummary] = None
    quality: QualityInfo = QualityInfo()
    deidentified_entities: Dict[str, int] = {}

class SoapNoteResponse(BaseModel):
    soap: Optional[SOAPNote] = Field(..., description="None when the quality guard blocked generation")
    metadata: SoapMetadata
    version: str = "v1"
