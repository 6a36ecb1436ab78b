from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

LegalExposure = Literal["low", "moderate", "high"]
VisitType = Literal["initial", "follow-up"]

class PhysicalTestSuggestion(BaseModel):
    test: str
    sensitivity: Optional[float] = None
    specificity: Optional[float] = None
    objective: str = ""
    contraindications: str = ""
    justification: str = ""
    evidence: Optional[str] = None

class ClinicalAnalysis(BaseModel):
    """Normalized clinical analysis, independent of the shape the model answered in."""

    chief_complaint: str = ""
    clinical_findings: List[str] = []
    relevant_findings: List[str] = []
    occupational_context: List[str] = []
    psychosocial_context: List[str] = []
    current_medications: List[str] = []
    medical_history: List[str] = []
    probable_diagnoses: List[str] = []
    red_flags: List[str] = []
    yellow_flags: List[str] = []
    suggested_physical_tests: List[Union[str, PhysicalTestSuggestion]] = []
    suggested_treatment_plan: List[str] = []
    recommended_referral: str = ""
    estimated_prognosis: str = ""
    safety_notes: str = ""
    legal_risk: LegalExposure = "low"

    biopsychosocial_psychological: List[str] = []
    biopsychosocial_social: List[str] = []
    biopsychosocial_occupational: List[str] = []
    biopsychosocial_protective: List[str] = []
    biopsychosocial_functional_limitations: List[str] = []
    biopsychosocial_patient_strengths: List[str] = []

class BiopsychosocialContext(BaseModel):
    occupational: List[str] = []
    protective: List[str] = []
    functional_limitations: List[str] = []
    patient_strengths: List[str] = []

class SOAPAnalysisContext(BaseModel):
    """Analysis fields consumed by the SOAP note prompts."""

    chief_complaint: str = ""
    key_findings: List[str] = []
    medical_history: List[str] = []
    medications: List[str] = []
    red_flags: List[str] = []
    yellow_flags: List[str] = []
    suggested_tests: List[str] = []
    biopsychosocial: BiopsychosocialContext = BiopsychosocialContext()

class ProfessionalProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    experience_years: Optional[int] = Field(default=None, alias="experienceYears")
    specialty: Optional[str] = None
    excluded_techniques: List[str] = Field(default_factory=list, alias="excludedTechniques")

class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

class AnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transcript: str = Field(..., description="De-identified consultation transcript")
    language: Literal["en", "es", "fr"] = "en"
    visit_type: VisitType = Field(default="initial", alias="visitType")
    professional_profile: Optional[ProfessionalProfile] = Field(default=None, alias="professionalProfile")
    trace_id: Optional[str] = Field(default=None, alias="traceId")

class AnalysisResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    analysis: ClinicalAnalysis
    soap_context: SOAPAnalysisContext
    source: str
    usage: Usage
    model: str
    trace_id: Optional[str] = Field(default=None, alias="traceId")

class NormalizeRequest(BaseModel):
    raw: Any = Field(..., description="Raw model payload: text, Gemini candidates or a parsed object")

class NormalizeResponse(BaseModel):
    analysis: ClinicalAnalysis
    soap_context: SOAPAnalysisContext
    source: str
