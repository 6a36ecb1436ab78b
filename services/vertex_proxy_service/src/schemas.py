from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Action = Literal["analyze", "generate_soap", "voice_summary", "voice_clinical_info"]
Language = Literal["en", "es", "fr"]
ClinicalCategory = Literal[
    "medication", "tecartherapy", "modality", "exercise_safety", "flag_criteria", "rom_norms"
]

class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

class VertexRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Action
    prompt: str = Field(..., description="Fully built prompt (PHI already de-identified by the caller)")
    trace_id: Optional[str] = Field(default=None, alias="traceId")
    model: Optional[str] = None

class VertexResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    usage: Usage
    model: str
    trace_id: Optional[str] = Field(default=None, alias="traceId")

class VoiceSummaryRequest(BaseModel):
    transcript: str = ""
    language: Language = "en"

class VoiceSummaryResponse(BaseModel):
    summary: Optional[str] = None

class ClinicalInfoContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    medication_name: Optional[str] = Field(default=None, alias="medicationName")
    condition_or_region: Optional[str] = Field(default=None, alias="conditionOrRegion")
    modality_name: Optional[str] = Field(default=None, alias="modalityName")

class ClinicalInfoRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query_text: str = Field(..., alias="queryText")
    category: ClinicalCategory
    language: Language = "en"
    context: Optional[ClinicalInfoContext] = None

class ClinicalInfoResponse(BaseModel):
    answer: Optional[str] = None
