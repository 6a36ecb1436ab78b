from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

class AuditEvent(BaseModel):
    id: str
    event_type: str
    actor_id: str
    patient_id: Optional[str] = None
    timestamp: Optional[str] = None
    metadata: Dict[str, Any] = {}

class AuditTrailResponse(BaseModel):
    patient_id: str
    events: List[AuditEvent] = []

class ManifestFile(BaseModel):
    model_config = ConfigDict(extra="allow")

    path: str
    size: int

class Manifest(BaseModel):
    algorithm: str
    files: List[ManifestFile]
    manifest_hash: str

class LedgerEntry(BaseModel):
    index: int
    timestamp: str
    event: str
    payload_hash: str
    previous_hash: str
    entry_hash: str

class TrustBridgeCertificate(BaseModel):
    certificate_id: str
    issuer: str
    issued_at: str
    manifest_hash: str
    ledger_head_hash: str
    ledger_length: int
    file_count: int
    algorithm: str = "sha512"
    signature: str

class CertifyRequest(BaseModel):
    paths: List[str] = Field(..., min_length=1, description="Artifact store paths to certify")
    event: str = "artifacts_certified"
    issuer: Optional[str] = None

class CertificateBundle(BaseModel):
    certificate: TrustBridgeCertificate
    manifest: Manifest
    ledger_entry: LedgerEntry

class LedgerVerificationResponse(BaseModel):
    valid: bool
    length: int
    broken_index: Optional[int] = None
    reason: Optional[str] = None

class ErasureRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    patient_id: str = Field(..., alias="patientId", min_length=1)
    reason: Optional[str] = None
    authorization_proof: Optional[str] = Field(default=None, alias="authorizationProof")

class RetainedData(BaseModel):
    audit_logs: bool = True
    certificates: bool = True

class DeletionCertificate(BaseModel):
    id: str
    patient_id: str
    deleted_at: str
    deleted_by: str
    deleted_collections: List[str]
    deleted_counts: Dict[str, int]
    verification_hash: str
    retained_data: RetainedData = RetainedData()
