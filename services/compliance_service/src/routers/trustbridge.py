from anyio import to_thread
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import HTMLResponse

from ....common.auth import verify_professional
from ....common.exceptions import PermanentError, RetryableError
from ....common.logging import jlog
from .. import service
from ..schemas import CertificateBundle, CertifyRequest, LedgerVerificationResponse

router = APIRouter(prefix="/trustbridge")

@router.post(
    "/certify",
    response_model=CertificateBundle,
    summary="Certify artifacts already in the artifact store",
    status_code=status.HTTP_201_CREATED,
)
async def certify(payload: CertifyRequest, professional_id: str = Depends(verify_professional)) -> CertificateBundle:
    try:
        return await to_thread.run_sync(service.certify_artifacts, payload, professional_id)
    except RetryableError as e:
        jlog(event="trustbridge_certify_failed", retryable=True, error=str(e))
        raise HTTPException(status_code=503, detail=str(e))
    except PermanentError as e:
        jlog(event="trustbridge_certify_failed", retryable=False, error=str(e))
        raise HTTPException(status_code=422, detail=str(e))

@router.get("/certificates/{certificate_id}", response_model=CertificateBundle)
async def get_certificate(certificate_id: str, professional_id: str = Depends(verify_professional)) -> CertificateBundle:
    bundle = await to_thread.run_sync(service.get_certificate_bundle, certificate_id)
    if bundle is None:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return bundle

@router.get("/certificates/{certificate_id}/html", response_class=HTMLResponse)
async def get_certificate_html(certificate_id: str, professional_id: str = Depends(verify_professional)):
    page = await to_thread.run_sync(service.render_certificate, certificate_id)
    if page is None:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return HTMLResponse(page)

@router.get("/ledger/verify", response_model=LedgerVerificationResponse)
async def verify_ledger(professional_id: str = Depends(verify_professional)) -> LedgerVerificationResponse:
    return await to_thread.run_sync(service.verify_ledger)
