from anyio import to_thread
from fastapi import APIRouter, HTTPException, status

from ....common.exceptions import PermanentError, RetryableError
from ....common.logging import jlog
from .. import service
from ..schemas import VertexRequest, VertexResponse

router = APIRouter()

@router.post(
    "/vertex",
    response_model=VertexResponse,
    response_model_by_alias=True,
    summary="Proxy a prompt to Vertex AI (Gemini)",
    status_code=status.HTTP_200_OK,
)
async def vertex_proxy(payload: VertexRequest) -> VertexResponse:
    if not payload.prompt.strip():
        raise HTTPException(status_code=422, detail="prompt must not be empty")
    try:
        return await to_thread.run_sync(service.proxy_vertex, payload)
    except RetryableError as e:
        jlog(event="vertex_proxy_failed", retryable=True, error=str(e), action=payload.action, request_trace_id=payload.trace_id)
        raise HTTPException(status_code=503, detail=str(e))
    except PermanentError as e:
        jlog(event="vertex_proxy_failed", retryable=False, error=str(e), action=payload.action, request_trace_id=payload.trace_id)
        raise HTTPException(status_code=422, detail=str(e))
