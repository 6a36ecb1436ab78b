import contextvars
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class RequestContext:
    correlation_id: Optional[str] = None
    idempotency_key: Optional[str] = None
    professional_id: Optional[str] = None

    def log_fields(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


_request_context: contextvars.ContextVar[RequestContext] = contextvars.ContextVar(
    "request_context", default=RequestContext()
)

def set_context(
    correlation_id: Optional[str],
    idempotency_key: Optional[str],
    professional_id: Optional[str] = None,
) -> RequestContext:
    ctx = RequestContext(correlation_id, idempotency_key, professional_id)
    _request_context.set(ctx)
    return ctx

def get_context() -> RequestContext:
    return _request_context.get()
