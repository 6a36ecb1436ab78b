"""
One-line JSON logs for Cloud Logging.

Each record carries the active OpenTelemetry span and the request context
(correlation id, idempotency key, professional id) so a SOAP request can be
followed across services. Callers pass identifiers only, never PHI.
"""

import json
import logging
import os
import time

from opentelemetry import trace

from .context import get_context

SERVICE_NAME = os.getenv("SERVICE_NAME", "aiduxcare-service")
ENV = os.getenv("ENVIRONMENT", "local")

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
_logger = logging.getLogger(SERVICE_NAME)

def _span_ids():
    ctx = trace.get_current_span().get_span_context()
    if not ctx.is_valid:
        return None, None
    return f"{ctx.trace_id:032x}", f"{ctx.span_id:016x}"

def jlog(event: str = "", severity: str = "INFO", **fields):
    trace_id, span_id = _span_ids()
    record = {
        "event": event,
        "severity": severity,
        "service": os.getenv("SERVICE_NAME", SERVICE_NAME),
        "env": ENV,
        "ts": time.time(),
        "trace_id": trace_id,
        "span_id": span_id,
    }
    record.update(get_context().log_fields())
    record.update(fields)
    level = logging.getLevelName(severity)
    _logger.log(level if isinstance(level, int) else logging.INFO, json.dumps(record, ensure_ascii=False, default=str))
