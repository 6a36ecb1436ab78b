import os

from fastapi import FastAPI

from ..common.otel import init_tracing
from .src.config import settings
from .src.routers import audit, erasure, trustbridge

os.environ.setdefault("SERVICE_NAME", settings.service_name)

app = FastAPI(title="Compliance API", version="2.0.0")
app.include_router(audit.router, prefix="/api/v1")
app.include_router(trustbridge.router, prefix="/api/v1")
app.include_router(erasure.router, prefix="/api/v1")

tracer = init_tracing(app, service_name=settings.service_name, service_version="v1")

@app.get("/health")
def health():
    return {"status": "ok"}
