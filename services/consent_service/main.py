import os

from fastapi import FastAPI

from ..common.otel import init_tracing
from .src.config import settings
from .src.routers import consent, cross_border

os.environ.setdefault("SERVICE_NAME", settings.service_name)

app = FastAPI(title="Consent API", version="1.0.0")
app.include_router(cross_border.router, prefix="/api/v1")
app.include_router(consent.router, prefix="/api/v1")

tracer = init_tracing(app, service_name=settings.service_name, service_version="v1")

@app.get("/health")
def health():
    return {"status": "ok"}
