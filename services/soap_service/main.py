import os

from fastapi import FastAPI

from ..common.otel import init_tracing
from .src.config import settings
from .src.routers import soap_note

os.environ.setdefault("SERVICE_NAME", settings.service_name)

app = FastAPI(title="Soap Note API", version="1.2.0")
app.include_router(soap_note.router, prefix="/api/v1")

tracer = init_tracing(app, service_name=settings.service_name, service_version="v1")

@app.get("/health")
def health():
    return {"status": "ok"}
