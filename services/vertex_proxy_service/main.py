import os

from fastapi import FastAPI

from ..common.otel import init_tracing
from .src.config import settings
from .src.routers import vertex, voice

os.environ.setdefault("SERVICE_NAME", settings.service_name)

app = FastAPI(title="Vertex AI Proxy API", version="1.0.0")
app.include_router(vertex.router, prefix="/api/v1")
app.include_router(voice.router, prefix="/api/v1")

tracer = init_tracing(app, service_name=settings.service_name, service_version="v1")

@app.get("/health")
def health():
    return {"status": "ok"}
