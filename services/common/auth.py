from anyio import to_thread
from fastapi import HTTPException, Request
from google.auth.transport import requests as ga_requests
from google.oauth2 import id_token

from .config import settings


def _verify_firebase_token(token: str) -> dict:
    req = ga_requests.Request()
    return id_token.verify_firebase_token(token, req, audience=settings.project_id)


async def verify_professional(request: Request) -> str:
    """
    Resolve the authenticated professional id.
    Firebase ID token when auth is required; X-Professional-Id header in development.
    """
    if not settings.require_auth:
        professional_id = request.headers.get("X-Professional-Id", "")
        if not professional_id:
            raise HTTPException(status_code=401, detail="Missing X-Professional-Id")
        return professional_id

    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid authorization token")
    token = auth.split(" ", 1)[1]

    try:
        claims = await to_thread.run_sync(_verify_firebase_token, token)
    except Exception as e:
        raise HTTPException(status_code=401, detail=f"Invalid or expired token: {e}")

    uid = (claims or {}).get("user_id") or (claims or {}).get("sub")
    if not uid:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return uid
