import uuid
from fastapi import Request, Response
from mycoshop.core.config import settings

def get_session_id(request: Request, response: Response) -> str:
    """Opaque per-visitor key taken from the session cookie, issued on first visit."""
    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not session_id:
        session_id = uuid.uuid4().hex
        response.set_cookie(
            key=settings.SESSION_COOKIE_NAME,
            value=session_id,
            max_age=settings.SESSION_MAX_AGE_DAYS * 24 * 60 * 60,
            httponly=True,
            secure=settings.is_production,
            samesite="lax",
        )
    return session_id
