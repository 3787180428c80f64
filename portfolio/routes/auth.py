"""
Admin authentication routes for the blog editor.
Username/password login with a signed session cookie.
"""

import logging
import secrets
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/blog", tags=["auth"])

# Session configuration
SESSION_COOKIE_NAME = "blog_admin"
SESSION_MAX_AGE = 60 * 60 * 12  # 12 hours in seconds

# Rate limiter for login attempts
limiter = Limiter(key_func=get_remote_address)


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


def get_serializer(request: Request) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(request.app.state.settings.secret_key, salt="blog-admin")


def create_session_token(serializer: URLSafeTimedSerializer) -> str:
    """Create a signed session token."""
    data = {
        "authenticated": True,
        "created_at": datetime.now(timezone.utc).isoformat()
    }
    return serializer.dumps(data)


def verify_session_token(serializer: URLSafeTimedSerializer, token: str) -> bool:
    """Verify a session token is valid and not expired."""
    try:
        data = serializer.loads(token, max_age=SESSION_MAX_AGE)
    except (BadSignature, SignatureExpired):
        return False
    return isinstance(data, dict) and data.get("authenticated", False) is True


def get_current_admin(request: Request) -> bool:
    """Check if request has valid admin session."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return False
    return verify_session_token(get_serializer(request), token)


def require_admin(request: Request) -> None:
    """Reject the request unless it carries a valid admin session."""
    if not get_current_admin(request):
        raise HTTPException(status_code=401, detail="Unauthorized.")


def credentials_match(expected: str, submitted: str) -> bool:
    return secrets.compare_digest(expected.encode(), submitted.encode())


@router.post("/login")
@limiter.limit("5/minute")  # Rate limit: 5 attempts per minute per IP
async def login(request: Request, credentials: LoginRequest):
    """Process a login attempt."""
    settings = request.app.state.settings
    if not settings.credentials_configured:
        return JSONResponse(
            {"error": "Admin credentials are not configured."},
            status_code=500,
        )

    # Check both fields so a wrong username costs the same as a wrong password
    username_ok = credentials_match(settings.admin_username, credentials.username)
    password_ok = credentials_match(settings.admin_password, credentials.password)
    if not (username_ok and password_ok):
        logger.warning(f"Failed admin login from {get_remote_address(request)}")
        return JSONResponse({"error": "Invalid credentials."}, status_code=401)

    response = JSONResponse({"success": True})
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=create_session_token(get_serializer(request)),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
        max_age=SESSION_MAX_AGE
    )
    return response


@router.get("/session")
async def session(request: Request):
    """Report whether the caller holds an admin session."""
    if not get_current_admin(request):
        return JSONResponse({"authenticated": False}, status_code=401)
    return {"authenticated": True}


@router.post("/logout")
async def logout(request: Request):
    """Log out and clear session."""
    response = JSONResponse({"success": True})
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=request.app.state.settings.is_production,
        samesite="lax"
    )
    return response
