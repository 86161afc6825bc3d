"""Auth: shared-code login, logout, me. Cookie-based JWT carrying the role + CSRF."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from choir_portal.core.config import get_settings
from choir_portal.core.deps import require_authenticated, require_csrf
from choir_portal.core.rate_limit import is_login_rate_limited
from choir_portal.core.security import create_access_token, create_csrf_token, role_for_access_code
from choir_portal.api.schemas import LoginRequest, LoginResponse, OkResponse, SessionInfo

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()
logger = logging.getLogger(__name__)


def _cookie_params(secure: bool | None = None, samesite: str | None = None) -> dict:
    secure = secure if secure is not None else settings.cookie_secure
    samesite = samesite or settings.cookie_samesite
    return {
        "httponly": True,
        "samesite": samesite,
        "path": "/",
        "max_age": settings.access_token_expire_minutes * 60,
        "secure": secure,
    }


@router.post("/login", response_model=LoginResponse)
async def login(request: Request, response: Response, body: LoginRequest):
    client_ip = request.client.host if request.client else "unknown"
    if is_login_rate_limited(client_ip):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many login attempts")
    if not body.code.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Access code required")
    role = role_for_access_code(body.code.strip())
    if role is None:
        logger.info("Rejected login from %s", client_ip)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access code")
    csrf_token = create_csrf_token()
    response.set_cookie(key=settings.cookie_name, value=create_access_token(role), **_cookie_params())
    response.set_cookie(
        key=settings.csrf_cookie_name,
        value=csrf_token,
        httponly=False,
        samesite=settings.cookie_samesite,
        path="/",
        max_age=settings.access_token_expire_minutes * 60,
        secure=settings.cookie_secure,
    )
    logger.info("Login as %s from %s", role, client_ip)
    return LoginResponse(role=role, csrf_token=csrf_token)


@router.post("/logout", response_model=OkResponse, dependencies=[Depends(require_csrf)])
async def logout(response: Response):
    response.delete_cookie(settings.cookie_name, path="/")
    response.delete_cookie(settings.csrf_cookie_name, path="/")
    return OkResponse()


@router.get("/me", response_model=SessionInfo)
async def me(role: str = Depends(require_authenticated)):
    return SessionInfo(role=role)
