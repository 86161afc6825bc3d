"""FastAPI dependencies: current role, CSRF, metrics guard, library services."""
from fastapi import Cookie, Depends, Header, HTTPException, Request, status

from choir_portal.core.config import get_settings
from choir_portal.core.errors import Unauthorized
from choir_portal.core.security import ANONYMOUS, ROLES, decode_access_token, verify_csrf_token
from choir_portal.services.grants import GrantService
from choir_portal.services.listing import ListingService
from choir_portal.services.mutations import MutationService
from choir_portal.services.public_archive import PublicArchiveService
from choir_portal.services.storage import ObjectStore, get_object_store

settings = get_settings()


def get_current_role(
    request: Request,
    cookie: str | None = Cookie(None, alias=settings.cookie_name),
) -> str:
    """Role from the session cookie: member, admin, or anonymous (missing/invalid token, no 401)."""
    role = ANONYMOUS
    if cookie:
        payload = decode_access_token(cookie)
        if payload and payload.get("role") in ROLES:
            role = payload["role"]
    request.state.role = role
    return role


def require_authenticated(role: str = Depends(get_current_role)) -> str:
    """Require member or admin; 401 if not."""
    if role not in ROLES:
        raise Unauthorized(anonymous=True)
    return role


def require_csrf(
    request: Request,
    csrf_cookie: str | None = Cookie(None, alias=settings.csrf_cookie_name),
    csrf_header: str | None = Header(None, alias=settings.csrf_header_name),
) -> None:
    """Validate CSRF for state-changing methods. Raise 403 if invalid."""
    if not verify_csrf_token(csrf_cookie, csrf_header):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or missing CSRF token",
        )


def require_metrics_access(
    role: str = Depends(get_current_role),
    x_metrics_secret: str | None = Header(None, alias="X-Metrics-Secret"),
) -> None:
    """Allow /metrics if: admin (when metrics_require_admin), or valid X-Metrics-Secret, or no guard (local)."""
    s = get_settings()
    if s.metrics_require_admin:
        if role != "admin":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Metrics require admin authentication",
            )
        return
    if s.metrics_secret:
        if x_metrics_secret != s.metrics_secret:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or missing X-Metrics-Secret",
            )
        return
    return


# ----- Library services (stateless; built per request around the shared store) -----


def get_listing_service(store: ObjectStore = Depends(get_object_store)) -> ListingService:
    return ListingService(store, deep_scan=get_settings().listing_deep_scan)


def get_grant_service(store: ObjectStore = Depends(get_object_store)) -> GrantService:
    return GrantService.from_settings(store, get_settings())


def get_mutation_service(store: ObjectStore = Depends(get_object_store)) -> MutationService:
    return MutationService(store)


def get_public_archive_service(
    listing: ListingService = Depends(get_listing_service),
    grants: GrantService = Depends(get_grant_service),
) -> PublicArchiveService:
    return PublicArchiveService(listing, grants, get_settings().public_archive_prefix)
