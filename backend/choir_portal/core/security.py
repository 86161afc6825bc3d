"""Session JWT, access codes, CSRF token (double-submit cookie), signed local blob tokens."""
import hashlib
import hmac
import secrets
import time

from jose import JWTError, jwt
from choir_portal.core.config import get_settings

settings = get_settings()

ROLES = ("member", "admin")
ANONYMOUS = "anonymous"


def role_for_access_code(code: str) -> str | None:
    """Return the role unlocked by a shared access code, or None."""
    s = get_settings()
    if s.admin_access_code and hmac.compare_digest(code.encode(), s.admin_access_code.encode()):
        return "admin"
    if s.member_access_code and hmac.compare_digest(code.encode(), s.member_access_code.encode()):
        return "member"
    return None


def create_access_token(role: str) -> str:
    from datetime import datetime, timezone, timedelta
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": role,
        "role": role,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def create_csrf_token() -> str:
    return secrets.token_urlsafe(32)


def verify_csrf_token(cookie_value: str | None, header_value: str | None) -> bool:
    if not cookie_value or not header_value:
        return False
    return hmac.compare_digest(cookie_value, header_value)


def _blob_signature(method: str, key: str, expiry_ts: int) -> str:
    message = f"{method}:{key}:{expiry_ts}"
    return hmac.new(
        settings.secret_key.encode(),
        message.encode(),
        hashlib.sha256,
    ).hexdigest()


def create_blob_token(method: str, key: str, ttl_seconds: int) -> str:
    """HMAC-signed token for /api/blobs/{key} (local backend). Binds method, key and expiry."""
    method = method.upper()
    expiry_ts = int(time.time()) + ttl_seconds
    return f"{method}:{expiry_ts}:{_blob_signature(method, key, expiry_ts)}"


def verify_blob_token(token: str, method: str, key: str) -> bool:
    """Verify method, key binding and TTL; return True if valid."""
    try:
        parts = token.split(":")
        if len(parts) != 3:
            return False
        token_method, ts, sig = parts
        if token_method != method.upper():
            return False
        expiry_ts = int(ts)
        if not hmac.compare_digest(sig, _blob_signature(token_method, key, expiry_ts)):
            return False
        if time.time() > expiry_ts:
            return False
        return True
    except (ValueError, TypeError):
        return False
