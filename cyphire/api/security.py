"""
Request authentication, authorization and throttling.

User sessions and admin console sessions use separate signed tokens so an
ordinary account can never stand in for the console admin.
"""

import logging
import threading
import time
from collections import defaultdict, deque
from functools import wraps
from typing import Optional

from flask import current_app, g, request
from itsdangerous import BadSignature, URLSafeTimedSerializer

from ..errors import FeatureDisabled, Forbidden, RateLimited, Unauthorized


logger = logging.getLogger(__name__)

USER_COOKIE = "token"
ADMIN_COOKIE = "admin_token"


def client_ip() -> str:
    """Caller's IP, honouring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or ""


# === Tokens ===

USER_SALT = "cyphire-user"
ADMIN_SALT = "cyphire-admin"


def _serializer(secret: str, salt: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret, salt=salt)


def issue_user_token(user_id: str, days: int) -> str:
    """Sign a user token. ``exp`` narrows the serializer's outer max age."""
    settings = current_app.config["SETTINGS"]
    payload = {"id": user_id, "exp": int(time.time()) + days * 86400}
    return _serializer(settings.jwt_secret, USER_SALT).dumps(payload)


def issue_admin_token(email: str) -> str:
    settings = current_app.config["SETTINGS"]
    payload = {
        "role": "admin",
        "email": email,
        "exp": int(time.time()) + settings.admin_token_minutes * 60,
    }
    return _serializer(settings.admin_jwt_secret, ADMIN_SALT).dumps(payload)


def _decode(token: str, secret: str, salt: str, max_age: int) -> Optional[dict]:
    try:
        payload = _serializer(secret, salt).loads(token, max_age=max_age)
    except BadSignature:
        # SignatureExpired is a BadSignature
        return None
    if not isinstance(payload, dict) or payload.get("exp", 0) < time.time():
        return None
    return payload


def decode_user_token(token: str) -> Optional[dict]:
    settings = current_app.config["SETTINGS"]
    max_age = max(settings.token_days, settings.remember_me_days) * 86400
    return _decode(token, settings.jwt_secret, USER_SALT, max_age)


def decode_admin_token(token: str) -> Optional[dict]:
    settings = current_app.config["SETTINGS"]
    return _decode(token, settings.admin_jwt_secret, ADMIN_SALT, settings.admin_token_minutes * 60)


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def read_user_token(token: Optional[str] = None) -> Optional[str]:
    """Return the user id carried by a token (or the request's token)."""
    token = token or _bearer_token() or request.cookies.get(USER_COOKIE)
    if not token:
        return None
    payload = decode_user_token(token)
    return payload.get("id") if payload else None


def set_auth_cookie(response, token: str, days: int) -> None:
    settings = current_app.config["SETTINGS"]
    response.set_cookie(
        USER_COOKIE,
        token,
        max_age=days * 86400,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="Lax",
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(USER_COOKIE)


# === Decorators ===

def _load_user():
    token = _bearer_token() or request.cookies.get(USER_COOKIE)
    if not token:
        raise Unauthorized("Not authorized, no token")
    user_id = read_user_token(token)
    if not user_id:
        raise Unauthorized("Not authorized, token failed")
    user = g.accounts.get_user(user_id)
    if user is None:
        raise Unauthorized("Not authorized, user not found")
    if user.is_blocked:
        raise Forbidden("Account is blocked")
    g.user = g.accounts.current_user(user.id)
    return g.user


def login_required(f):
    """Decorator to require a signed-in user. Sets ``g.user``."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _load_user()
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Decorator to require a signed-in user flagged as admin."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = _load_user()
        if not user.is_admin:
            raise Forbidden("Admin access required")
        return f(*args, **kwargs)
    return decorated_function


def admin_token_required(f):
    """Decorator to require an admin console token. Sets ``g.admin``."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token() or request.cookies.get(ADMIN_COOKIE)
        if not token:
            raise Unauthorized("Not authorized, no admin token")
        payload = decode_admin_token(token)
        if payload is None:
            raise Unauthorized("Not authorized, admin token failed")
        if payload.get("role") != "admin":
            raise Forbidden("Admin access required")
        g.admin = payload
        return f(*args, **kwargs)
    return decorated_function


def check_flag(name: str) -> None:
    if not current_app.config["SETTINGS"].flag_enabled(name):
        raise FeatureDisabled(name)


def flag_guard(name: str):
    """Build a blueprint before_request hook refusing requests while a feature is off."""
    def check():
        check_flag(name)
    return check


def require_flag(name: str):
    """Decorator refusing a single endpoint while a feature is off."""
    def decorator(f):
        @wraps(f)
        def wrapped(*args, **kwargs):
            check_flag(name)
            return f(*args, **kwargs)
        return wrapped
    return decorator


# === Rate limiting ===

class RateLimiter:
    """In-memory sliding-window counter keyed by (scope, caller)."""

    def __init__(self, sweep_interval: float = 60.0):
        self.sweep_interval = sweep_interval
        self._hits: dict[tuple[str, str], deque] = defaultdict(deque)
        self._windows: dict[tuple[str, str], int] = {}
        self._last_sweep = time.monotonic()
        self._lock = threading.Lock()

    def hit(self, scope: str, key: str, max_calls: int, window_seconds: int) -> bool:
        """Record a call. Returns False when the window is already full."""
        now = time.monotonic()
        with self._lock:
            self._evict(now)
            hits = self._hits[(scope, key)]
            while hits and hits[0] <= now - window_seconds:
                hits.popleft()
            if len(hits) >= max_calls:
                return False
            hits.append(now)
            self._windows[(scope, key)] = window_seconds
            return True

    def _evict(self, now: float) -> None:
        """Drop callers whose newest hit has left its window."""
        if now - self._last_sweep < self.sweep_interval:
            return
        self._last_sweep = now
        stale = [
            k for k, hits in self._hits.items()
            if not hits or hits[-1] <= now - self._windows.get(k, 0)
        ]
        for k in stale:
            del self._hits[k]
            self._windows.pop(k, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._windows.clear()


def rate_limit(
    max_calls: int,
    window_seconds: int = 60,
    scope: Optional[str] = None,
    message: str = "Too many requests. Please try again later.",
):
    """Rate limit decorator keyed by client IP and endpoint (or ``scope``)."""
    def decorator(f):
        @wraps(f)
        def wrapped(*args, **kwargs):
            limiter: RateLimiter = current_app.extensions["cyphire_rate_limiter"]
            key = scope or request.endpoint or f.__name__
            if not limiter.hit(key, client_ip(), max_calls, window_seconds):
                logger.warning("Rate limit hit on %s from %s", key, client_ip())
                raise RateLimited(message)
            return f(*args, **kwargs)
        return wrapped
    return decorator
