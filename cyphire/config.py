"""
Configuration loading.

Settings come from an optional YAML file and are then overridden by
environment variables, so a deployment can run from env alone.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml


DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

FLAG_NAMES = (
    "FLAG_AUTH",
    "FLAG_USERS",
    "FLAG_PAYMENT",
    "FLAG_PAYMENT_LOG",
    "FLAG_WORKROOM_MESSAGE",
    "FLAG_HELP",
    "FLAG_HELP_QUESTION",
    "FLAG_INTELLECTUALS",
)


def _default_flags() -> dict[str, bool]:
    flags = {name: True for name in FLAG_NAMES}
    flags["FLAG_INTELLECTUALS"] = False
    return flags


@dataclass
class Settings:
    """Runtime configuration for the API server."""

    data_dir: Path = DEFAULT_DATA_DIR
    port: int = 5000
    debug: bool = False

    # Auth
    jwt_secret: str = "change-me"
    admin_jwt_secret: str = "change-me-admin"
    admin_email: str = ""
    admin_password: str = ""
    admin_secret_key: str = ""
    token_days: int = 1
    remember_me_days: int = 30
    admin_token_minutes: int = 60
    cookie_secure: bool = False
    signups_per_ip_per_day: int = 3

    # Payments
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    platform_fee_percent: float = 20.0
    currency: str = "INR"

    # Plans
    plan_duration_days: int = 30

    # Workrooms
    message_retention_days: int = 7

    # Web
    frontend_url: str = "http://localhost:5173"
    allowed_origins: list[str] = field(default_factory=lambda: [
        "http://localhost:5173",
        "http://localhost:5174",
        "http://localhost:5175",
    ])
    max_upload_mb: int = 25

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    flags: dict[str, bool] = field(default_factory=_default_flags)

    def flag_enabled(self, name: str) -> bool:
        """Check a feature flag. Unknown flags are disabled."""
        return bool(self.flags.get(name, False))

    @property
    def uploads_dir(self) -> Path:
        return Path(self.data_dir) / "uploads"

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Build settings from a (YAML) mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in (data or {}).items() if k in known}
        flags = _default_flags()
        for name, value in (values.pop("flags", None) or {}).items():
            flags[name.upper()] = _as_bool(value)
        settings = cls(**values, flags=flags)
        settings.data_dir = Path(settings.data_dir)
        if settings.log_file:
            settings.log_file = Path(settings.log_file)
        return settings


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


# env var -> (attribute, converter)
ENV_OVERRIDES = {
    "CYPHIRE_DATA_DIR": ("data_dir", Path),
    "PORT": ("port", int),
    "DEBUG": ("debug", _as_bool),
    "JWT_SECRET": ("jwt_secret", str),
    "ADMIN_JWT_SECRET": ("admin_jwt_secret", str),
    "ADMIN_EMAIL": ("admin_email", str),
    "ADMIN_PASSWORD": ("admin_password", str),
    "ADMIN_SECRET_KEY": ("admin_secret_key", str),
    "COOKIE_SECURE": ("cookie_secure", _as_bool),
    "RAZORPAY_KEY_ID": ("razorpay_key_id", str),
    "RAZORPAY_KEY_SECRET": ("razorpay_key_secret", str),
    "PLATFORM_FEE_PERCENT": ("platform_fee_percent", float),
    "PLAN_DURATION_DAYS": ("plan_duration_days", int),
    "FRONTEND_URL": ("frontend_url", str),
    "ALLOWED_ORIGINS": ("allowed_origins", lambda v: [o.strip() for o in v.split(",") if o.strip()]),
    "LOG_LEVEL": ("log_level", str),
    "LOG_FILE": ("log_file", Path),
}


def apply_env(settings: Settings, environ: Optional[dict] = None) -> Settings:
    """Apply environment variable overrides in place."""
    environ = os.environ if environ is None else environ

    for var, (attr, convert) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value is None or value == "":
            continue
        setattr(settings, attr, convert(value))

    # Flags are enabled by the exact value "1"
    for name in FLAG_NAMES:
        value = environ.get(name)
        if value is not None:
            settings.flags[name] = value.strip() == "1"

    return settings


def load_settings(
    config_path: Optional[str] = None,
    environ: Optional[dict] = None,
) -> Settings:
    """
    Load settings from YAML (if any) and the environment.

    Args:
        config_path: YAML file path. Falls back to $CYPHIRE_CONFIG.
        environ: Mapping used instead of os.environ (tests)

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
    """
    env = os.environ if environ is None else environ
    config_path = config_path or env.get("CYPHIRE_CONFIG")

    data: dict = {}
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

    return apply_env(Settings.from_dict(data), env)
