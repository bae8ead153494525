"""
Lark Options Configuration — app credentials, table coordinates and envelope settings.

Reads settings from environment variables:
    LARK_APP_ID / LARK_APP_SECRET = app credentials for the auth endpoint
    LARK_BASE_ID / LARK_TABLE_ID = Bitable table holding the option values
    ENCRYPT_KEY = passphrase for encrypted responses (empty = plain JSON)
    VERIFY_TOKEN = shared secret expected on incoming callbacks

Security Note:
    Never log the app secret, the passphrase or access tokens.
"""
import os
import logging

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("lark_options.conf")

DEFAULT_AUTH_URL = (
    "https://open.feishu.cn/open-apis/auth/v3/app_access_token/internal"
)
DEFAULT_API_BASE = "https://open.larksuite.com/open-apis"
DEFAULT_FILTER_FIELD = "Department/ProductLine"

# route slug -> upstream field name
DEFAULT_COLUMNS = {
    "department_product_line": "Department/ProductLine",
    "hod": "HOD",
    "hod_limit": "HODLimit",
    "2nd_tier": "2ndTier",
    "2nd_tier_limit": "2ndTierLimit",
    "ceo": "CEO",
}


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(
            f"{name} must be a number of seconds, got {raw!r}"
        ) from None


class LarkConfig(BaseModel):
    """Validated upstream (auth + Bitable) configuration."""

    app_id: str
    app_secret: str
    auth_url: str = Field(default=DEFAULT_AUTH_URL)
    api_base: str = Field(default=DEFAULT_API_BASE)
    base_id: str = Field(default="")
    table_id: str = Field(default="")
    filter_field: str = Field(default=DEFAULT_FILTER_FIELD)
    columns: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_COLUMNS))
    timeout: float = Field(default=10.0, gt=0, le=120)
    token_ttl: int = Field(default=3600, ge=60)
    safety_margin: int = Field(default=600, ge=0)
    page_size: int = Field(default=100, ge=1, le=500)

    @field_validator("app_id", "app_secret")
    @classmethod
    def validate_credential(cls, v: str) -> str:
        """App credentials cannot be blank."""
        if not v or not v.strip():
            raise ValueError("Lark app credentials cannot be empty")
        return v

    @field_validator("api_base")
    @classmethod
    def strip_base(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_margin(self) -> "LarkConfig":
        """Ensure the refresh window leaves a positive token lifetime."""
        if self.safety_margin >= self.token_ttl:
            raise ValueError(
                f"safety_margin ({self.safety_margin}) must be lower than "
                f"token_ttl ({self.token_ttl})"
            )
        return self

    @property
    def refresh_after(self) -> int:
        """Age (seconds) after which a cached token is considered stale."""
        return self.token_ttl - self.safety_margin

    @classmethod
    def from_env(cls) -> "LarkConfig":
        """Create LarkConfig by loading values from environment.

        Raises:
            RuntimeError: If LARK_APP_ID or LARK_APP_SECRET is not set,
                or LARK_TIMEOUT is not a number.
        """
        app_id = os.environ.get("LARK_APP_ID")
        app_secret = os.environ.get("LARK_APP_SECRET")
        if not app_id or not app_secret:
            raise RuntimeError(
                "Lark app credentials not found in environment. "
                "Set LARK_APP_ID and LARK_APP_SECRET"
            )
        cfg = cls(
            app_id=app_id,
            app_secret=app_secret,
            auth_url=os.environ.get("LARK_AUTH_URL", DEFAULT_AUTH_URL),
            api_base=os.environ.get("LARK_API_BASE", DEFAULT_API_BASE),
            base_id=os.environ.get("LARK_BASE_ID", ""),
            table_id=os.environ.get("LARK_TABLE_ID", ""),
            filter_field=os.environ.get("LARK_FILTER_FIELD", DEFAULT_FILTER_FIELD),
            timeout=_env_float("LARK_TIMEOUT", 10.0),
        )
        logger.debug(
            "Loaded Lark config for app %s (table %s)", cfg.app_id, cfg.table_id
        )
        return cfg


class EnvelopeConfig(BaseModel):
    """Response envelope and callback verification settings."""

    encrypt_key: str = Field(default="")
    verify_token: str = Field(default="")
    localize: bool = Field(default=False)

    @property
    def encrypted(self) -> bool:
        return bool(self.encrypt_key)

    @classmethod
    def from_env(cls) -> "EnvelopeConfig":
        return cls(
            encrypt_key=os.environ.get("ENCRYPT_KEY", ""),
            verify_token=os.environ.get("VERIFY_TOKEN", ""),
            localize=_env_flag("LOCALIZE"),
        )
