import json
import os
from dataclasses import dataclass, field
from typing import Optional

from .logger import logger


def _load_dotenv():
    root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
    dotenv_path = os.path.join(root_dir, ".env")
    if not os.path.isfile(dotenv_path):
        return
    try:
        with open(dotenv_path, "r", encoding="utf-8") as handle:
            for line in handle:
                stripped = line.strip()
                if not stripped or stripped.startswith("#"):
                    continue
                if stripped.startswith("export "):
                    stripped = stripped[7:].strip()
                if "=" not in stripped:
                    logger.warning("Skipping invalid .env line: %s", stripped)
                    continue
                key, value = stripped.split("=", 1)
                key = key.strip()
                value = value.strip()
                if not key:
                    continue
                if len(value) >= 2 and value[0] == value[-1] and value[0] in {"\"", "'"}:
                    value = value[1:-1]
                os.environ.setdefault(key, value)
    except OSError as exc:
        logger.warning("Failed to load .env file %s: %s", dotenv_path, exc)


def _bool_env(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _int_env(name, default):
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("Invalid integer in %s, using %s.", name, default)
        return default


def _float_env(name, default):
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("Invalid number in %s, using %s.", name, default)
        return default


def _json_env(name, default):
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Invalid JSON in %s, using default.", name)
        return default


def _list_env(name, default):
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


_load_dotenv()

LOG_TOOL_CALLS = _bool_env("GATEWAY_LOG_TOOL_CALLS", False)
LOG_MAX_CHARS = _int_env("GATEWAY_LOG_MAX_CHARS", 2000)
LOG_PAYLOADS = _bool_env("GATEWAY_LOG_PAYLOADS", False)
LOG_PAYLOAD_MAX_CHARS = _int_env("GATEWAY_LOG_PAYLOAD_MAX_CHARS", 4000)
LOG_PAYLOAD_MAX_ITEMS = _int_env("GATEWAY_LOG_PAYLOAD_MAX_ITEMS", 50)
LOG_PAYLOAD_MAX_DEPTH = _int_env("GATEWAY_LOG_PAYLOAD_MAX_DEPTH", 6)

DEFAULT_ALLOWED_ORIGINS = (
    "https://prompttoform.ai",
    "https://app.prompttoform.ai",
)
DEFAULT_UPLOAD_TYPES = (
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
    "application/pdf",
)
USER_AGENT = "Form-Generator-Worker/1.0"


@dataclass(frozen=True)
class Settings:
    """Everything the route handlers need, resolved once at startup."""

    env: str = "production"
    allowed_origins: tuple = DEFAULT_ALLOWED_ORIGINS
    system_keys: dict = field(default_factory=dict)
    openai_timeout: float = 120.0
    openai_max_retries: int = 0
    upstream_timeout: float = 120.0
    openapi_fetch_timeout: float = 30.0
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_upload_types: tuple = DEFAULT_UPLOAD_TYPES
    database_path: str = "forms.db"
    mailrelay_api_key: Optional[str] = None
    mailrelay_domain: Optional[str] = None
    email_default_from: str = "noreply@yourdomain.com"
    netlify_client_id: Optional[str] = None
    netlify_client_secret: Optional[str] = None
    netlify_redirect_uri: Optional[str] = None
    netlify_success_redirect_url: str = "https://demo.codeflowcanvas.io"
    netlify_api_base: str = "https://api.netlify.com"
    netlify_default_zip_path: Optional[str] = None

    @property
    def is_dev(self):
        return self.env == "dev"


def _system_keys_from_env():
    keys = {}
    if os.getenv("OPENAI_API_KEY"):
        keys["openai"] = os.getenv("OPENAI_API_KEY")
    if os.getenv("GEMINI_API_KEY"):
        keys["gemini"] = os.getenv("GEMINI_API_KEY")
    extra = _json_env("GATEWAY_SYSTEM_KEYS", {})
    if isinstance(extra, dict):
        keys.update({str(name).lower(): value for name, value in extra.items() if value})
    else:
        logger.warning("GATEWAY_SYSTEM_KEYS must be a JSON object, ignoring.")
    return keys


def load_settings():
    return Settings(
        env=os.getenv("GATEWAY_ENV", "production").strip().lower(),
        allowed_origins=tuple(
            origin.rstrip("/") for origin in _list_env("GATEWAY_ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS)
        ),
        system_keys=_system_keys_from_env(),
        openai_timeout=_float_env("OPENAI_TIMEOUT", 120.0),
        openai_max_retries=_int_env("OPENAI_MAX_RETRIES", 0),
        upstream_timeout=_float_env("GATEWAY_UPSTREAM_TIMEOUT", 120.0),
        openapi_fetch_timeout=_float_env("OPENAPI_FETCH_TIMEOUT", 30.0),
        max_upload_bytes=_int_env("GATEWAY_MAX_UPLOAD_BYTES", 10 * 1024 * 1024),
        allowed_upload_types=tuple(_list_env("GATEWAY_ALLOWED_UPLOAD_TYPES", DEFAULT_UPLOAD_TYPES)),
        database_path=os.getenv("FORMS_DATABASE_PATH", "forms.db"),
        mailrelay_api_key=os.getenv("MAILRELAY_API_KEY"),
        mailrelay_domain=os.getenv("MAILRELAY_DOMAIN"),
        email_default_from=os.getenv("EMAIL_DEFAULT_FROM", "noreply@yourdomain.com"),
        netlify_client_id=os.getenv("NETLIFY_CLIENT_ID"),
        netlify_client_secret=os.getenv("NETLIFY_CLIENT_SECRET"),
        netlify_redirect_uri=os.getenv("NETLIFY_REDIRECT_URI"),
        netlify_success_redirect_url=os.getenv(
            "NETLIFY_SUCCESS_REDIRECT_URL", "https://demo.codeflowcanvas.io"
        ),
        netlify_api_base=os.getenv("NETLIFY_API_BASE", "https://api.netlify.com").rstrip("/"),
        netlify_default_zip_path=os.getenv("NETLIFY_DEFAULT_ZIP_PATH"),
    )
