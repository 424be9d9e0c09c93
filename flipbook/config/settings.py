"""Central configuration for Flipbook Viewer."""

import os
import logging
from pathlib import Path
from typing import Optional, Tuple

import tomli

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}

DEFAULT_API_URL = "http://127.0.0.1:8000"
DEFAULT_SOUND_URL = "https://cdn.pixabay.com/download/audio/2022/03/15/audio_9ff19fec20.mp3?filename=newspaper-foley-4-153637.mp3"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid {name}: {value!r}, using {default}")
        return default


def get_app_name() -> str:
    """Get application name."""
    return "Flipbook Viewer"


def get_app_version() -> str:
    """Get application version from pyproject.toml."""
    try:
        pyproject_path = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"
        with open(pyproject_path, "rb") as f:
            pyproject = tomli.load(f)
            return pyproject.get("project", {}).get("version", "0.1.0")
    except (OSError, tomli.TOMLDecodeError):
        # Installed without the source tree
        return "0.1.0"


def get_api_url() -> str:
    """Get base URL of the magazine API.

    Returns:
        URL from FLIPBOOK_API_URL without trailing slash (default: local server)
    """
    return os.getenv("FLIPBOOK_API_URL", DEFAULT_API_URL).rstrip("/")


def get_client_slug() -> Optional[str]:
    """Get the tenant slug the viewer shows magazines for.

    Returns:
        Slug from FLIPBOOK_CLIENT_SLUG, or None
    """
    slug = os.getenv("FLIPBOOK_CLIENT_SLUG", "").strip()
    return slug or None


def get_range_requests_enabled() -> bool:
    """Check if remote PDFs are downloaded with HTTP range requests.

    Returns:
        True if FLIPBOOK_RANGE_REQUESTS is set to a true value, default False
    """
    return _env_flag("FLIPBOOK_RANGE_REQUESTS", False)


def get_load_timeout() -> float:
    """Seconds allowed for opening a document (FLIPBOOK_LOAD_TIMEOUT, default 30)."""
    return _env_float("FLIPBOOK_LOAD_TIMEOUT", 30.0)


def get_render_timeout() -> float:
    """Seconds allowed for rendering a page (FLIPBOOK_RENDER_TIMEOUT, default 30)."""
    return _env_float("FLIPBOOK_RENDER_TIMEOUT", 30.0)


def get_data_dir() -> Path:
    """Get directory for the API database and uploaded files.

    Returns:
        Path from FLIPBOOK_DATA_DIR, default: project root / "data" (created if needed)
    """
    env_path = os.getenv("FLIPBOOK_DATA_DIR")
    if env_path:
        data_dir = Path(env_path)
    else:
        data_dir = Path(__file__).resolve().parent.parent.parent / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_auth_secret() -> str:
    """Get the JWT signing secret.

    Returns:
        Secret from FLIPBOOK_AUTH_SECRET; a development secret is used (and a
        warning logged) when unset
    """
    secret = os.getenv("FLIPBOOK_AUTH_SECRET")
    if secret:
        return secret
    logger.warning("FLIPBOOK_AUTH_SECRET not set, using development secret")
    return "flipbook-dev-secret-change-me"


def get_sound_url() -> Optional[str]:
    """Get URL of the page-turn sample.

    Returns:
        FLIPBOOK_SOUND_URL, the default sample if unset, or None if set to ""
    """
    value = os.getenv("FLIPBOOK_SOUND_URL")
    if value is None:
        return DEFAULT_SOUND_URL
    return value.strip() or None


def get_audio_disabled() -> bool:
    """Check if audio output is disabled (FLIPBOOK_DISABLE_AUDIO)."""
    return _env_flag("FLIPBOOK_DISABLE_AUDIO", False)


def get_admin_credentials() -> Tuple[Optional[str], Optional[str]]:
    """Get the admin account seeded when the API server starts.

    Returns:
        (FLIPBOOK_ADMIN_EMAIL, FLIPBOOK_ADMIN_PASSWORD); either may be None
    """
    email = os.getenv("FLIPBOOK_ADMIN_EMAIL", "").strip() or None
    password = os.getenv("FLIPBOOK_ADMIN_PASSWORD") or None
    return email, password
