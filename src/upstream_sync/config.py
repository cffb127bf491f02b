"""Runtime configuration for upstream drift checks.

Reads settings from CLI args, environment variables, .env files, and YAML
config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GITHUB_TOKEN: API token (optional; unauthenticated requests are heavily
        rate limited)
    UPSTREAM_SYNC_API_URL: API base URL (optional, default: https://api.github.com)
    UPSTREAM_SYNC_MANIFEST: Manifest path (optional, default: sync-manifest.json)
    UPSTREAM_SYNC_SOURCE: Source id to check (optional)
    UPSTREAM_SYNC_MAX_PARALLEL_REQUESTS: Max concurrent blob fetches (optional, default: 5)
    UPSTREAM_SYNC_MAX_ATTEMPTS: Attempts per request (optional, default: 3)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_MANIFEST_PATH = "sync-manifest.json"
DEFAULT_CONTENT_ROOT = "plugins/compound-engineering/"
PIPELINE_VERSION = 2


@dataclass
class Config:
    api_url: str = DEFAULT_API_URL
    token: str = ""
    manifest_path: str = DEFAULT_MANIFEST_PATH
    source: str | None = None
    content_root: str = DEFAULT_CONTENT_ROOT
    pipeline_version: int = PIPELINE_VERSION
    debug: bool = False
    max_parallel_requests: int = 5
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    connect_timeout: float = 10.0
    read_timeout: float = 60.0


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the API URL is malformed or a numeric setting is out
            of range.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if not config.manifest_path.strip():
        raise ValueError("Manifest path cannot be empty.")

    if not (1 <= config.max_parallel_requests <= 32):
        raise ValueError(
            f"Invalid max_parallel_requests {config.max_parallel_requests}: must be between 1 and 32"
        )

    if not (1 <= config.max_attempts <= 10):
        raise ValueError(
            f"Invalid max_attempts {config.max_attempts}: must be between 1 and 10"
        )

    if config.base_delay < 0 or config.max_delay < config.base_delay:
        raise ValueError(
            "Invalid backoff delays: require 0 <= base_delay <= max_delay"
        )

    if not config.token:
        logger.warning(
            "No GITHUB_TOKEN set; unauthenticated API requests are heavily rate limited."
        )


def _env_int(key: str, low: int, high: int) -> int | None:
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    api_url: str | None = None,
    token: str | None = None,
    manifest_path: str | None = None,
    source: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        api_url: Override API base URL.
        token: Override API token.
        manifest_path: Override manifest location.
        source: Override source id.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML config ``upstream``
            section.  Used when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is invalid after checking all sources.
    """
    fb = yaml_fallbacks or {}

    final_api_url = (
        api_url
        or os.getenv("UPSTREAM_SYNC_API_URL")
        or fb.get("api_url")
        or DEFAULT_API_URL
    )
    final_token = (token or os.getenv("GITHUB_TOKEN") or "").strip()
    final_manifest = (
        manifest_path
        or os.getenv("UPSTREAM_SYNC_MANIFEST")
        or fb.get("manifest_path")
        or DEFAULT_MANIFEST_PATH
    )
    final_source = (
        source or os.getenv("UPSTREAM_SYNC_SOURCE") or fb.get("source")
    )

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("UPSTREAM_SYNC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    max_parallel = _env_int("UPSTREAM_SYNC_MAX_PARALLEL_REQUESTS", 1, 32)
    if max_parallel is None:
        max_parallel = int(fb.get("max_parallel_requests", 5))

    max_attempts = _env_int("UPSTREAM_SYNC_MAX_ATTEMPTS", 1, 10)
    if max_attempts is None:
        max_attempts = int(fb.get("max_attempts", 3))

    config = Config(
        api_url=final_api_url,
        token=final_token,
        manifest_path=final_manifest,
        source=final_source,
        content_root=fb.get("content_root", DEFAULT_CONTENT_ROOT),
        pipeline_version=int(
            fb.get("pipeline_version", PIPELINE_VERSION)
        ),
        debug=final_debug,
        max_parallel_requests=max_parallel,
        max_attempts=max_attempts,
        base_delay=float(fb.get("base_delay", 1.0)),
        max_delay=float(fb.get("max_delay", 10.0)),
        connect_timeout=float(fb.get("connect_timeout", 10.0)),
        read_timeout=float(fb.get("read_timeout", 60.0)),
    )

    validate_config(config)

    return config
