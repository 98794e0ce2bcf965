"""Connection settings for the linkding server.

Each field is taken from the first source that sets it:

    CLI argument > environment (including a loaded .env) > YAML ``linkding``
    section > built-in default

Environment variables:
    LINKDING_URL: linkding instance URL (required)
    LINKDING_TOKEN: REST API token from the linkding settings page (required)
    LINKDING_INSECURE: Skip TLS certificate checks (default: false)
    LINKDING_DEBUG: Debug logging (default: false)
    LINKDING_WRITE_DELAY: Seconds to wait between write calls (default: 0.25)
"""

import logging
import os
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_WRITE_DELAY = 0.25
MAX_WRITE_DELAY = 60.0

_TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass
class Config:
    linkding_url: str
    token: str
    insecure: bool = False
    debug: bool = False
    write_delay: float = DEFAULT_WRITE_DELAY


def validate_config(config: Config) -> None:
    """Check and normalise a Config in place.

    The URL is stripped of surrounding whitespace and trailing slashes
    once its scheme and hostname have been checked.

    Raises:
        ValueError: On a malformed URL, a blank token or a negative delay.
    """
    url = config.linkding_url.strip()
    if not url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid linkding URL '{url}': must start with http:// or https://"
        )
    if not urlparse(url).hostname:
        raise ValueError(f"Invalid linkding URL '{url}': URL must include a hostname")
    config.linkding_url = url.rstrip("/")

    if not config.token.strip():
        raise ValueError(
            "linkding API token cannot be empty. Set LINKDING_TOKEN environment variable."
        )
    if config.write_delay < 0:
        raise ValueError(
            f"Invalid write delay {config.write_delay}: must not be negative"
        )
    if config.insecure:
        logger.warning(
            "SSL verification disabled (insecure=True). Use only for development."
        )


def _required(cli_value: str | None, env_key: str, fallback: Any, what: str, flag: str) -> str:
    value = cli_value or os.getenv(env_key) or fallback
    if not value:
        raise ValueError(
            f"linkding {what} not found. Set {env_key} environment variable, "
            f"pass --{flag} CLI argument, or add '{flag}' to config.yml."
        )
    return str(value).strip()


def _flag(cli_value: bool, env_key: str, fallback: Any) -> bool:
    """A CLI flag can only switch on; env then YAML decide otherwise."""
    if cli_value:
        return True
    raw = os.getenv(env_key)
    if raw is not None:
        return raw.lower() in _TRUE_VALUES
    return bool(fallback)


def _write_delay(fallback: Any) -> float:
    raw = os.getenv("LINKDING_WRITE_DELAY")
    if raw is None:
        return DEFAULT_WRITE_DELAY if fallback is None else float(fallback)
    error = (
        f"Invalid LINKDING_WRITE_DELAY '{raw}': must be a number "
        f"between 0 and {MAX_WRITE_DELAY:g}"
    )
    try:
        delay = float(raw)
    except ValueError:
        raise ValueError(error) from None
    if not 0 <= delay <= MAX_WRITE_DELAY:
        raise ValueError(error)
    return delay


def load_config(
    url: str | None = None,
    token: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Resolve the connection settings and validate them.

    Call ``load_dotenv()`` first if .env values should count as
    environment variables.

    Args:
        url: linkding URL from the command line.
        token: API token from the command line.
        insecure: ``--insecure`` was given.
        debug: ``--debug`` was given.
        yaml_fallbacks: The YAML ``linkding`` section, used for fields
            neither the command line nor the environment set.

    Raises:
        ValueError: If URL or token is missing everywhere, or a value is
            invalid.
    """
    fb = yaml_fallbacks or {}
    config = Config(
        linkding_url=_required(url, "LINKDING_URL", fb.get("url"), "URL", "url"),
        token=_required(token, "LINKDING_TOKEN", fb.get("token"), "API token", "token"),
        insecure=_flag(insecure, "LINKDING_INSECURE", fb.get("insecure")),
        debug=_flag(debug, "LINKDING_DEBUG", fb.get("debug")),
        write_delay=_write_delay(fb.get("write_delay")),
    )
    validate_config(config)
    return config
