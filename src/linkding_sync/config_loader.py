"""
YAML config file discovery and loading for linkding_sync.

Config files are looked up by convention (explicit env var, project
directory, XDG home).  Files may pull in other files with ``!include`` and
reference environment variables as ``${VAR}`` or ``${VAR:-default}``.
When several files exist, each top-level section is merged key by key and
the more specific file wins.

Usage:
    from linkding_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LINKDING_SYNC_CONFIG"
PROJECT_DIR = ".linkding_sync"

# ---------------------------------------------------------------------------
# Env var references
# ---------------------------------------------------------------------------

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    there is none.  An unterminated ``${`` is kept as is.
    """

    def _expand(match: re.Match) -> str:
        current = os.environ.get(match.group(1))
        if current:
            return current
        return match.group(2) or ""

    return _ENV_REF.sub(_expand, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {key: _interpolate_recursive(val) for key, val in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader with an ``!include`` tag.

    A subclass keeps the tag off the global ``yaml.SafeLoader``.  Each
    loader carries the chain of files being loaded so cycles are caught.
    """

    include_chain: list[Path]


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    """Load the file named by an ``!include`` node, relative to its parent."""
    target = Path(loader.construct_scalar(node)).expanduser()
    parent = Path(loader.name).resolve()
    if not target.is_absolute():
        target = parent.parent / target
    target = target.resolve()

    chain = loader.include_chain
    if target in chain:
        cycle = " -> ".join(str(p) for p in [*chain, target])
        raise ConfigurationError(f"Circular include: {cycle}")
    if not target.is_file():
        raise ConfigurationError(
            f"Included file {target} not found (from {parent})"
        )
    return _load_yaml_with_includes(target, chain=[*chain, target])


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path, *, chain: list[Path] | None = None
) -> Any:
    """Parse one YAML file, resolving ``!include`` tags."""
    path = path.resolve()
    with open(path, encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.include_chain = chain or [path]
        try:
            return loader.get_single_data()
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return the config files that exist, most specific first.

    Candidates:
        1. the path in ``LINKDING_SYNC_CONFIG``;
        2. ``.linkding_sync/config.yml`` or ``config.yaml`` in the CWD;
        3. ``~/.config/linkding_sync/config.yml``.
    """
    candidates: list[Path] = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())

    project = Path.cwd() / PROJECT_DIR
    candidates += [project / "config.yml", project / "config.yaml"]
    candidates.append(Path.home() / ".config" / "linkding_sync" / "config.yml")

    return [path for path in candidates if path.is_file()]


_STARTER_CONFIG = """\
# linkding-bookmark-sync configuration
#
# Connection settings may also come from the environment:
#   LINKDING_URL, LINKDING_TOKEN, LINKDING_INSECURE, LINKDING_WRITE_DELAY
#
# linkding:
#   url: https://links.example.com
#   token: ${LINKDING_TOKEN}
#   insecure: false
#   write_delay: 0.25
#
# bookmarks:
#   file: ~/.config/chromium/Default/Bookmarks
#   sync_folder: Bookmarks bar/Linkding Sync
#   mirror_folder: Bookmarks bar/Linkding
#
# sync:
#   sync_tag: bookmark-sync
#   one_way_enabled: true
#   two_way_enabled: false
#   auto_sync: false
#   interval_minutes: 60
#   debounce_seconds: 2
#   poll_seconds: 5
#   state_dir: .linkding_sync
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Path of the active config file, or the project default if none exists."""
    found = discover_config_files()
    if found:
        return found[0]
    return Path.cwd() / PROJECT_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a commented starter if needed.

    Args:
        target: Where to write the starter file; defaults to
            ``resolve_config_path()``.
    """
    found = discover_config_files()
    if found:
        logger.debug("Using existing config %s", found[0])
        return found[0]

    path = target or resolve_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Wrote starter config to %s", path)
    return path


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def _merge_sections(base: dict[str, Any], overlay: dict[str, Any]) -> None:
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = {**base[key], **value}
        else:
            base[key] = value


def load_hierarchical_config() -> dict[str, Any]:
    """Load every discovered config file into one raw dict.

    Files are applied from least to most specific.  Section dicts are
    merged key by key; any other top-level value is replaced.  Env var
    references are expanded after merging.  No files means ``{}``.

    Raises:
        ConfigurationError: On invalid YAML or a broken ``!include``.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found; using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config %s", path)
        data = _load_yaml_with_includes(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        _merge_sections(merged, data)

    return _interpolate_recursive(merged)
