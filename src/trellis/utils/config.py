"""
Trellis Configuration Loader.

Loads configuration from .trellis/config.yaml for engine identity, discovery
markers and default extensions.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_ENGINE_ID = "trellis"
CONFIG_DIR = ".trellis"
CONFIG_FILE = "config.yaml"


def find_project_root(start: Optional[Path] = None) -> Path:
    """
    Nearest directory at or above ``start`` (default: cwd) holding .trellis/.

    Falls back to ``start`` itself, where the config loaders return defaults.
    """
    start = (start or Path.cwd()).resolve()
    for candidate in (start, *start.parents):
        if (candidate / CONFIG_DIR).is_dir():
            return candidate
    return start


def load_trellis_config(repo_root: Path) -> Dict[str, Any]:
    """
    Load .trellis/config.yaml configuration file.

    Args:
        repo_root: Project root path

    Returns:
        Parsed configuration dict, or empty dict if file doesn't exist

    Example config:
        engine:
          id: trellis
        discovery:
          markers:
            test: test
            nested: nested
          warn_on_contested_claims: true
        extensions:
          default:
            - myproject.extensions:TimingExtension
    """
    config_path = repo_root / CONFIG_DIR / CONFIG_FILE

    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path, e)
        return {}

    if not isinstance(config, dict):
        logger.warning("Ignoring config %s: top level must be a mapping", config_path)
        return {}
    return config


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name) or {}
    return dict(section) if isinstance(section, dict) else {}


def get_engine_id(repo_root: Path) -> str:
    """Return the configured engine ID (first segment of every unique ID)."""
    engine = _section(load_trellis_config(repo_root), "engine")
    return str(engine.get("id") or DEFAULT_ENGINE_ID)


def get_discovery_config(repo_root: Path) -> Dict[str, Any]:
    """
    Get discovery-specific configuration.

    Args:
        repo_root: Project root path

    Returns:
        Discovery configuration dict with defaults applied
    """
    discovery_config = _section(load_trellis_config(repo_root), "discovery")

    markers = {"test": "test", "nested": "nested"}
    configured = discovery_config.get("markers") or {}
    if isinstance(configured, dict):
        markers.update({k: str(v) for k, v in configured.items() if v})
    discovery_config["markers"] = markers

    defaults = {
        "warn_on_contested_claims": True,
    }

    for key, default_value in defaults.items():
        if key not in discovery_config:
            discovery_config[key] = default_value

    return discovery_config


def get_default_extensions(repo_root: Path) -> List[str]:
    """
    Get extension paths registered in the root extension registry.

    Args:
        repo_root: Project root path

    Returns:
        List of "module:Class" extension paths (possibly empty)
    """
    extensions = _section(load_trellis_config(repo_root), "extensions")
    default = extensions.get("default") or []
    if not isinstance(default, list):
        logger.warning("extensions.default must be a list, got %r", default)
        return []
    return [str(path) for path in default]
