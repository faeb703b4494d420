"""Provides functions for loading and accessing configuration settings.

Supports loading from a YAML configuration file (~/.dashlink/config.yaml),
a .env file and environment variables, and assembles the immutable
``ClientSettings`` consumed by the API client.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".dashlink"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "DASHLINK_"

DEFAULT_API_URL = "http://localhost:3001"
DEFAULT_FALLBACK_PORTS = (3001, 3002, 3003)
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_STALE_AFTER = 30.0
DEFAULT_SESSION_FILE = DEFAULT_CONFIG_DIR / "session.json"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ('api': {'url'} -> 'api.url')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def env_key_for(key: str) -> str:
    """'api.url' -> 'DASHLINK_API_URL'."""
    return f"{ENV_PREFIX}{key.upper().replace('.', '_')}"


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False so real environment variables win
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above current directory.")

    # 3. Environment variables are read on demand in get_config
    _loaded = True
    logger.debug("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets loaded configuration so the next access reloads it."""
    global _config, _loaded
    _config = {}
    _loaded = False


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (DASHLINK_ prefixed, dots as underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. 'api.url'
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    if not _loaded:
        load_configuration()

    env_key = env_key_for(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")

# --- Convenience Functions ---

def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
        logger.warning(f"Unexpected boolean value '{value}'. Defaulting to {default}.")
        return default
    return bool(value)


def get_fallback_ports() -> Tuple[int, ...]:
    """Ports probed in development, in order of preference."""
    raw = get_config("api.fallback_ports", DEFAULT_FALLBACK_PORTS)
    if isinstance(raw, int):
        return (raw,)
    if isinstance(raw, str):
        parts: List[str] = [p.strip() for p in raw.split(",") if p.strip()]
    else:
        parts = [str(p) for p in raw]
    ports = []
    for part in parts:
        try:
            ports.append(int(part))
        except ValueError:
            logger.warning(f"Ignoring invalid fallback port: {part!r}")
    return tuple(ports)


def is_development() -> bool:
    return str(get_config("environment", "production")).lower() == "development"


def get_api_key() -> Optional[str]:
    key = get_config("api.key")
    return str(key) if key else None


@dataclass(frozen=True)
class ClientSettings:
    """Everything the API client needs to know about its environment."""
    api_url: str = DEFAULT_API_URL
    api_key: Optional[str] = None
    ws_url: Optional[str] = None
    development: bool = False
    auto_detection: bool = True
    fallback_ports: Tuple[int, ...] = field(default=DEFAULT_FALLBACK_PORTS)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    stale_after: float = DEFAULT_STALE_AFTER

    @property
    def probing_enabled(self) -> bool:
        """Candidate probing only happens in development with detection on."""
        return self.development and self.auto_detection


def load_client_settings() -> ClientSettings:
    """Builds ClientSettings from the loaded configuration."""
    ws_url = get_config("api.ws_url")
    return ClientSettings(
        api_url=str(get_config("api.url", DEFAULT_API_URL)),
        api_key=get_api_key(),
        ws_url=str(ws_url) if ws_url else None,
        development=is_development(),
        auto_detection=_as_bool(get_config("features.enable_auto_detection"), True),
        fallback_ports=get_fallback_ports(),
        request_timeout=float(get_config("api.timeout", DEFAULT_REQUEST_TIMEOUT)),
        max_retries=int(get_config("retry.max_retries", DEFAULT_MAX_RETRIES)),
        base_delay=float(get_config("retry.base_delay", DEFAULT_BASE_DELAY)),
        stale_after=float(get_config("dedup.stale_after", DEFAULT_STALE_AFTER)),
    )


def get_session_file() -> Path:
    return Path(str(get_config("session.file", DEFAULT_SESSION_FILE))).expanduser()
