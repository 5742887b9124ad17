"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.flockcli/config.yaml). Nested YAML sections are
flattened into dotted keys, so ``lookup: {batch_size: 50}`` is read back
with ``get_config('lookup.batch_size')``.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from flockcli.domain.models.common import AuthMode, OperationClass
from flockcli.domain.models.errors import ConfigurationError

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".flockcli"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_LOOKUP_BATCH_SIZE = 100
MAX_LOOKUP_BATCH_SIZE = 100
DEFAULT_PAGE_SIZES = {
    OperationClass.ASSOCIATES: 5000,
    OperationClass.TIMELINE: 200,
}

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    # 3. Environment Variables (Highest priority) are handled in get_config

    _loaded = True
    logger.info("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets everything loaded so the next load_configuration starts over."""
    global _config, _loaded
    _config = {}
    _loaded = False


def _coerce(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        if "." in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (key upper-cased, dots replaced by underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace(".", "_")
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the rest of the process."""
    logger.debug(f"Setting config: {key} = {value}")
    _config[key] = value


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None

# --- Convenience Functions ---

def get_app_bearer_token() -> Optional[str]:
    """Application-context bearer token (SOCIAL_APP_BEARER_TOKEN or auth.app_bearer_token)."""
    token = get_config("SOCIAL_APP_BEARER_TOKEN") or get_config("auth.app_bearer_token")
    return str(token) if token else None


def get_user_access_token() -> Optional[str]:
    """User-context access token (SOCIAL_USER_ACCESS_TOKEN or auth.user_access_token)."""
    token = get_config("SOCIAL_USER_ACCESS_TOKEN") or get_config("auth.user_access_token")
    return str(token) if token else None


def get_auth_mode() -> Optional[AuthMode]:
    """The auth mode forced by configuration, or None to pick from available tokens."""
    value = get_config("auth.mode")
    if value is None or value == "":
        return None
    try:
        return AuthMode(str(value).lower())
    except ValueError as e:
        choices = ", ".join(mode.value for mode in AuthMode)
        raise ConfigurationError(f"Unknown auth.mode '{value}'. Choose one of: {choices}") from e


def get_api_base_url() -> str:
    return str(get_config("api.base_url", "https://api.twitter.com/1.1"))


def get_stream_base_url() -> str:
    return str(get_config("stream.base_url", "https://stream.twitter.com/1.1"))


def get_request_timeout() -> float:
    return float(get_config("api.timeout_seconds", 30.0))


def get_stream_read_timeout() -> float:
    # The platform sends keep-alive newlines every ~30s; 90s means the link is stale.
    return float(get_config("stream.read_timeout_seconds", 90.0))


def get_stream_max_reopen_attempts() -> int:
    return int(get_config("stream.max_reopen_attempts", 3))


def get_lookup_batch_size() -> int:
    """Bulk lookup batch size; the platform accepts at most 100 ids per request."""
    value = get_config("lookup.batch_size", DEFAULT_LOOKUP_BATCH_SIZE)
    try:
        size = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"lookup.batch_size must be an integer, got '{value}'") from e
    if not 1 <= size <= MAX_LOOKUP_BATCH_SIZE:
        raise ConfigurationError(
            f"lookup.batch_size must be between 1 and {MAX_LOOKUP_BATCH_SIZE}, got {size}"
        )
    return size


def get_page_size(operation_class: OperationClass) -> int:
    """Items requested per page for a paged operation class."""
    key = f"paging.{operation_class.value}.page_size"
    value = get_config(key, DEFAULT_PAGE_SIZES.get(operation_class, 200))
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigurationError(f"{key} must be an integer, got '{value}'")
    try:
        size = int(value)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got '{value}'") from e
    if size < 1:
        raise ConfigurationError(f"{key} must be positive, got {size}")
    return size


def use_shared_pacing_state() -> bool:
    """Whether all operation classes share one pacing timestamp (coarse pacing)."""
    flag = get_config("pacing.shared_state", False)
    if isinstance(flag, str):
        return flag.lower() == "true"
    return bool(flag)


def get_quota_overrides() -> Dict[Tuple[OperationClass, AuthMode], int]:
    """Collects ``quota.<operation_class>.<auth_mode>`` overrides.

    Raises:
        ConfigurationError: If an override is not a non-negative integer.
    """
    overrides: Dict[Tuple[OperationClass, AuthMode], int] = {}
    for operation_class in OperationClass:
        for auth_mode in AuthMode:
            key = f"quota.{operation_class.value}.{auth_mode.value}"
            value = get_config(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, str)):
                raise ConfigurationError(f"{key} must be a non-negative integer, got '{value}'")
            try:
                allowed = int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a non-negative integer, got '{value}'") from e
            if allowed < 0:
                raise ConfigurationError(f"{key} must be a non-negative integer, got {allowed}")
            overrides[(operation_class, auth_mode)] = allowed
    if overrides:
        logger.info(f"Quota overrides from configuration: {len(overrides)} cell(s)")
    return overrides


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
