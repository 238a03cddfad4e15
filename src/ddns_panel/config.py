"""
Application settings for DDNS Panel.

This module handles loading and validating the panel's own settings (listen
address, store location, sync interval, security thresholds, logging) from
a TOML file and command-line arguments. Settings priority (high to low):
1. Command-line arguments
2. Settings file
3. Default values

The configuration edited through the web form is a different thing; see
``ddns_panel.models.Configuration`` and ``ddns_panel.store``.
"""

from __future__ import annotations

import argparse
import copy
import logging
import sys
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_core import PydanticCustomError

from ddns_panel.logging_config import DATE_FORMAT, LOG_FORMAT
from ddns_panel.store import DEFAULT_STORE_PATH

if TYPE_CHECKING:
    from typing import Any, Self

# Configure basic logging for early startup messages.
# Log messages emitted while settings are loaded (before "setup_logging()" is
# called) go to the console only, since the log file path is not known yet.
logger_basic = logging.getLogger(__name__)
logger_basic.setLevel(logging.DEBUG)
handler = logging.StreamHandler()
formatter = logging.Formatter(
    fmt=LOG_FORMAT,
    datefmt=DATE_FORMAT,
)
handler.setFormatter(formatter)
logger_basic.addHandler(handler)
logger_basic.propagate = False


class ConfigValidationError(Exception):
    """
    Exception raised when settings validation fails.

    Attributes
    ----------
    message : str
        Human-readable error message describing the validation failures.
    config_path : Path | None
        Path to the settings file that failed validation.
    """

    def __init__(self, message: str, config_path: Path | None = None) -> None:
        """
        Initialize ConfigValidationError.

        Parameters
        ----------
        message : str
            Human-readable error message.
        config_path : Path | None, optional
            Path to the settings file.
        """
        self.config_path = config_path
        super().__init__(message)


# Settings models (Pydantic with type validation and coercion)


class ServerConfig(BaseModel):
    """
    Server settings.

    Attributes
    ----------
    host : str
        Host address to bind to.
    port : int
        Port number to listen on.
    """

    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(default=9876, ge=1, le=65535)


class StoreConfig(BaseModel):
    """
    Configuration store settings.

    Attributes
    ----------
    path : str
        Path of the JSON file holding the panel configuration.
    """

    path: str = DEFAULT_STORE_PATH

    @property
    def path_as_path(self) -> Path:
        """Get the store path as an expanded Path object."""
        return Path(self.path).expanduser()


class SyncConfig(BaseModel):
    """
    Synchronization settings.

    Attributes
    ----------
    interval : float
        Seconds between periodic synchronization passes.
    first_delay : float
        Seconds before the first periodic pass.
    """

    interval: float = Field(default=300.0, ge=1)
    first_delay: float = Field(default=0.1, ge=0)


class SecurityConfig(BaseModel):
    """
    Security settings.

    Attributes
    ----------
    bootstrap_window : float
        Seconds after start during which first-time setup is accepted.
    min_entropy_wan : float
        Minimum password entropy (bits) when WAN access is allowed.
    min_entropy_lan : float
        Minimum password entropy (bits) when WAN access is blocked.
    """

    bootstrap_window: float = Field(default=300.0, gt=0)
    min_entropy_wan: float = Field(default=30.0, ge=0)
    min_entropy_lan: float = Field(default=25.0, ge=0)

    @model_validator(mode="after")
    def check_wan_not_weaker_than_lan(self) -> Self:
        """
        Validate that the WAN threshold is at least the LAN threshold.

        Returns
        -------
        Self
            The validated model.

        Raises
        ------
        PydanticCustomError
            If ``min_entropy_wan`` is lower than ``min_entropy_lan``.
        """
        if self.min_entropy_wan < self.min_entropy_lan:
            err_type = "security_config_error"
            raise PydanticCustomError(
                err_type,
                "min_entropy_wan must not be lower than min_entropy_lan",
            )
        return self


class LoggingConfig(BaseModel):
    """
    Logging settings.

    Attributes
    ----------
    level : str
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    file_enabled : bool
        Whether to log to file.
    file_path : str
        Path to the log file.
    buffer_size : int
        Number of recent log lines kept in memory for the "/logs" page.
    """

    level: str = "INFO"
    file_enabled: bool = False
    file_path: str = "/var/log/ddns-panel.log"
    buffer_size: int = Field(default=500, ge=1)

    @property
    def file_path_as_path(self) -> Path:
        """
        Get the log file path as a Path object.

        Returns
        -------
        Path
            The resolved log file path.
        """
        return Path(self.file_path)


class HealthConfig(BaseModel):
    """
    Health endpoint settings.

    Attributes
    ----------
    enabled : bool
        Whether the /health endpoint is enabled.
    """

    enabled: bool = False


class Config(BaseModel):
    """
    Application settings.

    Attributes
    ----------
    server : ServerConfig
        Server settings.
    store : StoreConfig
        Configuration store settings.
    sync : SyncConfig
        Synchronization settings.
    security : SecurityConfig
        Security settings.
    logging : LoggingConfig
        Logging settings.
    health : HealthConfig
        Health endpoint settings.
    """

    server: ServerConfig = ServerConfig()
    store: StoreConfig = StoreConfig()
    sync: SyncConfig = SyncConfig()
    security: SecurityConfig = SecurityConfig()
    logging: LoggingConfig = LoggingConfig()
    health: HealthConfig = HealthConfig()


def _format_validation_errors(
    error: ValidationError,
    config_path: Path | None,
) -> str:
    """
    Format Pydantic validation errors into human-readable messages.

    Parameters
    ----------
    error : ValidationError
        Pydantic validation error.
    config_path : Path | None
        Path to the settings file.

    Returns
    -------
    str
        Human-readable error message.
    """
    lines: list[str] = []

    if config_path:
        lines.append(f'Configuration error in "{config_path}":')
    else:
        lines.append("Configuration error:")

    for err in error.errors():
        # Build field path (e.g., "server.port")
        field_path = ".".join(str(loc) for loc in err["loc"])

        error_type = err["type"]
        error_input = err["input"]
        input_type = type(error_input).__name__

        value_repr = (
            f'"{error_input}"' if isinstance(error_input, str) else repr(error_input)
        )

        if error_type == "security_config_error":
            lines.append(f"  [{field_path}]: {err['msg']}.")
        else:
            expected_type = _get_expected_type(error_type)
            lines.append(
                f"  [{field_path}]: Expected {expected_type}, got {input_type} (value: {value_repr}). {err['msg']}.",
            )

    return "\n".join(lines)


def _get_expected_type(error_type: str) -> str:
    """
    Get human-readable expected type from Pydantic error type.

    Parameters
    ----------
    error_type : str
        Pydantic error type string.

    Returns
    -------
    str
        Human-readable type name.
    """
    type_mapping = {
        "int_type": "int",
        "int_parsing": "int",
        "float_type": "float",
        "float_parsing": "float",
        "bool_type": "bool",
        "bool_parsing": "bool",
        "string_type": "str",
        "greater_than": "larger number",
        "greater_than_equal": "larger number",
        "less_than_equal": "smaller number",
    }
    return type_mapping.get(error_type, error_type)


def validate_config_dict(
    data: dict[str, Any],
    config_path: Path | None = None,
) -> None:
    """
    Validate a settings dictionary using Pydantic.

    Parameters
    ----------
    data : dict[str, Any]
        Settings dictionary to validate.
    config_path : Path | None, optional
        Path to the settings file (for error messages).

    Raises
    ------
    ConfigValidationError
        If validation fails.
    """
    try:
        Config(**data)
    except ValidationError as e:
        msg = _format_validation_errors(e, config_path)
        raise ConfigValidationError(msg, config_path) from e


def load_config_from_file(config_path: Path) -> dict[str, Any]:
    """
    Load settings from a TOML file.

    Parameters
    ----------
    config_path : Path
        Path to the settings file.

    Returns
    -------
    dict[str, Any]
        Parsed settings dictionary.

    Raises
    ------
    FileNotFoundError
        If the settings file does not exist.
    tomllib.TOMLDecodeError
        If the settings file is not valid TOML.
    """
    with config_path.open("rb") as f:
        return tomllib.load(f)


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively merge two settings dictionaries.

    Parameters
    ----------
    base : dict[str, Any]
        Base settings.
    override : dict[str, Any]
        Override settings (takes precedence).

    Returns
    -------
    dict[str, Any]
        Merged settings.
    """
    result = copy.deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_config(result[key], value)
        else:
            result[key] = value
    return result


def dict_to_config(data: dict[str, Any]) -> Config:
    """
    Convert a dictionary to a Config object.

    Parameters
    ----------
    data : dict[str, Any]
        Settings dictionary.

    Returns
    -------
    Config
        Settings object.
    """
    # Handle file_path expansion before Pydantic validation
    if "logging" in data and "file_path" in data["logging"]:
        data = copy.deepcopy(data)
        data["logging"]["file_path"] = str(
            Path(data["logging"]["file_path"]).expanduser(),
        )

    return Config.model_validate(data)


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Parameters
    ----------
    args : list[str] | None, optional
        Command-line arguments. If None, uses sys.argv.

    Returns
    -------
    argparse.Namespace
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        prog="ddns-panel",
        description="DDNS Panel - web configuration panel for a dynamic-DNS updater",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to settings file (default: ddns-panel.toml)",
    )

    # Server arguments
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address to bind to",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port number to listen on",
    )

    # Store arguments
    parser.add_argument(
        "--store-path",
        type=Path,
        dest="store_path",
        default=None,
        help="Path of the stored panel configuration",
    )

    # Sync arguments
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between synchronization passes",
    )

    # Logging arguments
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Log level",
    )
    log_file_group = parser.add_mutually_exclusive_group()
    log_file_group.add_argument(
        "--log-file-enabled",
        action="store_true",
        dest="log_file_enabled",
        default=None,
        help="Enable logging to file",
    )
    log_file_group.add_argument(
        "--log-file-disabled",
        action="store_false",
        dest="log_file_enabled",
        default=None,
        help="Disable logging to file",
    )
    parser.add_argument(
        "--log-file-path",
        type=Path,
        dest="log_file_path",
        default=None,
        help="Path to the log file",
    )

    # Health endpoint arguments
    health_group = parser.add_mutually_exclusive_group()
    health_group.add_argument(
        "--health-enabled",
        action="store_true",
        dest="health_enabled",
        default=None,
        help='Enable "/health" endpoint',
    )
    health_group.add_argument(
        "--health-disabled",
        action="store_false",
        dest="health_enabled",
        default=None,
        help='Disable "/health" endpoint',
    )

    return parser.parse_args(args)


def load_config(args: argparse.Namespace | None = None) -> Config:
    """
    Load settings from file and command-line arguments.

    Priority (high to low):
    1. Command-line arguments
    2. Settings file
    3. Default values

    Parameters
    ----------
    args : argparse.Namespace | None, optional
        Parsed command-line arguments.

    Returns
    -------
    Config
        Loaded settings.
    """
    if args is None:
        args = parse_args()

    config_dict: dict[str, Any] = {}

    # Load from settings file if specified or if default exists
    config_path = args.config
    if config_path is not None:
        config_path = config_path.expanduser()
    if config_path is None:
        default_config = Path("ddns-panel.toml")
        if default_config.exists():
            config_path = default_config

    if config_path is not None:
        if config_path.exists():
            logger_basic.info('Loading settings from "%s".', config_path)
            try:
                config_dict = load_config_from_file(config_path)
            except tomllib.TOMLDecodeError as e:
                logger_basic.critical('Failed to parse settings file: "%s".', e)
                sys.exit(1)
        else:
            logger_basic.critical("Settings file not found: %s", config_path)
            sys.exit(1)

    # Apply command-line overrides
    cli_overrides: dict[str, Any] = {}

    if args.host is not None:
        cli_overrides.setdefault("server", {})["host"] = args.host
    if args.port is not None:
        cli_overrides.setdefault("server", {})["port"] = args.port

    if args.store_path is not None:
        cli_overrides.setdefault("store", {})["path"] = str(args.store_path)

    if args.interval is not None:
        cli_overrides.setdefault("sync", {})["interval"] = args.interval

    if args.log_level is not None:
        cli_overrides.setdefault("logging", {})["level"] = args.log_level
    if args.log_file_enabled is not None:
        cli_overrides.setdefault("logging", {})["file_enabled"] = args.log_file_enabled
    if args.log_file_path is not None:
        cli_overrides.setdefault("logging", {})["file_path"] = str(args.log_file_path)

    if args.health_enabled is not None:
        cli_overrides.setdefault("health", {})["enabled"] = args.health_enabled

    if cli_overrides:
        config_dict = merge_config(config_dict, cli_overrides)

    validate_config_dict(config_dict, config_path)

    return dict_to_config(config_dict)
