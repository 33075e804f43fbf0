'''
Configuration management system for the VAR Toolbox.

This module provides the configuration system for the VAR Toolbox, allowing
users to customize numerical tolerances, bootstrap defaults and logging
through a hierarchical configuration structure. It supports configuration via
environment variables, a user-specific JSON file, and runtime modifications.

The configuration system follows a layered approach:
1. Default configurations built into the package
2. User-specific configuration file
3. Environment variables
4. Runtime modifications

Environment variables follow the pattern ``VARTOOLBOX_<SECTION>_<OPTION>``,
for example ``VARTOOLBOX_BOOTSTRAP_MAX_WORKERS=8``.
'''

import os
import json
import logging
from dataclasses import asdict, dataclass, field, fields

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from .exceptions import ConfigurationError

# Set up module-level logger
logger = logging.getLogger("vartoolbox.core.config")

# Constants for configuration paths and environment variables
CONFIG_ENV_PREFIX = "VARTOOLBOX_"
DEFAULT_CONFIG_FILENAME = "vartoolbox_config.json"
USER_CONFIG_DIR_ENV = "VARTOOLBOX_CONFIG_DIR"


@dataclass
class CoreConfig:
    """
    Core configuration settings for the VAR Toolbox.

    Attributes:
        user_config_dir: Directory searched for the user configuration file
        random_seed: Default seed for bootstrap draws (None for fresh entropy)
    """
    user_config_dir: Path = field(default_factory=lambda: Path.home() / ".vartoolbox")
    random_seed: Optional[int] = None


@dataclass
class NumericalConfig:
    """
    Numerical tolerances used by the estimation and analysis engines.

    Attributes:
        stationarity_tolerance: A model is stationary when every companion
            eigenvalue has modulus below ``1 - stationarity_tolerance``
        rank_tolerance: Singular value threshold for the rank check of the
            restriction matrix
    """
    stationarity_tolerance: float = 1e-8
    rank_tolerance: float = 1e-10


@dataclass
class BootstrapConfig:
    """
    Residual bootstrap defaults.

    Attributes:
        max_workers: Upper bound on threads used for re-estimating draws
        default_draws: Number of draws when the caller does not give one
        method: Default resampling scheme ("efron" or "wild")
    """
    max_workers: int = 4
    default_draws: int = 500
    method: str = "efron"


@dataclass
class LoggingConfig:
    """
    Logging configuration settings for the VAR Toolbox.

    Attributes:
        log_level: Default logging level
        log_file: Path to log file (None for no file logging)
        log_format: Format string for log messages
        log_date_format: Format string for log message timestamps
        console_logging: Whether to log to console
        file_logging: Whether to log to file
    """
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"
    console_logging: bool = True
    file_logging: bool = False


@dataclass
class VARToolboxConfig:
    """
    Complete configuration for the VAR Toolbox.

    Attributes:
        core: Core configuration settings
        numerical: Numerical tolerances
        bootstrap: Bootstrap defaults
        logging: Logging configuration settings
    """
    core: CoreConfig = field(default_factory=CoreConfig)
    numerical: NumericalConfig = field(default_factory=NumericalConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTION_DEFAULTS = {
    "core": CoreConfig,
    "numerical": NumericalConfig,
    "bootstrap": BootstrapConfig,
    "logging": LoggingConfig,
}

_PATH_OPTIONS = ("log_file", "user_config_dir")

# (section, option) -> (predicate, requirement shown when the predicate fails)
_RULES: Dict[Tuple[str, str], Tuple[Callable[[Any], bool], str]] = {
    ("numerical", "stationarity_tolerance"): (lambda v: 0 <= v < 1, "must be in [0, 1)"),
    ("numerical", "rank_tolerance"): (lambda v: v > 0, "must be positive"),
    ("bootstrap", "max_workers"): (lambda v: v >= 1, "must be positive"),
    ("bootstrap", "default_draws"): (lambda v: v >= 1, "must be positive"),
    ("bootstrap", "method"): (lambda v: v in ("efron", "wild"), "must be 'efron' or 'wild'"),
    ("logging", "log_level"): (
        lambda v: v in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        "must be a standard logging level name"
    ),
}


class ConfigManager:
    """
    Layered configuration store for the VAR Toolbox.

    Values are resolved from the built-in defaults, the user JSON file,
    ``VARTOOLBOX_<SECTION>_<OPTION>`` environment variables and runtime
    ``set`` calls, later layers winning. Values that fail validation are
    logged and replaced by their defaults.
    """

    def __init__(self):
        self._config = VARToolboxConfig()
        self._initialized = False
        self._config_file: Optional[Path] = None
        self._modified_keys: Set[str] = set()

    def initialize(self) -> None:
        """Load the file and environment layers and configure logging (once)."""
        if self._initialized:
            return

        env_dir = os.environ.get(USER_CONFIG_DIR_ENV)
        if env_dir:
            self._config.core.user_config_dir = Path(env_dir)
        self._config_file = self._config.core.user_config_dir / DEFAULT_CONFIG_FILENAME

        self._load_user_config()
        self._apply_env_overrides()
        for section_name in _SECTION_DEFAULTS:
            for option in fields(getattr(self._config, section_name)):
                self._check(section_name, option.name)
        self._setup_logging()

        self._initialized = True
        logger.debug("Configuration manager initialized")

    # ---- layers ----

    def _load_user_config(self) -> None:
        if self._config_file is None or not self._config_file.exists():
            logger.debug("No user configuration file found")
            return

        try:
            with open(self._config_file, 'r') as f:
                stored = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load user configuration: {e}")
            return

        for section_name, options in stored.items():
            if section_name not in _SECTION_DEFAULTS:
                logger.warning(f"Unknown configuration section: {section_name}")
                continue
            section = getattr(self._config, section_name)
            for option, value in options.items():
                if not hasattr(section, option):
                    logger.warning(f"Unknown configuration option: {section_name}.{option}")
                    continue
                if option in _PATH_OPTIONS and isinstance(value, str):
                    value = Path(value)
                setattr(section, option, value)

        logger.debug(f"Loaded user configuration from {self._config_file}")

    def _apply_env_overrides(self) -> None:
        for env_var, raw in os.environ.items():
            if not env_var.startswith(CONFIG_ENV_PREFIX) or env_var == USER_CONFIG_DIR_ENV:
                continue

            section_name, _, option = env_var[len(CONFIG_ENV_PREFIX):].lower().partition('_')
            if section_name not in _SECTION_DEFAULTS:
                continue
            section = getattr(self._config, section_name)
            if not hasattr(section, option):
                continue

            try:
                value = self._convert(option, getattr(section, option), raw)
            except (TypeError, ValueError) as e:
                logger.warning(f"Failed to apply environment override {env_var}: {e}")
                continue

            setattr(section, option, value)
            logger.debug(f"Applied environment override: {env_var}={raw}")

    @staticmethod
    def _convert(option: str, current: Any, value: Any) -> Any:
        """Convert ``value`` to the type of the option it will replace."""
        if isinstance(current, bool):
            if isinstance(value, str):
                return value.lower() in ('true', 'yes', '1', 'y')
            return bool(value)
        if option in _PATH_OPTIONS:
            return None if value is None else Path(value)
        if option == "random_seed":
            return None if value in (None, "", "none", "None") else int(value)
        if isinstance(current, int):
            return int(value)
        if isinstance(current, float):
            return float(value)
        return str(value)

    def _check(self, section_name: str, option: str) -> None:
        """Replace an invalid value by its default, with a warning."""
        rule = _RULES.get((section_name, option))
        if rule is None:
            return
        predicate, requirement = rule
        section = getattr(self._config, section_name)
        value = getattr(section, option)
        try:
            valid = bool(predicate(value))
        except TypeError:
            valid = False
        if not valid:
            default = getattr(_SECTION_DEFAULTS[section_name](), option)
            logger.warning(f"Invalid {option}: {value!r}, {requirement}; using {default!r}")
            setattr(section, option, default)

    def _setup_logging(self) -> None:
        """Attach handlers to the package logger as the logging section describes."""
        settings = self._config.logging
        package_logger = logging.getLogger("vartoolbox")

        for handler in package_logger.handlers[:]:
            package_logger.removeHandler(handler)
        package_logger.setLevel(getattr(logging, settings.log_level))

        formatter = logging.Formatter(fmt=settings.log_format, datefmt=settings.log_date_format)
        handlers: List[logging.Handler] = []
        if settings.console_logging:
            handlers.append(logging.StreamHandler())
        if settings.file_logging and settings.log_file:
            try:
                log_file = Path(settings.log_file)
                log_file.parent.mkdir(parents=True, exist_ok=True)
                handlers.append(logging.FileHandler(log_file))
            except OSError as e:
                logger.warning(f"Failed to set up file logging: {e}")

        for handler in handlers:
            handler.setFormatter(formatter)
            package_logger.addHandler(handler)

    # ---- access ----

    def _section(self, section: str, option: Optional[str], value: Any = None) -> Any:
        """Section object for ``section``, checking that ``option`` exists."""
        if section not in _SECTION_DEFAULTS:
            raise ConfigurationError(
                f"Unknown configuration section: {section}",
                setting=section if option is None else f"{section}.{option}",
                value=value,
                issue="Section not found"
            )
        section_obj = getattr(self._config, section)
        if option is not None and not hasattr(section_obj, option):
            raise ConfigurationError(
                f"Unknown configuration option: {section}.{option}",
                setting=f"{section}.{option}",
                value=value,
                issue="Option not found"
            )
        return section_obj

    def get(self, section: str, option: str, default: Any = None) -> Any:
        """Value of ``section.option``, or ``default`` when it does not exist."""
        section_obj = getattr(self._config, section, None) if section in _SECTION_DEFAULTS else None
        return getattr(section_obj, option, default) if section_obj is not None else default

    def set(self, section: str, option: str, value: Any) -> None:
        """
        Set ``section.option`` at runtime, converting to the option's type.

        Raises:
            ConfigurationError: If the section or option is not found, or the
                value cannot be converted
        """
        section_obj = self._section(section, option, value)
        try:
            typed = self._convert(option, getattr(section_obj, option), value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Failed to set configuration option: {section}.{option}",
                setting=f"{section}.{option}",
                value=value,
                issue=str(e)
            ) from e

        setattr(section_obj, option, typed)
        self._check(section, option)
        self._modified_keys.add(f"{section}.{option}")
        if section == "logging":
            self._setup_logging()
        logger.debug(f"Set configuration option: {section}.{option}={value}")

    def reset(self, section: Optional[str] = None, option: Optional[str] = None) -> None:
        """
        Restore defaults for everything, one section, or one option.

        Raises:
            ConfigurationError: If the section or option is not found
        """
        if section is None:
            self._config = VARToolboxConfig()
            self._modified_keys.clear()
            logger.debug("Reset all configuration to defaults")
            return

        self._section(section, option)
        defaults = _SECTION_DEFAULTS[section]()
        if option is None:
            setattr(self._config, section, defaults)
            self._modified_keys = {k for k in self._modified_keys if not k.startswith(f"{section}.")}
        else:
            setattr(getattr(self._config, section), option, getattr(defaults, option))
            self._modified_keys.discard(f"{section}.{option}")
        logger.debug(f"Reset configuration {section}{'' if option is None else '.' + option}")

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Plain JSON-ready view of the configuration, with paths as strings."""
        result = {}
        for section_name in _SECTION_DEFAULTS:
            values = asdict(getattr(self._config, section_name))
            result[section_name] = {k: str(v) if isinstance(v, Path) else v for k, v in values.items()}
        return result

    def save_user_config(self) -> None:
        """
        Write the current configuration to the user file.

        Raises:
            ConfigurationError: If the file cannot be written
        """
        if self._config_file is None:
            logger.warning("No user configuration file path available")
            return

        try:
            self._config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self._config_file, 'w') as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as e:
            raise ConfigurationError(
                "Failed to save user configuration",
                config_file=self._config_file,
                issue=str(e)
            ) from e
        logger.debug(f"Saved user configuration to {self._config_file}")

    def get_modified_options(self) -> List[str]:
        """Options changed at runtime, as sorted ``section.option`` keys."""
        return sorted(self._modified_keys)

    def get_config_file(self) -> Optional[Path]:
        return self._config_file

    def get_full_config(self) -> VARToolboxConfig:
        return self._config


_config_manager = ConfigManager()


def _manager() -> ConfigManager:
    """The shared manager, initialised on first use."""
    _config_manager.initialize()
    return _config_manager


def initialize_config() -> None:
    """Load the user file and environment overrides into the shared manager."""
    _config_manager.initialize()


def get_config(section: str, option: str, default: Any = None) -> Any:
    """
    Get a configuration value.

    Args:
        section: The configuration section
        option: The configuration option
        default: Default value if the option is not found

    Returns:
        The configuration value, or the default if not found
    """
    return _manager().get(section, option, default)


def set_config(section: str, option: str, value: Any) -> None:
    """Set a configuration value; see ``ConfigManager.set``."""
    _manager().set(section, option, value)


def reset_config(section: Optional[str] = None, option: Optional[str] = None) -> None:
    """Restore configuration defaults; see ``ConfigManager.reset``."""
    _manager().reset(section, option)


def save_config() -> None:
    """Save the current configuration to the user configuration file."""
    _manager().save_user_config()


def get_config_manager() -> ConfigManager:
    return _manager()
