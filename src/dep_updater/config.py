"""
Configuration management for dep-updater.

Settings for registry access, native resolver subprocesses, security limits,
logging and caching. Values come from defaults, an optional config file and
``DEP_UPDATER_*`` environment variables, in that order.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

from .error_handling import get_error_handler
from .structured_logging import configure_logging

console = Console(stderr=True)

DEFAULT_GOPROXY = "https://proxy.golang.org"
DEFAULT_MAVEN_REPOSITORY = "https://repo.maven.apache.org/maven2"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class NetworkConfig:
    """Registry access configuration."""

    user_agent: str = "dep-updater/1.0.0"
    goproxy_url: str = DEFAULT_GOPROXY
    maven_repository_urls: List[str] = field(
        default_factory=lambda: [DEFAULT_MAVEN_REPOSITORY]
    )
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    rate_limit: float = 10.0


@dataclass
class ResolverConfig:
    """Native resolver subprocess configuration."""

    go_binary: str = "go"
    maven_binary: str = "mvn"
    goproxy: str = "https://proxy.golang.org,direct"
    timeout_seconds: int = 300
    max_resolution_attempts: int = 5


@dataclass
class SecurityConfig:
    """Input limits."""

    max_file_size_mb: int = 10
    max_parent_depth: int = 10
    max_credential_length: int = 500
    min_credential_length: int = 8

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "WARNING"
    enable_sensitive_data_masking: bool = True


@dataclass
class PerformanceConfig:
    """Registry cache configuration."""

    enable_caching: bool = True
    cache_ttl_seconds: int = 3600
    not_found_ttl_seconds: int = 300
    max_cache_size: int = 1000


@dataclass
class UpdaterConfig:
    """Main configuration containing all subsections."""

    network: NetworkConfig = field(default_factory=NetworkConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)


_global_config: Optional[UpdaterConfig] = None


def validate_config_values(config: UpdaterConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if config.network.connect_timeout <= 0:
        errors.append("network.connect_timeout must be positive")
    if config.network.read_timeout <= 0:
        errors.append("network.read_timeout must be positive")
    if config.network.rate_limit <= 0:
        errors.append("network.rate_limit must be positive")
    if not config.network.maven_repository_urls:
        errors.append("network.maven_repository_urls must not be empty")

    if config.resolver.timeout_seconds <= 0:
        errors.append("resolver.timeout_seconds must be positive")
    if config.resolver.max_resolution_attempts <= 0:
        errors.append("resolver.max_resolution_attempts must be positive")

    if config.security.max_file_size_mb <= 0:
        errors.append("security.max_file_size_mb must be positive")
    if config.security.max_parent_depth <= 0:
        errors.append("security.max_parent_depth must be positive")
    if config.security.min_credential_length > config.security.max_credential_length:
        errors.append("security.min_credential_length must be <= max_credential_length")

    if config.logging.log_level.upper() not in LOG_LEVELS:
        errors.append(f"logging.log_level must be one of: {', '.join(LOG_LEVELS)}")

    if config.performance.cache_ttl_seconds < 0:
        errors.append("performance.cache_ttl_seconds must be non-negative")
    if config.performance.max_cache_size <= 0:
        errors.append("performance.max_cache_size must be positive")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON or YAML file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            if config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"⚠️  Error loading config from {config_path}: {e}", style="yellow")

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".dep-updater.json",
        Path.cwd() / ".dep-updater.yaml",
        Path.cwd() / ".dep-updater.yml",
        Path.home() / ".config" / "dep-updater" / "config.json",
        Path.home() / ".config" / "dep-updater" / "config.yaml",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: UpdaterConfig) -> None:
    """Apply ``DEP_UPDATER_*`` environment variable overrides."""

    def get_env_int(key: str) -> Optional[int]:
        try:
            return int(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid integer value for {key}, using default", style="yellow")
            return None

    def get_env_float(key: str) -> Optional[float]:
        try:
            return float(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid float value for {key}, using default", style="yellow")
            return None

    if goproxy_url := os.environ.get("DEP_UPDATER_GOPROXY_URL"):
        config.network.goproxy_url = goproxy_url.rstrip("/")
    if maven_repos := os.environ.get("DEP_UPDATER_MAVEN_REPOSITORIES"):
        config.network.maven_repository_urls = [
            url.strip().rstrip("/") for url in maven_repos.split(",") if url.strip()
        ]
    if user_agent := os.environ.get("DEP_UPDATER_USER_AGENT"):
        config.network.user_agent = user_agent
    if connect_timeout := get_env_float("DEP_UPDATER_CONNECT_TIMEOUT"):
        config.network.connect_timeout = connect_timeout
    if read_timeout := get_env_float("DEP_UPDATER_READ_TIMEOUT"):
        config.network.read_timeout = read_timeout

    if go_binary := os.environ.get("DEP_UPDATER_GO_BINARY"):
        config.resolver.go_binary = go_binary
    if maven_binary := os.environ.get("DEP_UPDATER_MAVEN_BINARY"):
        config.resolver.maven_binary = maven_binary
    if resolver_timeout := get_env_int("DEP_UPDATER_RESOLVER_TIMEOUT"):
        config.resolver.timeout_seconds = resolver_timeout
    if attempts := get_env_int("DEP_UPDATER_MAX_RESOLUTION_ATTEMPTS"):
        config.resolver.max_resolution_attempts = attempts

    if max_parent_depth := get_env_int("DEP_UPDATER_MAX_PARENT_DEPTH"):
        config.security.max_parent_depth = max_parent_depth

    if log_level := os.environ.get("DEP_UPDATER_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()

    if cache_ttl := get_env_int("DEP_UPDATER_CACHE_TTL_SECONDS"):
        config.performance.cache_ttl_seconds = cache_ttl
    if os.environ.get("DEP_UPDATER_DISABLE_CACHE", "").lower() in ["true", "1", "yes", "on"]:
        config.performance.enable_caching = False


def apply_config_section(config: Any, section_data: Dict[str, Any], section_name: str) -> None:
    """Apply configuration from a dictionary to a config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(f"⚠️  Unknown config key in {section_name}: {key}", style="yellow")


def load_config(config_path: Optional[Path] = None) -> UpdaterConfig:
    """Load configuration from file and environment."""
    config = UpdaterConfig()

    config_file = config_path or find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if isinstance(file_config, dict):
            for section_name in ["network", "resolver", "security", "logging", "performance"]:
                if isinstance(file_config.get(section_name), dict):
                    apply_config_section(
                        getattr(config, section_name), file_config[section_name], section_name
                    )

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values instead.", style="yellow")
        config = UpdaterConfig()

    return config


def apply_logging_config(config: UpdaterConfig) -> None:
    """Apply the logging section to the component loggers and the error handler."""
    configure_logging(config.logging.log_level)
    get_error_handler().configure(
        config.logging.log_level, mask_sensitive_data=config.logging.enable_sensitive_data_masking
    )


def get_config() -> UpdaterConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
        apply_logging_config(_global_config)
    return _global_config


def set_config(config: UpdaterConfig) -> None:
    """Install an explicit configuration (used by embedding callers and tests)."""
    global _global_config
    _global_config = config
    apply_logging_config(config)


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None
