"""
Configuration management for md-converter.

Hierarchical configuration loading with Pydantic validation: TOML files,
then environment variables (``MD_CONVERTER_`` prefix), then overrides.
"""

import os
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import toml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from md_converter.core.exceptions import ConfigError
from md_converter.utils.logging import get_logger

logger = get_logger(__name__)

# Merged TOML file data for the Config being built by ConfigManager
_file_settings: ContextVar[Dict[str, Any]] = ContextVar("md_converter_file_settings", default={})


class LoggingConfig(BaseModel):
    """Logging configuration."""

    enabled: bool = Field(default=True, description="Enable logging completely")
    level: str = Field(default="INFO", description="File logging level")
    console_level: str = Field(default="INFO", description="Console logging level")
    format_type: str = Field(default="text", description="Log format (text/json)")
    file: Optional[str] = Field(default=None, description="Log file path")
    enable_rich: bool = Field(default=True, description="Enable Rich console output")
    max_bytes: int = Field(default=10 * 1024 * 1024, description="Max log file size")
    backup_count: int = Field(default=5, description="Number of backup files")
    suppress_http: bool = Field(default=True, description="Quieten HTTP access logging")

    @field_validator("level", "console_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("format_type")
    @classmethod
    def validate_format_type(cls, v: str) -> str:
        """Validate format type."""
        if v not in ["text", "json"]:
            raise ValueError(f"Invalid format type: {v}")
        return v


class ServerConfig(BaseModel):
    """HTTP service configuration."""

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=3000, description="Bind port")
    allowed_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"],
        description="CORS origins"
    )
    allowed_extensions: List[str] = Field(
        default_factory=lambda: [".md", ".markdown"],
        description="Accepted upload extensions"
    )
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, description="Upload size limit")


class DiagramConfig(BaseModel):
    """Diagram extraction and rendering configuration."""

    fence_tag: str = Field(default="mermaid", description="Fence info-string marking a diagram")
    backend: str = Field(default="playwright", description="Renderer backend (playwright/mmdc)")
    mermaid_script_url: str = Field(
        default="https://cdn.jsdelivr.net/npm/mermaid@10/dist/mermaid.min.js",
        description="Mermaid bundle loaded by the browser"
    )
    mermaid_theme: str = Field(default="default", description="Mermaid theme")
    render_timeout: float = Field(default=10.0, description="Per-diagram render timeout in seconds")
    concurrency: int = Field(default=1, description="Diagrams rendered at once per job")
    mmdc_path: str = Field(default="mmdc", description="Path to mermaid-cli")
    background: str = Field(default="white", description="Diagram background colour")
    width: int = Field(default=1200, description="Diagram viewport width")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate renderer backend."""
        if v not in ["playwright", "mmdc"]:
            raise ValueError(f"Invalid diagram backend: {v}")
        return v

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Diagram concurrency must be at least 1")
        return v

    @field_validator("fence_tag")
    @classmethod
    def validate_fence_tag(cls, v: str) -> str:
        if not v.strip() or any(ch.isspace() for ch in v.strip()):
            raise ValueError(f"Invalid fence tag: {v!r}")
        return v.strip()


class ProgressConfig(BaseModel):
    """Progress tracking configuration."""

    close_delay: float = Field(default=0.25, description="Seconds before closing subscribers of a finished job")
    retention: float = Field(default=60.0, description="Seconds a finished or idle pending job stays in the registry")
    sse_retry_ms: int = Field(default=1500, description="Client reconnect hint for event streams")


class PdfConfig(BaseModel):
    """PDF rendering configuration."""

    page_size: str = Field(default="A4", description="Default page size")
    wait_until: str = Field(default="networkidle", description="Page load state awaited before printing")

    @field_validator("wait_until")
    @classmethod
    def validate_wait_until(cls, v: str) -> str:
        if v not in ["load", "domcontentloaded", "networkidle", "commit"]:
            raise ValueError(f"Invalid wait_until: {v}")
        return v


class TomlFileSettingsSource(PydanticBaseSettingsSource):
    """Settings source for values read from the TOML configuration files."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return _file_settings.get().get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return dict(_file_settings.get())


class Config(BaseSettings):
    """Main configuration class."""

    debug: bool = Field(default=False, description="Enable debug mode")
    config_dir: str = Field(
        default="~/.config/md-converter",
        description="Configuration directory"
    )

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    diagrams: DiagramConfig = Field(default_factory=DiagramConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    pdf: PdfConfig = Field(default_factory=PdfConfig)

    model_config = {
        "env_prefix": "MD_CONVERTER_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Overrides beat environment variables, which beat TOML files."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlFileSettingsSource(settings_cls),
            file_secret_settings,
        )

    def get_config_dir(self) -> Path:
        """Get configuration directory path."""
        return Path(os.path.expanduser(self.config_dir))

    def get_log_file(self) -> Optional[Path]:
        """Get log file path."""
        if self.logging.file:
            log_path = Path(os.path.expanduser(self.logging.file))
            if not log_path.is_absolute():
                log_path = self.get_config_dir() / log_path
            return log_path
        return None


class ConfigManager:
    """Configuration manager with hierarchical loading."""

    def __init__(self):
        self._config: Optional[Config] = None

    def load_config(
        self,
        config_files: Optional[List[Union[str, Path]]] = None,
        **overrides: Any,
    ) -> Config:
        """
        Load configuration from multiple sources.

        Args:
            config_files: List of configuration files to load
            **overrides: Configuration overrides

        Returns:
            Loaded configuration
        """
        if self._config is not None:
            return self._config

        if config_files is None:
            config_files = [
                "/etc/md-converter/config.toml",
                "~/.config/md-converter/config.toml",
                "./.md-converter.toml",
            ]

        config_data: dict = {}

        for config_file in config_files:
            file_path = Path(os.path.expanduser(str(config_file)))
            if file_path.exists():
                try:
                    file_data = toml.load(file_path)
                    _deep_update(config_data, file_data)
                    logger.debug(f"Loaded configuration from {file_path}")
                except (toml.TomlDecodeError, OSError) as e:
                    logger.warning(f"Failed to load config from {file_path}: {e}")

        token = _file_settings.set(config_data)
        try:
            self._config = Config(**overrides)
        except ValidationError as e:
            raise ConfigError(
                f"Invalid configuration: {e.error_count()} error(s)",
                error_code="invalid_config",
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e
        finally:
            _file_settings.reset(token)

        return self._config

    def get_config(self) -> Config:
        """Get current configuration."""
        if self._config is None:
            return self.load_config()
        return self._config

    def reload_config(self, **overrides: Any) -> Config:
        """Reload configuration."""
        self._config = None
        return self.load_config(**overrides)


def _deep_update(target: dict, source: dict) -> dict:
    """Merge ``source`` into ``target``, descending into nested sections."""
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_update(target[key], value)
        else:
            target[key] = value
    return target


# Global configuration manager
_config_manager = ConfigManager()

# Convenience functions
load_config = _config_manager.load_config
get_config = _config_manager.get_config
reload_config = _config_manager.reload_config
