"""
Application Settings
===================

Main application settings and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

from typing import Optional, List, Union
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json
from pathlib import Path


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="Ad Manifest Renderer", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    workers: int = Field(default=1, description="Number of worker processes")

    # Storage Configuration
    storage_path: Path = Field(default=Path("./storage"), description="Storage directory path")
    templates_root: Path = Field(
        default=Path("./public/templates"), description="Root folder of ad templates"
    )
    public_root: Path = Field(
        default=Path("./public"), description="Folder that site-relative asset paths resolve in"
    )
    public_base_url: str = Field(
        default="http://localhost:3000", description="Origin the templates are served from"
    )
    templates_url_path: str = Field(
        default="/templates", description="URL path prefix of the templates folder"
    )

    # Manifest Configuration
    manifest_variable: str = Field(
        default="window.manifest", description="Variable the manifest object is assigned to"
    )
    manifest_filename: str = Field(default="manifest.js", description="Manifest file name")
    document_filename: str = Field(default="index.html", description="Template document name")
    runtime_variable: str = Field(
        default="grid8player", description="Ad runtime object that receives dynamicData"
    )

    # Rendering Configuration
    ready_flag: str = Field(default="ready", description="Window flag set once the first frame is composed")
    page_load_timeout_ms: int = Field(default=30000, description="Document load timeout in milliseconds")
    font_load_timeout_ms: int = Field(default=5000, description="Font loading timeout in milliseconds")
    ready_timeout_ms: int = Field(default=3000, description="Ready flag polling timeout in milliseconds")
    ready_poll_interval_ms: int = Field(default=200, description="Ready flag polling interval")
    fallback_delay_ms: int = Field(default=3000, description="Delay used when the ready flag never appears")
    settle_delay_ms: int = Field(default=500, description="Final settle delay before capture")
    transparent_background: bool = Field(default=True, description="Preserve transparency in captures")
    optimize_png: bool = Field(default=False, description="Re-encode captures with Pillow")
    max_width: int = Field(default=4000, description="Maximum render width")
    max_height: int = Field(default=4000, description="Maximum render height")

    # Browser Configuration
    playwright_headless: bool = Field(default=True, description="Run browser in headless mode")
    render_concurrency: int = Field(
        default=1, ge=1, le=8, description="Pages rendered concurrently within one batch"
    )

    # Export Configuration
    asset_fetch_timeout: float = Field(default=20.0, description="Remote asset fetch timeout in seconds")
    export_timeout: float = Field(default=300.0, description="Overall export request timeout in seconds")
    static_compression_level: int = Field(default=9, ge=0, le=9, description="Static export zip level")
    dpa_compression_level: int = Field(default=5, ge=0, le=9, description="DPA export zip level")
    render_static_previews: bool = Field(
        default=False, description="Add a rendered PNG to each static export size folder"
    )
    default_cta_text: str = Field(default="SHOP NOW", description="CTA text when a product has none")
    default_label: str = Field(default="New Arrival", description="Label text for DPA products")
    default_label_color: str = Field(default="F97316", description="Label color for DPA products")
    default_cta_color: str = Field(default="4F46E5", description="CTA color for DPA products")
    default_bg_color: str = Field(default="FFFFFF", description="Background color for DPA products")

    # Security Configuration
    allowed_hosts: List[str] = Field(default=["*"], description="Allowed hosts for CORS")

    # Monitoring Configuration
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("allowed_hosts", mode="before")
    @classmethod
    def parse_allowed_hosts(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse allowed hosts from string or list."""
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [host.strip() for host in v.split(",") if host.strip()]
        return v

    @field_validator("public_base_url", "templates_url_path")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Base URLs are joined with '/' so they never end in one."""
        return v.rstrip("/")

    @field_validator("storage_path")
    @classmethod
    def create_directories(cls, v: Path) -> Path:
        """Ensure directories exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    def template_base_url(self, template_path: str, size: str) -> str:
        """Public URL of one template size folder, without trailing slash."""
        template_path = template_path.strip("/")
        return f"{self.public_base_url}{self.templates_url_path}/{template_path}/{size}"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="ADRENDER_"
    )


# Global settings instance - will be initialized when needed
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
