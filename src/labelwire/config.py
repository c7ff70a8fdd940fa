"""Configuration management for Labelwire."""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from labelwire.errors import InvalidArgumentError
from labelwire.models.printer import PrinterDevice

logger = logging.getLogger(__name__)

# USB vendor id registered to SATO
SATO_USB_VENDOR_ID = 0x0828


class NamedPrinter(BaseModel):
    """A printer entry in config.yaml."""

    name: str
    device: PrinterDevice


class AppConfig(BaseModel):
    """Application configuration loaded from config.yaml."""

    printers: list[NamedPrinter] = Field(default_factory=list)
    default_printer: str | None = None
    # API key for external access (optional, if not set API is open)
    api_key: str | None = None

    def get_printer(self, name: str | None = None) -> PrinterDevice | None:
        """Look up a configured printer by name, or the default one."""
        name = name or self.default_printer
        for entry in self.printers:
            if name is None or entry.name == name:
                return entry.device
        return None


class Settings(BaseSettings):
    """Environment-based settings."""

    model_config = SettingsConfigDict(
        env_prefix="LABELWIRE_",
        env_file=".env",
        extra="ignore",
    )

    config_file: Path = Path("config.yaml")
    host: str = "0.0.0.0"
    port: int = 7980
    debug: bool = False
    connect_timeout_ms: int = 10000
    read_timeout_ms: int = 10000
    default_tcp_port: int = 9100
    bluetooth_channel: int = 1
    usb_vendor_ids: list[int] = Field(default_factory=lambda: [SATO_USB_VENDOR_ID])
    bluetoothctl_timeout: float = 10.0  # Seconds


def load_config(config_path: Path) -> AppConfig:
    """Load application configuration from YAML file.

    Raises:
        InvalidArgumentError: If the file does not validate.
    """
    if not config_path.exists():
        return AppConfig()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    # YAML returns None for empty keys
    if data.get("printers") is None:
        data["printers"] = []

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid config file {config_path}: {e}") from e

    logger.debug(f"Loaded {len(config.printers)} printer(s) from {config_path}")
    return config


# Global settings instance
settings = Settings()
