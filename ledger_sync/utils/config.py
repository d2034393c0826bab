"""
Configuration utilities
"""

import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid"""
    pass


def _as_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be true or false, got {value!r}")
    return value


@dataclass(frozen=True)
class ApiCredentials:
    """OKX API credentials"""
    api_key: str
    secret_key: str
    passphrase: str
    simulated: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApiCredentials':
        missing = [key for key in ('api_key', 'secret_key', 'passphrase') if not data.get(key)]
        if missing:
            raise ConfigError(f"Missing API credentials: {missing}")

        return cls(
            api_key=str(data['api_key']),
            secret_key=str(data['secret_key']),
            passphrase=str(data['passphrase']),
            simulated=_as_bool(data.get('is_simulated', data.get('simulated', False)), 'is_simulated')
        )


@dataclass(frozen=True)
class FetchSettings:
    """Pagination and rate-limit settings for the bills fetcher"""
    base_url: str = "https://www.okx.com"
    request_path: str = "/api/v5/account/bills-archive"
    page_size: int = 100
    page_delay: float = 1.0
    rate_limit_cooldown: float = 5.0
    max_rate_limit_retries: Optional[int] = None  # None = retry forever
    request_timeout: float = 10.0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'FetchSettings':
        data = data or {}
        defaults = cls()
        max_retries = data.get('max_rate_limit_retries', defaults.max_rate_limit_retries)

        settings = cls(
            base_url=str(data.get('base_url', defaults.base_url)).rstrip('/'),
            request_path=str(data.get('request_path', defaults.request_path)),
            page_size=int(data.get('page_size', defaults.page_size)),
            page_delay=float(data.get('page_delay', defaults.page_delay)),
            rate_limit_cooldown=float(data.get('rate_limit_cooldown', defaults.rate_limit_cooldown)),
            max_rate_limit_retries=int(max_retries) if max_retries is not None else None,
            request_timeout=float(data.get('request_timeout', defaults.request_timeout))
        )

        if settings.page_size <= 0:
            raise ConfigError(f"page_size must be positive, got {settings.page_size}")
        if settings.page_delay < 0 or settings.rate_limit_cooldown < 0:
            raise ConfigError("Sleep durations must not be negative")
        if settings.max_rate_limit_retries is not None and settings.max_rate_limit_retries < 0:
            raise ConfigError("max_rate_limit_retries must not be negative")

        return settings


@dataclass(frozen=True)
class ReconcileSettings:
    """Ledger reconciliation settings"""
    inclusive_watermark: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ReconcileSettings':
        data = data or {}
        return cls(inclusive_watermark=_as_bool(data.get('inclusive_watermark', False), 'inclusive_watermark'))


@dataclass(frozen=True)
class PortfolioSettings:
    """Ledger location and balance target for the status report"""
    target: float = 120000.0
    ledger_path: str = "data/ledger.csv"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PortfolioSettings':
        data = data or {}
        defaults = cls()
        target = float((data.get('portfolio') or {}).get('target', defaults.target))
        if target <= 0:
            raise ConfigError(f"portfolio target must be positive, got {target}")

        return cls(
            target=target,
            ledger_path=str((data.get('ledger') or {}).get('path', defaults.ledger_path))
        )


@dataclass(frozen=True)
class SyncConfig:
    """Complete configuration for one sync run"""
    credentials: ApiCredentials
    fetch: FetchSettings
    reconcile: ReconcileSettings
    ledger_path: str = "data/ledger.csv"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SyncConfig':
        # Credentials live under "okx" or, for plain JSON configs, at the top level
        credentials = data.get('okx') or data

        return cls(
            credentials=ApiCredentials.from_dict(credentials),
            fetch=FetchSettings.from_dict(data.get('fetch')),
            reconcile=ReconcileSettings.from_dict(data.get('reconcile')),
            ledger_path=str((data.get('ledger') or {}).get('path', "data/ledger.csv"))
        )


class ConfigManager:
    """Manages configuration loading and validation"""

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)

    def load_config(self, config_type: str) -> Dict[str, Any]:
        """Load configuration of specified type"""
        # Try local config first (with secrets), then fall back to template
        local_file = self.config_dir / f"{config_type}_local.yml"
        template_file = self.config_dir / f"{config_type}.yml"

        config_file = local_file if local_file.exists() else template_file

        if not config_file.exists():
            logger.error(f"Config file not found: {config_file}")
            return {}

        return self.load_file(config_file)

    def load_file(self, path) -> Dict[str, Any]:
        """Load an explicit YAML or JSON config file"""
        config_file = Path(path)
        try:
            with open(config_file, 'r') as f:
                config = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read config file {config_file}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid config file {config_file}: {e}") from e

        if not isinstance(config, dict):
            raise ConfigError(f"Config file {config_file} must contain a mapping")

        logger.info(f"Loaded config from {config_file}")
        return config

    def get_sync_config(self, path: Optional[str] = None) -> SyncConfig:
        """Build the sync configuration from an explicit file or the config dir"""
        data = self.load_file(path) if path else self.load_config("ledger_sync")
        return SyncConfig.from_dict(data)

    def get_portfolio_settings(self, path: Optional[str] = None) -> PortfolioSettings:
        """Status report settings; credentials are not required"""
        data = self.load_file(path) if path else self.load_config("ledger_sync")
        return PortfolioSettings.from_dict(data)
