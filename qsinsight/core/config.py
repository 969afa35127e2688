"""
Application configuration management using Pydantic Settings
"""

import sys
import os
import json
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from qsinsight.core.constants import (
    APP_NAME,
    CONFIG_FILE,
    SESSIONS_FILE,
    TimeWindow,
    DEFAULT_QUERY_TIMEOUT,
    MAX_QUERY_TIMEOUT,
    DEFAULT_CONNECTION_TIMEOUT,
    DEFAULT_TOP_N,
    MIN_TOP_N,
    MAX_TOP_N,
)


def get_app_dir() -> Path:
    """
    Get application data directory.
    Portable mode: config folder next to exe
    Installed mode: OS-specific user data folder
    """
    if getattr(sys, 'frozen', False):
        exe_dir = Path(sys.executable).parent
        if (exe_dir / 'config').exists():
            return exe_dir

    if sys.platform == 'win32':
        base = Path(os.environ.get('LOCALAPPDATA', Path.home() / 'AppData' / 'Local'))
    elif sys.platform == 'darwin':
        base = Path.home() / 'Library' / 'Application Support'
    else:
        base = Path.home() / '.config'

    return base / APP_NAME.replace(' ', '')


def ensure_app_dirs(app_dir: Optional[Path] = None) -> Path:
    """Create necessary application directories"""
    app_dir = app_dir or get_app_dir()

    (app_dir / 'config').mkdir(parents=True, exist_ok=True)
    (app_dir / 'data').mkdir(parents=True, exist_ok=True)
    (app_dir / 'logs').mkdir(parents=True, exist_ok=True)

    return app_dir


class DatabaseSettings(BaseSettings):
    """Database connection settings"""

    query_timeout: int = Field(default=DEFAULT_QUERY_TIMEOUT, ge=1, le=MAX_QUERY_TIMEOUT)
    probe_timeout: int = Field(default=30, ge=1, le=600)
    connection_timeout: int = Field(default=DEFAULT_CONNECTION_TIMEOUT, ge=1, le=120)
    driver: Optional[str] = Field(default=None)
    port: int = Field(default=1433, ge=1, le=65535)
    encrypt: bool = Field(default=True)
    trust_server_certificate: bool = Field(default=False)
    echo_sql: bool = Field(default=False)


class QuerySettings(BaseSettings):
    """Defaults for the diagnostic query filter bar"""

    time_window: TimeWindow = Field(default=TimeWindow.LAST_1_HOUR)
    top_n: int = Field(default=DEFAULT_TOP_N, ge=MIN_TOP_N, le=MAX_TOP_N)
    exclude_index_ops: bool = Field(default=False)
    exclude_stats_ops: bool = Field(default=False)


class LoggingSettings(BaseSettings):
    """Logging settings"""

    level: str = Field(default="INFO")
    file_enabled: bool = Field(default=True)
    retention_days: int = Field(default=7, ge=1, le=30)

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v = v.upper()
        if v not in valid_levels:
            v = 'INFO'
        return v


class Settings(BaseSettings):
    """Main application settings"""

    model_config = SettingsConfigDict(
        env_prefix='QSINSIGHT_',
        env_nested_delimiter='__',
        extra='ignore',
    )

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_dir: Path = Field(default_factory=get_app_dir)

    @property
    def config_dir(self) -> Path:
        return self.app_dir / 'config'

    @property
    def data_dir(self) -> Path:
        return self.app_dir / 'data'

    @property
    def logs_dir(self) -> Path:
        return self.app_dir / 'logs'

    @property
    def settings_file(self) -> Path:
        return self.config_dir / CONFIG_FILE

    @property
    def sessions_file(self) -> Path:
        return self.data_dir / SESSIONS_FILE

    def save(self) -> None:
        """Save settings to JSON file"""
        ensure_app_dirs(self.app_dir)

        data = self.model_dump(exclude={'app_dir'}, mode='json')

        with open(self.settings_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, default=str)

    @classmethod
    def load(cls, app_dir: Optional[Path] = None) -> 'Settings':
        """Load settings from JSON file"""
        app_dir = ensure_app_dirs(app_dir)
        settings_file = app_dir / 'config' / CONFIG_FILE

        if settings_file.exists():
            try:
                with open(settings_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return cls(app_dir=app_dir, **data)
            except Exception:
                # Broken settings never block startup
                pass

        return cls(app_dir=app_dir)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get global settings instance (singleton)"""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
