"""
Configuration Management Module
Loads and manages engine configuration from config.yaml
"""

from pathlib import Path
from typing import List, Optional
import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class TallyConfig(BaseModel):
    """Tally connection configuration"""
    server: str = "localhost"
    port: int = 9000
    company: str = ""
    timeout: float = 30.0
    min_request_gap: float = 1.5
    install_path: str = ""
    top_level_parents: List[str] = ["", "Primary"]
    control_entity_pattern: str = r"&#\d+;"


class ReportConfig(BaseModel):
    """Report and dispatcher configuration"""
    page_size: int = 20
    company_cache_ttl: float = 60.0
    max_suggestions: int = 5
    default_voucher_limit: int = 50
    statement_limit: int = 20
    top_limit: int = 10
    inactive_days: int = 30


class ProfilerConfig(BaseModel):
    """Voucher volume profiler configuration"""
    profile_path: str = "./data/tally-volume-profile.json"
    safe_voucher_limit: int = 500
    default_chunk_days: int = 7
    max_chunk_days: int = 31
    min_chunk_days: int = 1
    stale_hours: float = 24.0
    probe_floor: int = 10


class ExportConfig(BaseModel):
    """Excel export configuration"""
    max_name_length: int = 40
    creator: str = "Tally Report Engine"


class ApiConfig(BaseModel):
    """API configuration"""
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = ["http://localhost:3000"]


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    file: str = "./logs/engine.log"
    max_size: int = 10
    backup_count: int = 5
    console: bool = True
    colorize: bool = True


class AppConfig(BaseModel):
    """Main application configuration"""
    tally: TallyConfig = TallyConfig()
    report: ReportConfig = ReportConfig()
    profiler: ProfilerConfig = ProfilerConfig()
    export: ExportConfig = ExportConfig()
    api: ApiConfig = ApiConfig()
    logging: LoggingConfig = LoggingConfig()


class EnvSettings(BaseSettings):
    """Environment overrides (TALLY_ENGINE_*)"""
    model_config = SettingsConfigDict(env_prefix="TALLY_ENGINE_", env_file=".env", extra="ignore")

    config_path: str = "config.yaml"
    port: Optional[int] = None
    company: Optional[str] = None
    log_level: Optional[str] = None


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load configuration from YAML file"""
    config_file = Path(config_path)

    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
            return AppConfig(**config_data)

    return AppConfig()


def save_config(config: AppConfig, config_path: str = "config.yaml") -> None:
    """Save configuration to YAML file"""
    config_file = Path(config_path)

    with open(config_file, "w", encoding="utf-8") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, allow_unicode=True)


def apply_env_overrides(config: AppConfig, env: EnvSettings) -> AppConfig:
    """Apply environment overrides on top of the YAML values"""
    if env.port is not None:
        config.tally.port = env.port
    if env.company is not None:
        config.tally.company = env.company
    if env.log_level:
        config.logging.level = env.log_level.upper()
    return config


# Global configuration instance
env_settings = EnvSettings()
config = apply_env_overrides(load_config(env_settings.config_path), env_settings)
