"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class ClientBankConfig(BaseSettings):
    """Client and account service configuration"""
    
    # Database configuration
    database_url: str = "sqlite:///clientbank.db"  # memory://, sqlite:///..., postgresql://...
    sqlite_foreign_keys: bool = True
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Business rules configuration
    credit_limit_increase_percent: str = "10"
    
    class Config:
        env_prefix = "CLIENTBANK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = ClientBankConfig()


def get_config() -> ClientBankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> ClientBankConfig:
    """Reload configuration from environment"""
    global config
    config = ClientBankConfig()
    return config
