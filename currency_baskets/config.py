"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class BasketsConfig(BaseSettings):
    """Currency baskets service configuration"""
    
    # Storage configuration
    database_url: str = "sqlite:///currency_baskets.db"  # memory:// for in-memory storage
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Valuation configuration
    base_currency: str = "USD"
    change_window_days: int = 7     # "week" change view
    change_window_months: int = 1   # "month" change view
    
    class Config:
        env_prefix = "BASKETS_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BasketsConfig()


def get_config() -> BasketsConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BasketsConfig:
    """Reload configuration from environment"""
    global config
    config = BasketsConfig()
    return config
