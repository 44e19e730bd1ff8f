"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class SobsConfig(BaseSettings):
    """SOBS banking core configuration"""
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    api_title: str = "SOBS Banking API"
    cors_origins: str = "*"  # Comma separated
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Business rules configuration
    default_currency: str = "EGP"
    registration_opening_balance: str = "1000.00"
    default_spending_limit: Optional[str] = "50000"  # Empty/None = unlimited
    history_default_limit: int = 50
    
    # Demo authentication
    otp_length: int = 6
    otp_expiry_seconds: int = 300
    
    # Feature flags
    seed_demo_data: bool = True
    enable_notifications: bool = True
    
    class Config:
        env_prefix = "SOBS_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = SobsConfig()


def get_config() -> SobsConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> SobsConfig:
    """Reload configuration from environment"""
    global config
    config = SobsConfig()
    return config
