"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings


class LedgerConfig(BaseSettings):
    """Ledger core configuration"""
    
    # Storage configuration
    storage_backend: str = "memory"  # memory or sqlite
    database_path: str = "ledger.db"
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    # Business rules configuration
    interest_day_count: int = 365  # Fixed, not leap-year sensitive
    max_rule_rate: str = "100"     # Upper bound (inclusive) for stored rules
    amount_precision: int = 2
    txn_sequence_width: int = 2
    
    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
