"""
Configuration management for TeamPilot.
"""

from .config import Config, load_config, LLMConfig, SlackConfig, DatabaseConfig, StoreConfig, SalesforceConfig, BotConfig, AdminConfig, LoggingConfig, get_env_config, initialize_env_config, EnvironmentConfig, DEFAULT_BASE_INSTRUCTION

__all__ = ["Config", "load_config", "LLMConfig", "SlackConfig", "DatabaseConfig", "StoreConfig", "SalesforceConfig", "BotConfig", "AdminConfig", "LoggingConfig", "get_env_config", "initialize_env_config", "EnvironmentConfig", "DEFAULT_BASE_INSTRUCTION"]
