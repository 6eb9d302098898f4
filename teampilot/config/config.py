"""
Configuration management for TeamPilot.
"""

import os
import yaml
import re
from datetime import datetime
from typing import Dict, Optional, Any, Literal
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv


DEFAULT_BASE_INSTRUCTION = (
    "You are a helpful AI assistant integrated into Slack. "
    "Be concise and helpful in your responses. "
    "Maintain context from previous messages in the conversation."
)


class LLMConfig(BaseModel):
    """Chat-completion endpoint configuration."""
    api_key: str
    model: str = Field(default="grok-2")
    base_url: Optional[str] = Field(default="https://api.x.ai/v1")
    max_tokens: int = Field(default=1000)
    temperature: float = Field(default=0.7)
    timeout: float = Field(default=60.0, description="Transport timeout in seconds")


class SlackConfig(BaseModel):
    """Slack workspace configuration."""
    bot_token: str
    signing_secret: Optional[str] = None
    app_id: Optional[str] = None
    bot_user_id: Optional[str] = None
    api_url: str = Field(default="https://slack.com/api")


class DatabaseConfig(BaseModel):
    """Database configuration for the SQL key-value backend."""
    url: str = Field(default="sqlite:///./teampilot.db")
    echo: bool = Field(default=False)


class StoreConfig(BaseModel):
    """Key-value store configuration."""
    backend: Literal["redis", "sql"] = Field(default="redis")
    redis_url: str = Field(default="redis://localhost:6379/0")
    socket_timeout: float = Field(default=5.0)
    # TTLs in seconds, None means the record never expires
    credentials_ttl: Optional[int] = Field(default=86400 * 90)
    profile_ttl: Optional[int] = Field(default=86400 * 365)
    canned_response_ttl: Optional[int] = Field(default=86400 * 365)
    channel_monitor_ttl: Optional[int] = Field(default=86400 * 365)
    thread_counter_ttl: Optional[int] = Field(default=86400 * 30)
    token_ttl: Optional[int] = None


class SalesforceConfig(BaseModel):
    """Salesforce connected-app configuration used for token refresh."""
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    token_url: str = Field(default="https://login.salesforce.com/services/oauth2/token")
    api_version: str = Field(default="v58.0")


class BotConfig(BaseModel):
    """Bot behaviour configuration."""
    name: str = Field(default="TeamPilot", description="Display name of this bot")
    base_instruction: str = Field(default=DEFAULT_BASE_INSTRUCTION)
    dm_history_limit: int = Field(default=10, description="History cap for flat direct messages")
    thread_history_limit: int = Field(default=20, description="History cap for threaded conversations")
    max_channel_monitors: int = Field(default=5)


class AdminConfig(BaseModel):
    """Admin API configuration."""
    enabled: bool = Field(default=False)
    username: Optional[str] = None
    password: Optional[str] = None


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")


class Config(BaseModel):
    """Main configuration model."""
    llm: LLMConfig
    slack: SlackConfig
    store: StoreConfig = Field(default_factory=StoreConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    salesforce: SalesforceConfig = Field(default_factory=SalesforceConfig)
    bot: BotConfig = Field(default_factory=BotConfig)
    admin: AdminConfig = Field(default_factory=AdminConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def substitute_variables(value: Any, env_config: Optional['EnvironmentConfig'] = None) -> Any:
    """
    Substitute variables in configuration values.

    Variable formats:
    - ${variable_name} - standard variable substitution
    - ${variable_name|default_value} - variable with default fallback

    Priority order:
    1. Environment variables (highest priority)
    2. .env file variables
    3. Built-in variables
    4. Default value (if specified with | syntax)
    5. None if not found, so pydantic defaults apply

    Args:
        value: Configuration value that may contain variables
        env_config: Environment configuration instance

    Returns:
        Value with variables substituted
    """
    if not isinstance(value, str):
        return value

    variable_pattern = r'\$\{([^}]*)\}'

    def replace_variable(match):
        variable_content = match.group(1)

        if not variable_content.strip():
            return ""

        if '|' in variable_content:
            variable_name, default_value = variable_content.split('|', 1)
            variable_name = variable_name.strip()
            default_value = default_value.strip()
        else:
            variable_name = variable_content.strip()
            default_value = None

        env_value = os.getenv(variable_name)
        if env_value is not None:
            return env_value

        if env_config:
            env_value = env_config.get(variable_name)
            if env_value is not None:
                return env_value

        builtin_value = _get_builtin_variable(variable_name)
        if builtin_value is not None:
            return builtin_value

        if default_value is not None:
            return default_value

        return ""

    result = re.sub(variable_pattern, replace_variable, value)

    if result == "None" or result == "":
        return None

    return result


def _get_builtin_variable(variable_name: str) -> Optional[str]:
    """Get built-in variable value."""
    builtin_variables = {
        'today': datetime.now().strftime('%Y-%m-%d')
    }

    return builtin_variables.get(variable_name)


def _substitute_config_values(config_data: Any, env_config: Optional['EnvironmentConfig'] = None) -> Any:
    """Recursively substitute variables in configuration data, dropping keys that resolve to None."""
    if isinstance(config_data, dict):
        result = {}
        for key, value in config_data.items():
            substituted_value = _substitute_config_values(value, env_config)
            if substituted_value is not None:
                result[key] = substituted_value
        return result
    elif isinstance(config_data, list):
        return [_substitute_config_values(item, env_config) for item in config_data]
    elif isinstance(config_data, str):
        return substitute_variables(config_data, env_config)
    else:
        return config_data


def load_config(config_path: str, env_config: Optional['EnvironmentConfig'] = None) -> Config:
    """Load configuration from YAML file with variable substitution."""
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_file, 'r') as f:
        config_data = yaml.safe_load(f) or {}

    if env_config is None:
        env_config = get_env_config()

    config_data = _substitute_config_values(config_data, env_config)

    return Config(**config_data)


class EnvironmentConfig:
    """Environment configuration manager with .env fallback support."""

    def __init__(self, env_file_path: Optional[str] = None):
        self.env_file_path = env_file_path or ".env"
        self._load_env_file()

    def _load_env_file(self) -> None:
        """Load environment variables from .env file if it exists."""
        env_path = Path(self.env_file_path)
        if env_path.exists():
            load_dotenv(env_path)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get environment variable (the .env file is already merged into os.environ)."""
        value = os.getenv(key)
        if value is not None:
            return value
        return default

    def get_config_path(self) -> str:
        """Get configuration file path."""
        return self.get("TEAMPILOT_CONFIG", default="config.yaml")


_env_config: Optional[EnvironmentConfig] = None


def get_env_config() -> EnvironmentConfig:
    """Get the process environment configuration."""
    global _env_config
    if _env_config is None:
        _env_config = EnvironmentConfig()
    return _env_config


def initialize_env_config(env_file_path: Optional[str] = None) -> EnvironmentConfig:
    """Initialize environment configuration with optional .env file path."""
    global _env_config
    _env_config = EnvironmentConfig(env_file_path)
    return _env_config
