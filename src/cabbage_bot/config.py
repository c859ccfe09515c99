"""Configuration loading and validation."""

import os
from pathlib import Path
from typing import Annotated

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from cabbage_bot.errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path("config.yaml")


class AccountConfig(BaseModel):
    """Stack Exchange OpenID credentials."""

    email: str = ""
    password: SecretStr | None = None


class ChatConfig(BaseModel):
    """Chat service endpoints and room selection."""

    site_url: str = "https://stackoverflow.com"
    openid_url: str = "https://openid.stackexchange.com"
    chat_url: str = "https://chat.stackoverflow.com"
    room_id: int | None = None
    request_timeout_seconds: Annotated[float, Field(gt=0.0)] = 30.0


class CommandConfig(BaseModel):
    """A single trigger/reply pair."""

    trigger: str
    reply: str
    edited_reply: str | None = None


def _default_commands() -> list[CommandConfig]:
    return [
        CommandConfig(
            trigger="!!rabbit",
            reply="I like rabbits!",
            edited_reply="I *really* like rabbits!",
        )
    ]


class CommandsConfig(BaseModel):
    """Command dispatcher configuration."""

    edit_delay_seconds: Annotated[float, Field(ge=0.0)] = 5.0
    items: list[CommandConfig] = Field(default_factory=_default_commands)


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CABBAGE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    account: AccountConfig = Field(default_factory=AccountConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)


def load_config(config_path: Path | str | None = None) -> Config:
    """Build the config from a YAML file, falling back to CABBAGE_* env vars.

    A top-level section present in the file replaces the env-derived
    section of the same name. A missing file means env vars and defaults
    only.
    """
    path = Path(config_path or DEFAULT_CONFIG_PATH)
    if not path.exists():
        return Config()

    sections = yaml.safe_load(path.read_text()) or {}
    if not isinstance(sections, dict):
        raise ConfigurationError(f"{path}: expected a mapping at the top level")
    # A bare "account:" line parses as None
    return Config(**{name: body for name, body in sections.items() if body is not None})


def load_credentials_from_env(config: Config) -> Config:
    """Fill in credentials from flat environment variables if not in config."""
    # Nested env vars are shadowed by any YAML section with the same name
    if not config.account.email:
        email = os.getenv("CABBAGE_EMAIL")
        if email:
            config.account.email = email

    if not config.account.password:
        password = os.getenv("CABBAGE_PASSWORD")
        if password:
            config.account.password = SecretStr(password)

    return config
