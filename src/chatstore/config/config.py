from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .storage import StorageSettings


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_logs: bool = False
    log_dir: str = "./logs"


class ServerSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 3000


class AppSettings(BaseSettings):
    """
    Process-wide settings.

    Every field can be overridden from the environment, e.g.
      CHATSTORE_ROOT=/srv/data
      CHATSTORE_STORAGE__BACKEND=memory
      CHATSTORE_STORAGE__FLUSH_TIMEOUT_S=2.5
      CHATSTORE_LOGGING__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="CHATSTORE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: Literal["development", "production"] = "development"
    # Data root; empty means "pick by env" (see data_root()).
    root: str = ""

    storage: StorageSettings = StorageSettings()
    logging: LoggingSettings = LoggingSettings()
    server: ServerSettings = ServerSettings()

    # env vars the chat UI needs before it can talk to a model
    required_keys: list[str] = Field(default_factory=lambda: ["OPENAI_API_KEY"])

    def data_root(self) -> str:
        if self.root:
            return self.root
        return "/ai-chatbot-data/" if self.env == "production" else "./"
