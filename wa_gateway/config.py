from functools import lru_cache
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Gateway configuration with environment variable mapping.
    All settings can be defined in .env file or as environment variables.
    """

    # Core settings
    PROJECT_NAME: str = Field(default="wa-gateway", env="PROJECT_NAME")
    LOG_LEVEL: str = Field(default="INFO", env="LOG_LEVEL")
    LOG_DIR: str = Field(default="logs", env="LOG_DIR")

    # HTTP listener
    HOST: str = Field(default="0.0.0.0", env="HOST")
    PORT: int = Field(default=3000, env="PORT")
    GRACEFUL_TIMEOUT: Optional[int] = Field(default=None, env="GRACEFUL_TIMEOUT")

    # Uploads
    UPLOAD_DIR: str = Field(default="/tmp/uploads", env="UPLOAD_DIR")
    MAX_FILE_SIZE: int = Field(default=20 * 1024 * 1024, env="MAX_FILE_SIZE")
    MAX_FIELD_SIZE: int = Field(default=1024 * 1024, env="MAX_FIELD_SIZE")
    UPLOAD_FIELD_NAME: str = Field(default="file[]", env="UPLOAD_FIELD_NAME")

    # Messaging
    CHAT_ID_SUFFIX: str = Field(default="@c.us", env="CHAT_ID_SUFFIX")
    SEND_TIMEOUT: float = Field(default=60.0, env="SEND_TIMEOUT")
    SHUTDOWN_TIMEOUT: float = Field(default=10.0, env="SHUTDOWN_TIMEOUT")

    # WhatsApp Cloud API
    WHATSAPP_TOKEN: str = Field(default="", env="WHATSAPP_TOKEN")
    WHATSAPP_PHONE_NUMBER_ID: str = Field(default="", env="WHATSAPP_PHONE_NUMBER_ID")
    WHATSAPP_API_BASE: str = Field(
        default="https://graph.facebook.com/v20.0", env="WHATSAPP_API_BASE"
    )

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
