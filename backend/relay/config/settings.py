from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # App
    HOST: str = Field("0.0.0.0")
    PORT: int = Field(3000)
    LOG_LEVEL: str = Field("INFO")

    # Comma separated list of allowed origins, "*" allows any
    CORS_ORIGINS: str = Field("*")

    # Xirsys (ICE credentials provider)
    XIRSYS_USER: str = Field("")
    XIRSYS_SECRET: str = Field("")
    XIRSYS_HOST: str = Field("global.xirsys.net")
    XIRSYS_CHANNEL: str = Field("AI-Documentation")
    ICE_REQUEST_TIMEOUT_SEC: float = Field(10.0)

    # Signaling
    SIGNAL_RETRY_INTERVAL_MS: int = Field(3000)
    CANCEL_RETRY_ON_CALLER_DISCONNECT: bool = Field(False)

    # Metrics
    METRICS_ENABLED: bool = Field(False)
    METRICS_PORT: int = Field(8001)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_file_encoding="utf-8"
    )

    @property
    def cors_origins(self) -> List[str]:
        origins = [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
        return origins or ["*"]


settings = Settings()
