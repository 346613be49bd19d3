from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """애플리케이션 설정"""
    # App settings
    PROJECT_NAME: str = "SocialHub"
    VERSION: str = "1.0.0"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    DEBUG: bool = False

    # 로깅 설정
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    TIMEZONE: str = "UTC"

    # Database settings
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "socialhub"
    MAX_CONNECTIONS_COUNT: int = 10
    MIN_CONNECTIONS_COUNT: int = 1

    # JWT settings
    SECRET_KEY: str = "your_secret"  # 실제 운영 환경에서는 .env 로 덮어쓴다
    ALGORITHM: str = "HS256"
    TOKEN_USER_CLAIM: str = "userId"

    # WebSocket settings
    SOCKET_PATH: str = "/socket.io"
    WS_CORS_ORIGINS: List[str] = ["*"]
    WS_PING_INTERVAL: int = 25
    WS_PING_TIMEOUT: int = 20
    WS_MAX_HTTP_BUFFER_SIZE: int = 1024 * 1024  # 1MB
    WS_ENGINEIO_LOGGER: bool = False

    class Config:
        env_prefix = ""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    def get_mongodb_settings(self) -> dict:
        """MongoDB 클라이언트 설정을 반환합니다."""
        return {
            "maxPoolSize": self.MAX_CONNECTIONS_COUNT,
            "minPoolSize": self.MIN_CONNECTIONS_COUNT,
            "uuidRepresentation": "standard",
        }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
