from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    database_url: str

    EMAIL_HOST: str | None = None
    EMAIL_PORT: int = 587
    EMAIL_USER: str | None = None
    EMAIL_PASS: str | None = None
    EMAIL_FROM: str | None = None
    EMAIL_FROM_NAME: str = "TaskMaster"

    # Security
    SECRET_KEY: str = "something"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Cloudinary
    CLOUDINARY_CLOUD_NAME: str | None = None
    CLOUDINARY_API_KEY: str | None = None
    CLOUDINARY_API_SECRET: str | None = None

    FRONTEND_URL: str = "http://localhost:3000"

    # Password recovery
    VERIFICATION_CODE_LENGTH: int = 6
    VERIFICATION_CODE_EXPIRE_MINUTES: int = 15

    MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024
    MAX_AVATAR_SIZE_BYTES: int = 5 * 1024 * 1024

    DEFAULT_ROLE_NAME: str = "USER"
    SCHEDULER_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"
        frozen = True


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
