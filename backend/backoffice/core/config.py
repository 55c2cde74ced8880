from typing import List, Optional, Union
import logging

from pydantic import AnyHttpUrl, Field, validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    PROJECT_NAME: str = "Masala Back-Office"
    API_PREFIX: str = "/api"

    # CORS
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173"
    ]

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Database
    SQLITE_DATABASE_URI: str = "sqlite:///./masala_backoffice.db"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Allocation workflow client
    API_BASE_URL: str = "http://localhost:5000"
    # None keeps the HTTP client's own default timeout
    HTTP_TIMEOUT_SECONDS: Optional[float] = None
    ALLOCATION_TOLERANCE: float = Field(
        default=0.0005,
        ge=0,
        description="Allowed difference between allocated and required quantity"
    )
    SAVE_THROTTLE_SECONDS: float = Field(default=1.0, ge=0)
    DEFAULT_UNIT: str = "kg"
    DEFAULT_CHANGED_BY: str = "Admin"

    # Notifications (toasts)
    NOTIFICATION_QUEUE_SIZE: int = Field(default=50, ge=1)
    NOTIFICATION_TTL_SECONDS: float = Field(default=5.0, gt=0)

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
logger.debug(f"Loaded settings: API_PREFIX={settings.API_PREFIX}, CORS={settings.BACKEND_CORS_ORIGINS}")
