"""Configuration settings for the face verification engine."""
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings.

    These settings are loaded from environment variables with the following precedence:
    1. Environment variables
    2. .env file
    3. Default values

    Attributes:
        MODEL_COMPONENTS: Comma separated capability components loaded on init
        MATCH_MAX_DISTANCE: Largest descriptor distance that can still be a match
        MATCH_CONFIDENCE_THRESHOLD: Minimum confidence (0-1) for a match
        CACHE_MAX_ENTRIES: Descriptor cache ceiling before batch eviction
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",  # No prefix for environment variables
        env_nested_delimiter="__"  # Use double underscore for nested settings
    )

    # Core Settings
    PROJECT_NAME: str = "Face Verification Engine"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"

    # Model Settings
    MODEL_NAME: str = "buffalo_l"
    MODEL_CACHE_DIR: str = ".model_cache"
    MODEL_PROVIDERS: str = "CPUExecutionProvider"
    MODEL_COMPONENTS: str = "detection,landmark_2d_106,recognition"
    MODEL_INIT_MAX_ATTEMPTS: int = 3
    MODEL_INIT_INITIAL_BACKOFF: float = 2.0  # seconds, doubled per retry
    MODEL_INIT_BACKOFF_MULTIPLIER: float = 2.0
    MODEL_INIT_TIMEOUT: float = 8.0

    @property
    def model_components(self) -> List[str]:
        """Get list of capability components to load."""
        return [name.strip() for name in self.MODEL_COMPONENTS.split(",") if name.strip()]

    @property
    def model_providers(self) -> List[str]:
        """Get list of ONNX runtime execution providers."""
        return [name.strip() for name in self.MODEL_PROVIDERS.split(",") if name.strip()]

    # Detection Settings
    DETECTION_COOLDOWN_MS: float = 50.0
    DETECTION_TIMEOUT: float = 5.0
    DETECTION_MAX_ATTEMPTS: int = 2  # first try plus one retry
    DETECTION_RETRY_DELAY: float = 0.5
    MAX_IMAGE_PIXELS: int = 1920 * 1080  # ~2MP (Full HD)
    VERIFY_INPUT_SIZE: int = 512
    VERIFY_SCORE_THRESHOLD: float = 0.4
    ENROLL_INPUT_SIZE: int = 512
    ENROLL_SCORE_THRESHOLD: float = 0.4
    ENROLL_MIN_FACE_SCORE: float = 0.4

    # Matching Settings
    MATCH_MAX_DISTANCE: float = 0.4
    MATCH_CONFIDENCE_THRESHOLD: float = 0.6
    CONFIDENCE_EXPONENT: float = 1.5

    # Cache Settings
    CACHE_MAX_ENTRIES: int = 100
    CACHE_TIME_BUCKET_SECONDS: float = 5.0

    # Real-time Settings
    REALTIME_INTERVAL: float = 5.0
    REALTIME_REINIT_DELAY: float = 5.0
    REALTIME_MAX_CONSECUTIVE_ERRORS: int = 5
    REALTIME_RESULT_BUFFER: int = 32

    # Database Settings
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "faceverify"
    POSTGRES_POOL_SIZE: int = 5
    POSTGRES_MAX_OVERFLOW: int = 10
    POSTGRES_POOL_TIMEOUT: int = 30

    @property
    def database_url(self) -> str:
        """Get the async SQLAlchemy database URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # AWS Settings
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"

    # Snapshot Settings
    SNAPSHOT_BUCKET: str = ""
    SNAPSHOT_PREFIX: str = "faces"
    SNAPSHOT_JPEG_QUALITY: int = 80

    # Optional settings with defaults
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

settings = Settings()
