from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    # API Configuration
    CORS_ORIGINS: Optional[str] = None

    # Firebase
    FIREBASE_SERVICE_ACCOUNT_BASE64: Optional[str] = None
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_API_KEY: Optional[str] = None
    FIREBASE_AUTH_BASE_URL: str = "https://identitytoolkit.googleapis.com/v1"

    # Firestore namespace: artifacts/{APP_ID}/public/data/...
    APP_ID: str = "photo-portfolio"

    # Identity bootstrap
    INITIAL_AUTH_TOKEN: Optional[str] = None

    # Admin gate
    ADMIN_PASSWORD: Optional[str] = None
    JWT_SECRET: Optional[str] = None
    ADMIN_TOKEN_EXPIRE_MINUTES: int = 720

    # Notifications
    NOTIFICATION_TTL_SECONDS: float = 3.0

    # Logging
    LOG_LEVEL: Optional[str] = None

    class Config:
        env_file = ".env"
        extra = "ignore"

# Create global settings instance
settings = Settings()
