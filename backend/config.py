"""
Configuration management for the FastAPI backend
"""

import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings:
    """Application settings"""

    # CORS
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    # Application
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "5000"))
    API_KEY: str = os.getenv("API_KEY", "")

    # Google Cloud service account (used for Veo and Text-to-Speech)
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", None)
    GOOGLE_PROJECT_ID: str = os.getenv("GOOGLE_PROJECT_ID", "")
    GOOGLE_LOCATION: str = os.getenv("GOOGLE_LOCATION", "us-central1")

    # Vertex AI Veo Configuration
    VEO_MODEL_ID: str = os.getenv("VEO_MODEL_ID", "veo-3.0-fast-generate-001")
    VEO_POLL_INTERVAL_SECONDS: float = float(os.getenv("VEO_POLL_INTERVAL_SECONDS", "5"))
    VEO_MAX_POLLS: int = int(os.getenv("VEO_MAX_POLLS", "120"))  # 10 minutes at 5s
    VEO_REQUEST_TIMEOUT: int = int(os.getenv("VEO_REQUEST_TIMEOUT", "60"))
    VEO_MAX_RETRIES: int = int(os.getenv("VEO_MAX_RETRIES", "3"))

    # Text-to-Speech
    TTS_LANGUAGE_CODE: str = os.getenv("TTS_LANGUAGE_CODE", "en-US")
    TTS_DEFAULT_VOICE: str = os.getenv("TTS_DEFAULT_VOICE", "en-US-Neural2-A")
    TTS_MAX_RETRIES: int = int(os.getenv("TTS_MAX_RETRIES", "3"))

    # Local storage for generated artifacts (served at /uploads)
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")

    # AWS S3 Configuration (durable artifact storage)
    STORAGE_BUCKET: str = os.getenv("STORAGE_BUCKET", "")
    AWS_ACCESS_KEY_ID: str = os.getenv("AWS_ACCESS_KEY_ID", "")
    AWS_SECRET_ACCESS_KEY: str = os.getenv("AWS_SECRET_ACCESS_KEY", "")
    AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")
    SIGNED_URL_EXPIRY: int = int(os.getenv("SIGNED_URL_EXPIRY", "86400"))  # 24 hours in seconds

    @property
    def veo_base_url(self) -> str:
        """Vertex AI publisher model URL for the configured Veo model."""
        return (
            f"https://{self.GOOGLE_LOCATION}-aiplatform.googleapis.com/v1/"
            f"projects/{self.GOOGLE_PROJECT_ID}/locations/{self.GOOGLE_LOCATION}/"
            f"publishers/google/models/{self.VEO_MODEL_ID}"
        )

    @property
    def storage_enabled(self) -> bool:
        """Durable storage is only used when a bucket is configured."""
        return bool(self.STORAGE_BUCKET)

    @property
    def cors_origins_list(self) -> list:
        """Parse CORS origins into a list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]


# Global settings instance
settings = Settings()
