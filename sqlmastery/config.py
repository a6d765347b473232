"""
Centralized Configuration Management
====================================
All configuration values are read directly from environment variables.
Secrets (the Gemini API key) should be injected via the deployment environment.
"""
import os
import logging
from typing import List, Optional
from enum import Enum

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Deployment environment types"""
    DEV = "dev"
    UAT = "uat"
    PROD = "prod"
    LOCAL = "local"


class Config:
    """Base configuration with environment-aware settings"""

    # ==================== ENVIRONMENT DETECTION ====================
    @staticmethod
    def get_environment() -> Environment:
        """Detect current deployment environment from ENV variable"""
        env = os.getenv("ENV", "local").lower()
        if env in ["dev", "development"]:
            return Environment.DEV
        elif env in ["uat", "staging"]:
            return Environment.UAT
        elif env in ["prod", "production"]:
            return Environment.PROD
        return Environment.LOCAL

    ENVIRONMENT = get_environment()

    # ==================== SANDBOX CONFIGURATION ====================
    # Idle-expiry is measured from creation and never renewed on access
    SANDBOX_TTL_SECONDS: float = float(os.getenv("SANDBOX_TTL_SECONDS", "3600"))
    SANDBOX_QUERY_TIMEOUT_SECONDS: float = float(os.getenv("SANDBOX_QUERY_TIMEOUT_SECONDS", "30"))
    SANDBOX_MEMORY_LIMIT_MB: int = int(os.getenv("SANDBOX_MEMORY_LIMIT_MB", "128"))

    # ==================== LEVEL CATALOG ====================
    # JSON file replacing the built-in levels (optional)
    LEVELS_FILE: Optional[str] = os.getenv("LEVELS_FILE", "").strip() or None

    # ==================== AI MENTOR ====================
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY", "").strip() or None
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

    # ==================== FRONTEND & CORS CONFIGURATION ====================
    FRONTEND_URLS: List[str] = [
        url.strip()
        for url in os.getenv("FRONTEND_URLS", "").split(",")
        if url.strip()
    ]

    @staticmethod
    def get_cors_origins() -> List[str]:
        """Get environment-specific CORS origins"""
        origins = []

        if Config.FRONTEND_URLS:
            origins.extend(Config.FRONTEND_URLS)

        # Vite dev server and local API port
        if Config.ENVIRONMENT == Environment.LOCAL:
            origins.extend([
                "http://localhost:5000",
                "http://localhost:5173",
                "http://127.0.0.1:5000",
                "http://127.0.0.1:5173"
            ])

        return sorted(set(origins))

    # ==================== SERVER CONFIGURATION ====================
    PORT: int = int(os.getenv("PORT", "5000"))
    HOST: str = os.getenv("HOST", "0.0.0.0")

    # ==================== RATE LIMITING ====================
    RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    RATE_LIMIT_EXECUTE: str = os.getenv("RATE_LIMIT_EXECUTE", "60/minute")
    RATE_LIMIT_ASK: str = os.getenv("RATE_LIMIT_ASK", "10/minute")

    # ==================== LOGGING & MONITORING ====================
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ==================== VALIDATION ====================
    @classmethod
    def validate_config(cls) -> None:
        """Validate critical configuration settings"""
        errors = []

        if cls.SANDBOX_TTL_SECONDS <= 0:
            errors.append("SANDBOX_TTL_SECONDS must be positive")
        if cls.SANDBOX_QUERY_TIMEOUT_SECONDS <= 0:
            errors.append("SANDBOX_QUERY_TIMEOUT_SECONDS must be positive")
        if cls.SANDBOX_MEMORY_LIMIT_MB < 16:
            errors.append("SANDBOX_MEMORY_LIMIT_MB must be at least 16")
        if cls.LEVELS_FILE and not os.path.exists(cls.LEVELS_FILE):
            errors.append(f"LEVELS_FILE not found: {cls.LEVELS_FILE}")

        # AI features are optional
        if not cls.GEMINI_API_KEY:
            logger.warning("GEMINI_API_KEY not set - AI mentor will be disabled")

        if errors:
            raise ValueError("Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        logger.info(f"Configuration validated successfully for {cls.ENVIRONMENT.value} environment")
