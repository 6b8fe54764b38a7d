from pydantic_settings import BaseSettings
from typing import List, Any
import json


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "ClawFix"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 3001

    # ==========================================
    # Database (optional - empty means no persistence)
    # ==========================================
    DATABASE_URL: str = ""
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_POOL_TIMEOUT: int = 5  # seconds to wait for a connection
    DB_POOL_RECYCLE: int = 1800  # 30 minutes

    # ==========================================
    # Claude AI
    # ==========================================
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_BASE_URL: str = ""  # Empty means use default Anthropic URL
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"
    CLAUDE_MAX_TOKENS: int = 2000
    CLAUDE_TEMPERATURE: float = 0.2
    CLAUDE_REQUEST_TIMEOUT: int = 60  # seconds
    CLAUDE_CONNECT_TIMEOUT: int = 10  # seconds
    CLAUDE_MAX_RETRIES: int = 0  # single best-effort call
    CLAUDE_RETRY_BASE_DELAY: float = 2.0  # seconds
    CLAUDE_RETRY_MAX_DELAY: float = 10.0  # seconds

    # ==========================================
    # Diagnosis
    # ==========================================
    AI_ANALYSIS_ENABLED: bool = True
    AI_ANALYSIS_TIMEOUT_SECONDS: float = 45.0  # enforced by the caller, not the provider
    FIX_STORE_MAX_ENTRIES: int = 1000
    MAX_PAYLOAD_BYTES: int = 1048576  # 1MB
    COLLECTOR_HINT: str = "Run the diagnostic script: curl -sSL clawfix.com/fix | bash"
    ISSUES_URL: str = "https://github.com/ArcaHQ/clawfix/issues"

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "*"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    DIAGNOSE_RATE_LIMIT: str = "10/(1 minute)"  # AI calls are expensive
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # Empty disables the rotating file handler

    @property
    def persistence_enabled(self) -> bool:
        """Persistence is opt-in through DATABASE_URL"""
        return bool(self.DATABASE_URL and self.DATABASE_URL.strip())

    @property
    def ai_enabled(self) -> bool:
        """AI analysis needs both the feature flag and an API key"""
        return self.AI_ANALYSIS_ENABLED and bool(self.ANTHROPIC_API_KEY)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings


settings = Settings()
