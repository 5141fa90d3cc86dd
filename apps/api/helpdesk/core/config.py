"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    
    # Environment
    ENV: str = "dev"
    
    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"
    
    # Proxy/Load Balancer Settings
    # Set to True when running behind nginx/Cloudflare to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False
    
    # Database
    DATABASE_URL: str
    
    # Hosted auth provider bearer tokens (supports key rotation)
    AUTH_JWT_SECRET: str = "change-this-in-production"
    AUTH_JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    AUTH_JWT_AUDIENCE: str = "authenticated"
    AUTH_JWT_EXPIRES_HOURS: int = 1
    
    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"
    
    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""  # Secret for /internal/scheduled/* endpoints
    
    # AI provider (marketplace extraction + reply suggestions)
    AI_PROVIDER: str = "openai"  # openai | gemini
    AI_API_KEY: str = ""
    AI_MODEL: str = ""  # Empty = provider default
    AI_TEMPERATURE: float = 0.2
    AI_TIMEOUT_SECONDS: float = 60.0
    
    # LangSmith tracing (optional)
    LANGSMITH_API_KEY: str = ""
    LANGSMITH_API_URL: str = "https://api.smith.langchain.com"
    LANGSMITH_ENDPOINT: str = "https://smith.langchain.com"  # Used for trace links
    LANGSMITH_PROJECT: str = "default"
    
    # Read-query cache
    CACHE_ENABLED: bool = True
    CACHE_TTL_SECONDS: int = 30
    
    # Synthetic test data
    TEST_DATA_ENDPOINTS_ENABLED: bool = True
    TEST_DATA_DEFAULT_DURATION_HOURS: int = 24
    
    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""
    
    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 60  # General API
    RATE_LIMIT_AI: int = 10  # LLM-backed endpoints
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
    
    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.AUTH_JWT_SECRET]
        if self.AUTH_JWT_SECRET_PREVIOUS:
            secrets.append(self.AUTH_JWT_SECRET_PREVIOUS)
        return secrets
    
    @property
    def ai_enabled(self) -> bool:
        return bool(self.AI_API_KEY)
    
    @property
    def tracing_enabled(self) -> bool:
        return bool(self.LANGSMITH_API_KEY)


settings = Settings()
