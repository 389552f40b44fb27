"""
Central configuration module for the contract reminders service
Reads and validates environment variables with strict checks for production
"""
import os
import sys
from typing import Optional, List

# Load environment variables from .env file if it exists (dev only)
try:
    from dotenv import load_dotenv
    # Only load .env in development
    if os.getenv("ENV", "dev").lower() == "dev":
        load_dotenv()
except ImportError:
    pass


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse a boolean environment value ("true"/"1"/"yes")"""
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_windows(value: str) -> List[int]:
    """Parse a comma separated list of reminder windows in days"""
    windows = []
    for part in value.split(","):
        part = part.strip()
        if part:
            windows.append(int(part))
    return windows


class Config:
    """Central configuration class with environment variable validation"""
    
    # Environment
    ENV: str = os.getenv("ENV", "dev").lower()
    
    # Required for all environments
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    
    # Coordination store (lock, metrics) and queue backend
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")
    # Comma separated masters for the quorum lock; defaults to REDIS_URL
    REDLOCK_URLS: List[str] = []
    PORT: int = int(os.getenv("PORT", "8000"))
    
    # CORS
    CORS_ORIGINS: List[str] = []
    
    # Database pool
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", "5"))
    DB_POOL_RECYCLE: int = int(os.getenv("DB_POOL_RECYCLE", "900"))
    DB_POOL_TIMEOUT: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    
    # Daily scheduler
    REMINDER_WINDOWS: List[int] = _parse_windows(os.getenv("REMINDER_WINDOWS", "30,14,7,1"))
    SCHEDULER_CRON_HOUR: int = int(os.getenv("SCHEDULER_CRON_HOUR", "6"))
    SCHEDULER_CRON_MINUTE: int = int(os.getenv("SCHEDULER_CRON_MINUTE", "0"))
    REMINDER_REQUEUE_SCHEDULED: bool = _parse_bool(os.getenv("REMINDER_REQUEUE_SCHEDULED"), True)
    
    # Leader lock
    # redlock stores the key as redlock:<SCHEDULER_LOCK_KEY>; simple stores it unprefixed
    SCHEDULER_LOCK_BACKEND: str = os.getenv("SCHEDULER_LOCK_BACKEND", "redlock").lower()
    SCHEDULER_LOCK_KEY: str = os.getenv("SCHEDULER_LOCK_KEY", "scheduler:leader_lock")
    SCHEDULER_LOCK_TTL_SECONDS: int = int(os.getenv("SCHEDULER_LOCK_TTL_SECONDS", "3600"))
    SCHEDULER_LOCK_RENEW_SECONDS: int = int(os.getenv("SCHEDULER_LOCK_RENEW_SECONDS", "30"))
    
    # Reminder queue
    REMINDER_QUEUE_NAME: str = os.getenv("REMINDER_QUEUE_NAME", "reminders")
    REMINDER_JOB_ATTEMPTS: int = int(os.getenv("REMINDER_JOB_ATTEMPTS", "3"))
    REMINDER_JOB_BACKOFF_SECONDS: int = int(os.getenv("REMINDER_JOB_BACKOFF_SECONDS", "1"))
    REMINDER_FAILED_JOB_TTL: int = int(os.getenv("REMINDER_FAILED_JOB_TTL", str(7 * 24 * 3600)))
    
    # Record failed deliveries on the reminder itself (not only on the queue job)
    REMINDER_RECORD_FAILED_ATTEMPTS: bool = _parse_bool(os.getenv("REMINDER_RECORD_FAILED_ATTEMPTS"), False)
    
    # Email
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "noreply@example.com")
    DEV_NOTIFICATION_EMAIL: str = os.getenv("DEV_NOTIFICATION_EMAIL", "dev@example.com")
    
    def __init__(self):
        """Initialize configuration and validate required variables"""
        self._load_cors_origins()
        self._load_redlock_urls()
        self._validate()
    
    def _load_cors_origins(self):
        """Load CORS origins from environment variable"""
        default_origins = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
        
        cors_env = os.getenv("CORS_ORIGINS", "")
        if cors_env:
            env_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
            self.CORS_ORIGINS = default_origins + env_origins
        else:
            self.CORS_ORIGINS = default_origins
    
    def _load_redlock_urls(self):
        """Load quorum lock masters, falling back to the single coordination store"""
        urls_env = os.getenv("REDLOCK_URLS", "")
        urls = [url.strip() for url in urls_env.split(",") if url.strip()]
        self.REDLOCK_URLS = urls or [self.REDIS_URL]
    
    def _validate(self):
        """Validate required configuration based on environment"""
        errors = []
        
        if self.ENV not in ["dev", "test", "staging", "prod"]:
            errors.append(f"Invalid ENV value: {self.ENV}. Must be 'dev', 'test', 'staging', or 'prod'")
        
        if not self.SECRET_KEY:
            errors.append("SECRET_KEY is required but not set")
        elif len(self.SECRET_KEY) < 32:
            errors.append(f"SECRET_KEY must be at least 32 characters (current: {len(self.SECRET_KEY)})")
        
        if not self.DATABASE_URL:
            errors.append("DATABASE_URL is required but not set")
        elif self.ENV in ["staging", "prod"] and not self.DATABASE_URL.startswith("postgresql"):
            errors.append(f"DATABASE_URL must be a PostgreSQL connection string in {self.ENV} (got: {self.DATABASE_URL[:30]}...)")
        
        if not self.REDIS_URL:
            errors.append("REDIS_URL is required but not set")
        
        if not self.REMINDER_WINDOWS:
            errors.append("REMINDER_WINDOWS must contain at least one window")
        elif any(window < 0 for window in self.REMINDER_WINDOWS):
            errors.append(f"REMINDER_WINDOWS must be non-negative (got: {self.REMINDER_WINDOWS})")
        
        if self.SCHEDULER_LOCK_BACKEND not in ["redlock", "simple"]:
            errors.append(f"Invalid SCHEDULER_LOCK_BACKEND: {self.SCHEDULER_LOCK_BACKEND}. Must be 'redlock' or 'simple'")
        
        if self.SCHEDULER_LOCK_RENEW_SECONDS >= self.SCHEDULER_LOCK_TTL_SECONDS:
            errors.append("SCHEDULER_LOCK_RENEW_SECONDS must be shorter than SCHEDULER_LOCK_TTL_SECONDS")
        
        if self.REMINDER_JOB_ATTEMPTS < 1:
            errors.append("REMINDER_JOB_ATTEMPTS must be at least 1")
        
        # Fail fast in staging/prod
        if errors and self.ENV in ["staging", "prod"]:
            print("=" * 60, file=sys.stderr)
            print("CONFIGURATION VALIDATION FAILED", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            for error in errors:
                print(f"  ❌ {error}", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            sys.exit(1)
        
        # Warn in dev
        if errors and self.ENV == "dev":
            print("=" * 60, file=sys.stderr)
            print("CONFIGURATION WARNINGS (dev mode - continuing)", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            for error in errors:
                print(f"  ⚠️  {error}", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
    
    @property
    def is_dev(self) -> bool:
        """Check if running in development mode"""
        return self.ENV == "dev"
    
    @property
    def is_prod(self) -> bool:
        """Check if running in production mode"""
        return self.ENV == "prod"
    
    @property
    def exposes_error_details(self) -> bool:
        """Whether error responses may include exception details"""
        return self.ENV in ("dev", "test")
    
    def scheduler_disabled(self) -> bool:
        """
        Resolve the global scheduler switch from the environment
        
        The scheduler is disabled unless DISABLE_SCHEDULER is explicitly
        'false' or ENABLE_SCHEDULER is 'true'. Read at call time so operators
        can flip it without a code change.
        
        Returns:
            True if the locked scheduler must not run
        """
        disable_flag = os.getenv("DISABLE_SCHEDULER") or "true"
        enable_flag = os.getenv("ENABLE_SCHEDULER")
        return disable_flag != "false" and enable_flag != "true"
    
    def get_database_url(self) -> str:
        """Get database URL (alias for DATABASE_URL)"""
        return self.DATABASE_URL
    
    def get_secret_key(self) -> str:
        """Get secret key (alias for SECRET_KEY)"""
        return self.SECRET_KEY


# Create global config instance
config = Config()
