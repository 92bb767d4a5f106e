from pydantic_settings import BaseSettings

class Settings(BaseSettings):

    DATABASE_URL : str
    JWT_SECRET :str
    JWT_ALGO : str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES : int = 30
    PASS_HASH_SCHEME:str = "pbkdf2_sha256"
    SELF_PROVIDER:str = "self"
    AUTO_CREATE_TABLES : bool = False

    # otp policy
    OTP_TTL_SECONDS : int = 600
    OTP_MAX_ATTEMPTS : int = 5
    OTP_CODE_LENGTH : int = 6
    OTP_HASH_ALGO : str = "sha256"
    OTP_SWEEP_BATCH_SIZE : int = 450
    OTP_COOKIE_NAME : str = "ve_sid"
    RESET_COOKIE_NAME : str = "pr_sid"

    # code delivery
    NOTIFIER_BACKEND : str = "console"      # "console" / "smtp"
    SMTP_HOST : str | None = None
    SMTP_PORT : int = 465
    SMTP_USER : str | None = None
    SMTP_PASSWORD : str | None = None
    SMTP_FROM : str | None = None
    SMTP_TIMEOUT_SECONDS : float = 10.0

    # code request throttling
    REDIS_HOST : str = "localhost"
    REDIS_PORT : int = 6379
    REDIS_DB : int = 0
    RATE_LIMIT_ENABLED : bool = True
    RATE_LIMIT_BACKEND : str = "redis"      # "redis" / "memory"
    TRUST_FORWARDED_FOR : bool = False      # only behind a proxy that overwrites X-Forwarded-For
    OTP_START_RATE_LIMIT : int = 5
    OTP_START_RATE_WINDOW : int = 600

    class Config:
        env_file = ".env"
        extra="ignore"

config_settings = Settings()
