from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'Basketball Academy'
    app_env: str = 'local'
    app_timezone: str = 'Asia/Manila'
    database_url: str = 'sqlite:///./academy.db'
    frontend_base_url: str = 'http://localhost:8080'
    auth_secret: str = 'change-me'
    auth_session_expiry_hours: int = 12
    password_reset_expiry_minutes: int = 60
    coach_default_password: str = 'TOcoachAccount!1'
    roster_preserve_marks: bool = False
    cache_backend: str = 'memory'
    cache_redis_url: str | None = None
    cache_namespace: str = 'academy'
    default_cache_ttl: int = 60
    db_slow_query_ms: int = 100
    request_slow_ms: int = 200
    bootstrap_admin_email: str = ''
    bootstrap_admin_name: str = 'Academy Admin'
    bootstrap_admin_password: str = ''


settings = Settings()
