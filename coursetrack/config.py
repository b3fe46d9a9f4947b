from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'Course Activity Tracker'
    app_env: str = 'local'
    app_timezone: str = 'Africa/Kigali'
    database_url: str = 'sqlite:///./coursetrack.db'
    auth_secret: str = 'change-me'
    bootstrap_manager_email: str = ''
    bootstrap_manager_name: str = 'Programme Manager'
    enable_scheduler: bool = True
    reminder_scan_time: str = '01:00'
    reminder_max_weeks: int = 12
    reminder_lock_ttl_seconds: int = 3600
    allow_future_week_logs: bool = False
    notification_worker_mode: str = 'embedded'
    notification_max_attempts: int = 3
    notification_backoff_base_seconds: float = 1.0
    notification_poll_interval_seconds: float = 0.5
    notification_processing_timeout_seconds: int = 300
    sender_email: str = 'noreply@example.com'
    reminder_sender_name: str = 'Course Management System'
    alert_sender_name: str = 'CMS Alert System'
    smtp_host: str = 'localhost'
    smtp_port: int = 587
    smtp_user: str = ''
    smtp_password: str = ''
    smtp_start_tls: bool = True
    smtp_timeout_seconds: float = 10.0
    cache_backend: str = 'memory'
    cache_redis_url: str | None = None
    default_cache_ttl: int = 60
    db_slow_query_ms: int = 100
    metrics_slow_ms: int = 200


settings = Settings()
