from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # pydantic v2: ignore unknown env vars (e.g., ENV), load from .env
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
    app_name: str = "churchcms-messaging"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"
    # File logging options
    log_file_enabled: bool = False
    log_dir: str = "logs"
    log_file_name: str = "messaging.log"
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5
    # Rotation policy: 'size' or 'time'
    log_rotation: str = "size"
    # If time-based rotation
    log_when: str = "midnight"  # 'S','M','H','D','midnight','W0'-'W6'
    log_interval: int = 1
    log_utc: bool = True

    # Notifications
    notification_default_duration_ms: int = 5000
    # Single shared in-flight flag for every refresh (templates block providers and vice versa)
    shared_refresh_guard: bool = False
    # Deep link used by navigate_to_settings
    settings_url: str = "/settings"
    # Drop a session's coordinator when its last WebSocket disconnects
    close_session_on_disconnect: bool = True
    # Sessions with no open socket are closed after this many idle seconds (0 disables)
    session_idle_timeout_sec: float = 900.0

    # Cross-session broadcast: 'local' (single process) or 'redis'
    broadcast_backend: str = "local"
    broadcast_topic: str = "messaging_notification"
    redis_url: str = "redis://localhost:6379/0"

    # Templates / provider configurations store: 'file' or 'supabase'
    store_backend: str = "file"
    store_path: str = "config/messaging.json"
    supabase_url: str | None = None
    supabase_key: str | None = None
    store_timeout_sec: float = 10.0

    # Prometheus /metrics
    metrics_enabled: bool = True

    # Optional diagnostics/token protection
    diag_token: str | None = None


settings = Settings()
