"""
AdminSync Configuration Settings
"""

from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # Application Settings
    app_name: str = "AdminSync"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    # Upstream admin API (Socket.IO and REST share the same origin)
    api_base_url: str = "http://localhost:5000"
    games_api_prefix: str = "/api/admin/games"
    withdrawals_api_prefix: str = "/api/admin/withdrawals"
    socket_transports: List[str] = ["websocket"]
    http_timeout_seconds: float = 15.0

    # Credentials
    access_token: Optional[str] = None
    access_token_file: Optional[str] = None

    # Refresh coordination
    refresh_debounce_ms: int = 300
    socket_reply_timeout_ms: int = 3000

    # Notifications
    admin_url_prefix: str = "/admin"
    default_notification_route: str = "/admin/manage-game"
    notification_icon: str = "/logo192.png"

    # CORS Settings
    allowed_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]
    allowed_methods: List[str] = ["GET", "POST", "OPTIONS"]
    allowed_headers: List[str] = ["*"]

    class Config:
        env_file = ".env"
        env_prefix = "ADMINSYNC_"
        case_sensitive = False

# Global settings instance
settings = Settings()
