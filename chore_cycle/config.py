import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    def __init__(self):
        # Server
        self.jwt_secret_key = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-in-production")
        self.jwt_algorithm = "HS256"
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))  # 24 hours
        self.redis_host = os.getenv("REDIS_HOST", "localhost")
        self.redis_port = int(os.getenv("REDIS_PORT", "6379"))
        self.redis_password = os.getenv("REDIS_PASSWORD") or None
        self.updates_channel = os.getenv("CHORE_UPDATES_CHANNEL", "chore_updates")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # Client
        self.api_url = os.getenv("CHORE_API_URL", "http://localhost:8000/api")
        self.ws_url = os.getenv("CHORE_WS_URL", "ws://localhost:8000/ws")
        self.http_timeout = float(os.getenv("HTTP_TIMEOUT", "10"))
        self.reconnect_base_delay = float(os.getenv("RECONNECT_BASE_DELAY", "1"))
        self.max_reconnect_attempts = int(os.getenv("MAX_RECONNECT_ATTEMPTS", "5"))


settings = Settings()
