import os
from dotenv import load_dotenv


class Settings:
    def __init__(self) -> None:
        # Load variables from .env into environment
        load_dotenv()
        self.MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
        self.MONGODB_DB_NAME: str = os.getenv("MONGODB_DB_NAME", "officeflow")
        # "mongo" for MongoDB, "memory" for an in-process store (dev/tests)
        self.STORE_BACKEND: str = os.getenv("STORE_BACKEND", "mongo").strip().lower()
        # Base URL used when building attachment links
        self.PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
        # Frontend base URL (used in CORS)
        self.FRONTEND_BASE_URL: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:3000")
        # Optional comma-separated list of additional allowed origins for CORS
        self.ALLOWED_ORIGINS: list[str] = [
            o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()
        ]
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        # How many sync failures a session keeps until they are read
        self.SYNC_EVENT_LOG_SIZE: int = int(os.getenv("SYNC_EVENT_LOG_SIZE", "100"))


settings = Settings()
