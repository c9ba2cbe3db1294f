import os
from dataclasses import dataclass, field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Application
    app_name: str = os.getenv("APP_NAME", "Bookstore Back Office")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # API
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "3000"))
    # Mutating routes require X-API-Key only when this is set
    api_key: Optional[str] = os.getenv("API_KEY") or None
    cors_origins: List[str] = field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
            if origin.strip()
        ]
    )

    # Storage
    data_file: str = os.getenv("LIBRARY_DATA_FILE", os.path.join("data", "database.json"))
    strict_persistence: bool = _env_flag("LIBRARY_STRICT_PERSISTENCE")

    # Rentals
    default_rental_days: int = int(os.getenv("DEFAULT_RENTAL_DAYS", "7"))


settings = Settings()
