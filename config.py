import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Chargement des variables d'environnement
load_dotenv()


@dataclass
class Settings:
    """Service settings read from environment variables."""

    service_name: str = os.getenv("SERVICE_NAME", "users-service")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "logs.json")
    # "unverified" accepts any well-formed token, "hs256" checks the signature
    auth_mode: str = os.getenv("AUTH_MODE", "unverified")
    jwt_secret: str = os.getenv("JWT_SECRET", "")


settings = Settings()
