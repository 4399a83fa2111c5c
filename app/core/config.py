# scriptgate/app/core/config.py
import logging
from typing import List
from pydantic_settings import BaseSettings
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE_PATH = BASE_DIR / ".env"

class Settings(BaseSettings):

    # Core
    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    TESTING: bool = False

    # Sessão de Administrador
    ADMIN_SESSION_EXPIRE_SECONDS: int = 24 * 60 * 60
    # Credencial de bootstrap: só é consultada enquanto não existir hash guardado
    ADMIN_PASSWORD: str | None = None
    ADMIN_PASSWORD_MIN_LENGTH: int = 8

    # Limites dos campos enviados pelo dispositivo
    IDENTITY_MAX_LENGTH: int = 255
    HWID_MAX_LENGTH: int = 500
    FINGERPRINT_MAX_LENGTH: int = 10000
    DEVICE_NAME_MAX_LENGTH: int = 100
    BROWSER_INFO_MAX_LENGTH: int = 1000
    OS_INFO_MAX_LENGTH: int = 100

    # Acima destes tamanhos o valor é guardado como SHA-256 (64 chars hex)
    HWID_HASH_THRESHOLD: int = 400
    FINGERPRINT_HASH_THRESHOLD: int = 800

    # Scripts
    SCRIPT_MAX_SIZE_BYTES: int = 5_000_000

    # Política de dispositivos (podem ser sobrescritos pela tabela system_settings)
    MAX_DEVICES_PER_USER: int = 3
    AUTO_APPROVE_DEVICES: bool = False
    DEVICE_EXPIRY_DAYS: int = 30

    # Rate Limiting
    RATE_LIMIT_DEFAULT: str = "60/minute"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    class Config:
        case_sensitive = True
        env_file = ENV_FILE_PATH
        env_file_encoding = 'utf-8'

try:
    settings = Settings()

    if settings.ADMIN_PASSWORD and len(settings.ADMIN_PASSWORD) < settings.ADMIN_PASSWORD_MIN_LENGTH:
        logging.warning(
            "ADMIN_PASSWORD é mais curta do que ADMIN_PASSWORD_MIN_LENGTH. "
            "Troque a senha de administrador após o primeiro login."
        )

except Exception as e:
    logging.error(f"FATAL: Erro ao carregar 'settings' a partir do .env em {ENV_FILE_PATH}: {e}")
    raise e
