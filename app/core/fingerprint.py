# scriptgate/app/core/fingerprint.py
import hashlib
from typing import Optional

from app.core.config import settings
from app.core.exceptions import ValidationError

HASHED_KEY_LENGTH = 64


def normalize_key(raw: Optional[str], *, threshold: int, field: str = "value") -> str:
    """
    Converte um identificador enviado pelo cliente numa chave de tamanho
    limitado, segura para colunas indexadas.

    Até `threshold` caracteres o valor é mantido como está; acima disso é
    substituído pelo SHA-256 (hex minúsculo, 64 chars) dos bytes UTF-8.
    """
    if raw is None or raw == "":
        raise ValidationError(f"{field} is required")
    if len(raw) <= threshold:
        return raw
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def normalize_hwid(raw: Optional[str]) -> str:
    return normalize_key(raw, threshold=settings.HWID_HASH_THRESHOLD, field="hwid")


def normalize_fingerprint(raw: Optional[str]) -> str:
    return normalize_key(raw, threshold=settings.FINGERPRINT_HASH_THRESHOLD, field="fingerprint")


def key_preview(key: str) -> str:
    """Prefixo curto para logs (nunca logar o valor completo)."""
    return f"{key[:10]}..." if len(key) > 10 else key
