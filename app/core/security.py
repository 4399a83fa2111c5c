import base64
import hashlib
import hmac
import os
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from jose import jwt, JWTError  # type: ignore
from loguru import logger
from passlib.context import CryptContext  # type: ignore

from .config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ADMIN_SESSION_TOKEN_TYPE = "admin_session"
DEVICE_KEY_BYTES = 32
GCM_NONCE_BYTES = 12


# --- VERIFICAÇÃO E HASH DE SENHA ---
def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        # Limita o tamanho da senha ANTES de passar para o bcrypt (evita erros > 72 bytes)
        password_bytes = plain_password.encode("utf-8")[:72]
        return pwd_context.verify(password_bytes, hashed_password)
    except (ValueError, TypeError) as e:
        logger.warning(f"Hash de senha inválido ou corrompido: {e}")
        return False


def get_password_hash(password: str) -> str:
    password_bytes = password.encode("utf-8")[:72]
    return pwd_context.hash(password_bytes)


def is_password_hash(value: Optional[str]) -> bool:
    return bool(value) and pwd_context.identify(value) is not None


# --- TOKENS ASSINADOS (HS256) ---
def issue_token(claims: Dict[str, Any], secret: str, ttl_seconds: int) -> str:
    """
    Emite base64url(header).base64url(payload).base64url(HMAC-SHA256).
    O payload inclui sempre `iat` e `exp = iat + ttl_seconds`.
    """
    iat = int(datetime.now(timezone.utc).timestamp())
    to_encode: Dict[str, Any] = {**claims, "iat": iat, "exp": iat + ttl_seconds}
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def verify_token(token: str, secret: str) -> Dict[str, Any] | None:
    """Retorna os claims, ou None se o token for malformado, adulterado ou expirado."""
    if not token:
        return None
    try:
        return jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Falha ao validar token: {e}")
        return None


def create_admin_token(ip_address: Optional[str], user_agent: Optional[str]) -> str:
    return issue_token(
        {"type": ADMIN_SESSION_TOKEN_TYPE, "ip": ip_address, "userAgent": user_agent},
        settings.SECRET_KEY,
        settings.ADMIN_SESSION_EXPIRE_SECONDS,
    )


def decode_admin_token(token: str) -> Dict[str, Any] | None:
    payload = verify_token(token, settings.SECRET_KEY)
    if payload is None or payload.get("type") != ADMIN_SESSION_TOKEN_TYPE:
        return None
    return payload


# --- INTEGRIDADE DO PAYLOAD ---
def compute_checksum(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def verify_checksum(payload: str, checksum: str) -> bool:
    return hmac.compare_digest(compute_checksum(payload), checksum or "")


# --- CHAVE POR DISPOSITIVO (AES-256-GCM) ---
def generate_device_key() -> str:
    """Gera uma chave AES de 256 bits codificada em base64."""
    return base64.b64encode(secrets.token_bytes(DEVICE_KEY_BYTES)).decode("ascii")


def encrypt_payload(plaintext: str, device_key: str) -> str:
    """Retorna base64(nonce || ciphertext+tag)."""
    key = base64.b64decode(device_key)
    nonce = os.urandom(GCM_NONCE_BYTES)
    sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + sealed).decode("ascii")


def decrypt_payload(encrypted: str, device_key: str) -> str:
    key = base64.b64decode(device_key)
    raw = base64.b64decode(encrypted)
    nonce, sealed = raw[:GCM_NONCE_BYTES], raw[GCM_NONCE_BYTES:]
    return AESGCM(key).decrypt(nonce, sealed, None).decode("utf-8")
