# scriptgate/app/services/admin_auth.py
"""
Credencial do administrador.

Política: hash sempre. Enquanto não existir hash guardado, a senha é
comparada com ADMIN_PASSWORD (ou com um valor legado em texto plano no
banco); no primeiro login bem-sucedido o hash bcrypt é gravado e, daí em
diante, só o hash é consultado.
"""
import secrets
from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AuthError, ValidationError
from app.core.security import get_password_hash, is_password_hash, verify_password
from app.crud import crud_setting


async def _store_password_hash(db: AsyncSession, password: str) -> None:
    await crud_setting.set_setting(
        db,
        key=crud_setting.ADMIN_PASSWORD_HASH_KEY,
        value=get_password_hash(password),
        value_type="string",
        description="Admin login password (bcrypt)",
    )


async def authenticate_admin(db: AsyncSession, *, password: str) -> bool:
    stored = await crud_setting.get_setting(db, key=crud_setting.ADMIN_PASSWORD_HASH_KEY)
    stored_value: Optional[str] = stored.value if stored else None

    if stored_value and is_password_hash(stored_value):
        return verify_password(password, stored_value)

    bootstrap = stored_value or settings.ADMIN_PASSWORD
    if not bootstrap:
        logger.error("Nenhuma senha de administrador configurada (ADMIN_PASSWORD vazio e sem hash no banco).")
        return False

    if not secrets.compare_digest(password.encode("utf-8"), bootstrap.encode("utf-8")):
        return False

    await _store_password_hash(db, password)
    logger.info("Senha de administrador migrada para hash bcrypt no primeiro login.")
    return True


async def change_admin_password(db: AsyncSession, *, current_password: str, new_password: str) -> None:
    if not await authenticate_admin(db, password=current_password):
        raise AuthError("Current password is incorrect", reason="invalid_credentials")
    if len(new_password) < settings.ADMIN_PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"New password must be at least {settings.ADMIN_PASSWORD_MIN_LENGTH} characters"
        )
    await _store_password_hash(db, new_password)
    logger.info("Senha de administrador alterada.")
