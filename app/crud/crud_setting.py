# scriptgate/app/crud/crud_setting.py
"""
Configurações persistidas (tabela system_settings) e resolução da política
efetiva do gateway.

Precedência documentada para cada chave de política:

    1. variável de ambiente definida explicitamente (ou no .env)
    2. valor guardado em system_settings
    3. padrão declarado em app.core.config.Settings
"""
from typing import Any, Dict, NamedTuple, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.config import Settings, settings as app_settings
from app.crud.base import commit_or_raise
from app.models.system_setting import SystemSetting
from app.schemas.setting import GatewayPolicy, GatewaySettingsUpdate

ADMIN_PASSWORD_HASH_KEY = "admin_password_hash"


class PolicyKey(NamedTuple):
    db_key: str
    env_field: str
    value_type: str
    description: str


POLICY_KEYS: Dict[str, PolicyKey] = {
    "max_devices_per_user": PolicyKey(
        "max_devices_per_user", "MAX_DEVICES_PER_USER", "number", "Maximum devices per user"
    ),
    "auto_approve_devices": PolicyKey(
        "auto_approve_devices", "AUTO_APPROVE_DEVICES", "boolean", "Automatically approve new devices"
    ),
    "device_expiry_days": PolicyKey(
        "device_expiry_days", "DEVICE_EXPIRY_DAYS", "number", "Device expiration in days (0 = never)"
    ),
}


def parse_setting_value(value: Optional[str], value_type: str) -> Any:
    """Converte o texto guardado no tipo declarado. ValueError se inválido."""
    if value is None:
        raise ValueError("empty setting value")
    if value_type == "number":
        return int(value)
    if value_type == "boolean":
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"invalid boolean: {value!r}")
    return value


def serialize_setting_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


async def get_setting(db: AsyncSession, *, key: str) -> Optional[SystemSetting]:
    stmt = select(SystemSetting).where(SystemSetting.key == key)
    result = await db.execute(stmt)
    return result.scalars().first()


async def set_setting(
    db: AsyncSession,
    *,
    key: str,
    value: str,
    value_type: str = "string",
    description: Optional[str] = None,
    commit: bool = True,
) -> SystemSetting:
    db_setting = await get_setting(db, key=key)
    if db_setting is None:
        db_setting = SystemSetting(key=key, value_type=value_type, description=description)
    db_setting.value = value
    db_setting.value_type = value_type
    if description:
        db_setting.description = description
    db.add(db_setting)
    if commit:
        await commit_or_raise(db, operation="set_setting", key=key)
        await db.refresh(db_setting)
    return db_setting


async def resolve_policy(db: AsyncSession, *, source: Settings = app_settings) -> GatewayPolicy:
    resolved: Dict[str, Any] = {}
    for name, policy_key in POLICY_KEYS.items():
        if policy_key.env_field in source.model_fields_set:
            resolved[name] = getattr(source, policy_key.env_field)
            continue

        db_setting = await get_setting(db, key=policy_key.db_key)
        if db_setting is not None:
            try:
                resolved[name] = parse_setting_value(db_setting.value, policy_key.value_type)
                continue
            except ValueError as e:
                logger.warning(f"Valor inválido para '{policy_key.db_key}' em system_settings: {e}")

        resolved[name] = Settings.model_fields[policy_key.env_field].default
    return GatewayPolicy(**resolved)


async def update_policy(db: AsyncSession, *, obj_in: GatewaySettingsUpdate) -> None:
    """Grava as chaves presentes. Variáveis de ambiente continuam a ter precedência."""
    update_data = obj_in.model_dump(exclude_unset=True, exclude={"token"})
    for name, value in update_data.items():
        if value is None or name not in POLICY_KEYS:
            continue
        policy_key = POLICY_KEYS[name]
        if policy_key.env_field in app_settings.model_fields_set:
            logger.warning(
                f"'{policy_key.db_key}' atualizado no banco, mas {policy_key.env_field} "
                f"está definido no ambiente e prevalece."
            )
        await set_setting(
            db,
            key=policy_key.db_key,
            value=serialize_setting_value(value),
            value_type=policy_key.value_type,
            description=policy_key.description,
            commit=False,
        )
    await commit_or_raise(db, operation="update_policy", keys=list(update_data))


async def seed_defaults(db: AsyncSession) -> int:
    """Insere as chaves de política em falta, sem sobrescrever as existentes."""
    created = 0
    for policy_key in POLICY_KEYS.values():
        if await get_setting(db, key=policy_key.db_key) is not None:
            continue
        default = Settings.model_fields[policy_key.env_field].default
        db.add(
            SystemSetting(
                key=policy_key.db_key,
                value=serialize_setting_value(default),
                value_type=policy_key.value_type,
                description=policy_key.description,
            )
        )
        created += 1
    if created:
        await commit_or_raise(db, operation="seed_defaults")
    return created
