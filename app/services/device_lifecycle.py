# scriptgate/app/services/device_lifecycle.py
"""
Máquina de estados do dispositivo.

    (novo) --registo--> pending | active (auto-aprovação)
    pending --approve--> active       pending --deny--> blocked
    active  --block----> blocked      blocked --unblock--> active
    qualquer --expires_at no passado--> expired (escrita preguiçosa no authorize)
    expired --approve--> active       (reativação pelo admin)
    expired --block----> blocked      (o bloqueio limpa expires_at)
    qualquer --delete--> (removido)

Não há saída automática de 'blocked' nem de 'expired'.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.crud import crud_device_request
from app.crud.base import commit_or_raise
from app.crud.crud_device import device as crud_device
from app.db.base import utc_now
from app.models.device import Device, DeviceStatus
from app.models.device_request import RequestStatus, RequestType
from app.schemas.setting import GatewayPolicy


class AccessDecision(str, enum.Enum):
    APPROVED = "approved"
    PENDING = "pending"
    BLOCKED = "blocked"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


class AdminAction(str, enum.Enum):
    APPROVE = "approve"
    DENY = "deny"
    BLOCK = "block"
    UNBLOCK = "unblock"


# Estados de origem aceites por ação; o estado destino é no-op (idempotente)
_ALLOWED_SOURCES: Dict[AdminAction, FrozenSet[DeviceStatus]] = {
    AdminAction.APPROVE: frozenset({DeviceStatus.PENDING, DeviceStatus.EXPIRED}),
    AdminAction.DENY: frozenset({DeviceStatus.PENDING}),
    AdminAction.BLOCK: frozenset({DeviceStatus.PENDING, DeviceStatus.ACTIVE, DeviceStatus.EXPIRED}),
    AdminAction.UNBLOCK: frozenset({DeviceStatus.BLOCKED}),
}

_TARGETS: Dict[AdminAction, DeviceStatus] = {
    AdminAction.APPROVE: DeviceStatus.ACTIVE,
    AdminAction.DENY: DeviceStatus.BLOCKED,
    AdminAction.BLOCK: DeviceStatus.BLOCKED,
    AdminAction.UNBLOCK: DeviceStatus.ACTIVE,
}

_DECISIONS: Dict[DeviceStatus, AccessDecision] = {
    DeviceStatus.ACTIVE: AccessDecision.APPROVED,
    DeviceStatus.PENDING: AccessDecision.PENDING,
    DeviceStatus.BLOCKED: AccessDecision.BLOCKED,
    DeviceStatus.EXPIRED: AccessDecision.EXPIRED,
}


@dataclass
class TransitionResult:
    device: Device
    changed: bool
    replaced_device_ids: List[int] = field(default_factory=list)


def is_past_expiry(device: Device, now: Optional[datetime] = None) -> bool:
    now = now or utc_now()
    return device.expires_at is not None and device.expires_at < now


def effective_status(device: Device, now: Optional[datetime] = None) -> DeviceStatus:
    """
    Status observado: expires_at no passado vence qualquer status guardado,
    inclusive 'blocked'. Um dispositivo nesse caso só volta por 'approve'.
    """
    stored = DeviceStatus(device.status)
    if is_past_expiry(device, now):
        return DeviceStatus.EXPIRED
    return stored


def expiry_for(policy: GatewayPolicy, now: Optional[datetime] = None) -> Optional[datetime]:
    if policy.device_expiry_days <= 0:
        return None
    return (now or utc_now()) + timedelta(days=policy.device_expiry_days)


def status_label(decision: AccessDecision) -> str:
    """Nome do status exposto na API ('approved' aparece como 'active')."""
    return "active" if decision == AccessDecision.APPROVED else decision.value


async def authorize(
    db: AsyncSession, device: Optional[Device], *, now: Optional[datetime] = None
) -> AccessDecision:
    if device is None:
        return AccessDecision.NOT_FOUND

    status = effective_status(device, now)
    if status == DeviceStatus.EXPIRED and device.status != DeviceStatus.EXPIRED.value:
        logger.info(f"Dispositivo (ID: {device.id}) expirou em {device.expires_at}; gravando 'expired'")
        await crud_device.update_status(db, device=device, status=DeviceStatus.EXPIRED)
    return _DECISIONS[status]


async def can_register_new_device(db: AsyncSession, *, owner_id: int, policy: GatewayPolicy) -> bool:
    count = await crud_device.count_active_or_pending(db, owner_id=owner_id)
    return count < policy.max_devices_per_user


async def request_type_for(db: AsyncSession, *, owner_id: int) -> RequestType:
    active = await crud_device.count_by_status(db, owner_id=owner_id, statuses=[DeviceStatus.ACTIVE])
    return RequestType.REPLACE if active else RequestType.NEW


def _check_transition(device: Device, action: AdminAction) -> bool:
    """True se a transição muda o estado, False se já está no destino."""
    current = effective_status(device)
    if current == _TARGETS[action]:
        return False
    if current not in _ALLOWED_SOURCES[action]:
        raise ConflictError(
            f"Cannot {action.value} a device in status '{current.value}'",
            reason="invalid_transition",
        )
    return True


async def get_device_or_404(db: AsyncSession, device_id: int) -> Device:
    device = await crud_device.get(db, id=device_id)
    if device is None:
        raise NotFoundError("Device not found")
    return device


async def approve_device(
    db: AsyncSession,
    *,
    device_id: int,
    policy: GatewayPolicy,
    processed_by: str = "admin",
    replace_existing: Optional[bool] = None,
    admin_notes: Optional[str] = None,
) -> TransitionResult:
    """
    pending/expired -> active. Com substituição, TODOS os outros dispositivos
    ativos do mesmo utilizador passam a 'blocked' na mesma transação.
    """
    device = await get_device_or_404(db, device_id)
    if not _check_transition(device, AdminAction.APPROVE):
        return TransitionResult(device=device, changed=False)

    pending_request = await crud_device_request.get_pending_for_device(db, device_id=device.id)
    if replace_existing is None:
        replace_existing = (
            pending_request is not None and pending_request.request_type == RequestType.REPLACE.value
        )

    replaced: List[int] = []
    if replace_existing:
        others = await crud_device.get_active_for_owner(db, owner_id=device.owner_id, exclude_id=device.id)
        for other in others:
            await crud_device.update_status(db, device=other, status=DeviceStatus.BLOCKED, commit=False)
            replaced.append(other.id)

    await crud_device_request.resolve_pending(
        db,
        device_id=device.id,
        status=RequestStatus.APPROVED,
        processed_by=processed_by,
        admin_notes=admin_notes,
    )
    await crud_device.update_status(
        db,
        device=device,
        status=DeviceStatus.ACTIVE,
        approved_by=processed_by,
        expires_at=expiry_for(policy),
        commit=False,
    )
    await commit_or_raise(db, operation="approve_device", device_id=device.id)
    await db.refresh(device)

    logger.info(
        f"Dispositivo (ID: {device.id}) aprovado por {processed_by}"
        + (f"; substituídos: {replaced}" if replaced else "")
    )
    return TransitionResult(device=device, changed=True, replaced_device_ids=replaced)


async def deny_device(
    db: AsyncSession,
    *,
    device_id: int,
    processed_by: str = "admin",
    admin_notes: Optional[str] = None,
) -> TransitionResult:
    device = await get_device_or_404(db, device_id)
    if not _check_transition(device, AdminAction.DENY):
        return TransitionResult(device=device, changed=False)

    await crud_device_request.resolve_pending(
        db,
        device_id=device.id,
        status=RequestStatus.DENIED,
        processed_by=processed_by,
        admin_notes=admin_notes,
    )
    await crud_device.update_status(db, device=device, status=DeviceStatus.BLOCKED, commit=False)
    await commit_or_raise(db, operation="deny_device", device_id=device.id)
    await db.refresh(device)
    logger.info(f"Pedido do dispositivo (ID: {device.id}) negado por {processed_by}")
    return TransitionResult(device=device, changed=True)


async def block_device(
    db: AsyncSession,
    *,
    device_id: int,
    processed_by: str = "admin",
    reason: Optional[str] = None,
) -> TransitionResult:
    device = await get_device_or_404(db, device_id)
    if not _check_transition(device, AdminAction.BLOCK):
        return TransitionResult(device=device, changed=False)

    # Bloquear um pendente também encerra o pedido
    await crud_device_request.resolve_pending(
        db,
        device_id=device.id,
        status=RequestStatus.DENIED,
        processed_by=processed_by,
        admin_notes=reason,
    )
    await crud_device.update_status(db, device=device, status=DeviceStatus.BLOCKED, commit=False)
    await commit_or_raise(db, operation="block_device", device_id=device.id)
    await db.refresh(device)
    logger.info(f"Dispositivo (ID: {device.id}) bloqueado por {processed_by}. Motivo: {reason or '-'}")
    return TransitionResult(device=device, changed=True)


async def unblock_device(
    db: AsyncSession,
    *,
    device_id: int,
    policy: GatewayPolicy,
    processed_by: str = "admin",
) -> TransitionResult:
    device = await get_device_or_404(db, device_id)
    if not _check_transition(device, AdminAction.UNBLOCK):
        return TransitionResult(device=device, changed=False)

    await crud_device.update_status(
        db,
        device=device,
        status=DeviceStatus.ACTIVE,
        approved_by=processed_by,
        expires_at=expiry_for(policy),
    )
    logger.info(f"Dispositivo (ID: {device.id}) desbloqueado por {processed_by}")
    return TransitionResult(device=device, changed=True)


async def delete_device(db: AsyncSession, *, device_id: int) -> bool:
    """Idempotente: False se o dispositivo já não existia."""
    return await crud_device.delete_device(db, device_id=device_id)


async def bulk_approve(db: AsyncSession, *, policy: GatewayPolicy, processed_by: str = "admin") -> int:
    """Aprova todos os pendentes (sem substituição). Retorna quantos mudaram."""
    pending = await crud_device.list_devices(db, status=DeviceStatus.PENDING, limit=None)
    approved = 0
    for device in pending:
        result = await approve_device(
            db,
            device_id=device.id,
            policy=policy,
            processed_by=processed_by,
            replace_existing=False,
        )
        if result.changed:
            approved += 1
    return approved
