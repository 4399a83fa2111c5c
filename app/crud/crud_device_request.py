# scriptgate/app/crud/crud_device_request.py
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.db.base import utc_now
from app.models.device_request import DeviceApprovalRequest, RequestStatus


async def get_pending_requests(db: AsyncSession) -> List[DeviceApprovalRequest]:
    """Pedidos ainda por resolver, mais antigos primeiro."""
    stmt = (
        select(DeviceApprovalRequest)
        .where(DeviceApprovalRequest.status == RequestStatus.PENDING.value)
        .order_by(DeviceApprovalRequest.created_at.asc(), DeviceApprovalRequest.id.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_pending_for_device(
    db: AsyncSession, *, device_id: int
) -> Optional[DeviceApprovalRequest]:
    stmt = select(DeviceApprovalRequest).where(
        DeviceApprovalRequest.device_id == device_id,
        DeviceApprovalRequest.status == RequestStatus.PENDING.value,
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_requests_for_device(db: AsyncSession, *, device_id: int) -> List[DeviceApprovalRequest]:
    stmt = (
        select(DeviceApprovalRequest)
        .where(DeviceApprovalRequest.device_id == device_id)
        .order_by(DeviceApprovalRequest.id.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def resolve_pending(
    db: AsyncSession,
    *,
    device_id: int,
    status: RequestStatus,
    processed_by: str,
    admin_notes: Optional[str] = None,
) -> Optional[DeviceApprovalRequest]:
    """
    Resolve o pedido pendente do dispositivo (se houver). Não faz commit:
    o chamador grava o pedido e o novo status do dispositivo juntos.
    """
    db_request = await get_pending_for_device(db, device_id=device_id)
    if db_request is None:
        return None
    db_request.status = status.value
    db_request.processed_by = processed_by
    db_request.processed_at = utc_now()
    db_request.admin_notes = admin_notes
    db.add(db_request)
    return db_request
