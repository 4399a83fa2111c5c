# scriptgate/app/crud/crud_device.py
from datetime import datetime
from typing import List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import delete, func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.exceptions import StorageError
from app.core.fingerprint import key_preview
from app.core.security import generate_device_key
from app.crud.base import CRUDBase, commit_or_raise
from app.db.base import utc_now
from app.models.device import Device, DeviceStatus
from app.models.device_request import DeviceApprovalRequest, RequestStatus, RequestType
from app.models.user import User


class DeviceMetadata(BaseModel):
    display_name: Optional[str] = None
    browser_info: Optional[str] = None
    os_info: Optional[str] = None


class CRUDDevice(CRUDBase[Device]):

    async def find(
        self, db: AsyncSession, *, owner_id: int, hwid: str, fingerprint: str
    ) -> Optional[Device]:
        """Busca pelo trio único (owner, hwid, fingerprint). None se não existir."""
        stmt = select(Device).where(
            Device.owner_id == owner_id,
            Device.hwid == hwid,
            Device.fingerprint == fingerprint,
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    async def find_by_identity(
        self, db: AsyncSession, *, identity: str, hwid: str, fingerprint: str
    ) -> Optional[Device]:
        """Mesma busca, mas sem criar o utilizador (usado em status/entrega)."""
        stmt = (
            select(Device)
            .join(User, Device.owner_id == User.id)
            .where(
                User.identity == identity,
                Device.hwid == hwid,
                Device.fingerprint == fingerprint,
            )
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    async def count_by_status(
        self,
        db: AsyncSession,
        *,
        owner_id: int,
        statuses: List[DeviceStatus],
        now: Optional[datetime] = None,
    ) -> int:
        """Conta pelo status observado: expires_at no passado não entra na contagem."""
        now = now or utc_now()
        stmt = select(func.count(Device.id)).where(
            Device.owner_id == owner_id,
            Device.status.in_([s.value for s in statuses]),
            or_(Device.expires_at.is_(None), Device.expires_at >= now),
        )
        result = await db.execute(stmt)
        return result.scalar_one()

    async def count_active_or_pending(self, db: AsyncSession, *, owner_id: int) -> int:
        return await self.count_by_status(
            db, owner_id=owner_id, statuses=[DeviceStatus.ACTIVE, DeviceStatus.PENDING]
        )

    async def register(
        self,
        db: AsyncSession,
        *,
        owner_id: int,
        identity: str,
        hwid: str,
        fingerprint: str,
        metadata: DeviceMetadata,
        auto_approve: bool = False,
        expires_at: Optional[datetime] = None,
        request_type: RequestType = RequestType.NEW,
    ) -> Tuple[Device, bool]:
        """
        Cria o dispositivo (e o pedido de aprovação, quando não é auto-aprovado)
        numa única transação. Se o trio já existir, devolve o existente com
        duplicate=True. A corrida entre dois registos simultâneos é resolvida
        pela constraint UNIQUE: o INSERT perdedor vira o caminho duplicado.
        """
        existing = await self.find(db, owner_id=owner_id, hwid=hwid, fingerprint=fingerprint)
        if existing:
            await self.touch(db, device_id=existing.id)
            await db.refresh(existing)
            return existing, True

        now = utc_now()
        db_device = Device(
            owner_id=owner_id,
            hwid=hwid,
            fingerprint=fingerprint,
            display_name=metadata.display_name or "Unknown Device",
            browser_info=metadata.browser_info or "Unknown Browser",
            os_info=metadata.os_info or "Unknown OS",
            status=(DeviceStatus.ACTIVE if auto_approve else DeviceStatus.PENDING).value,
            aes_key=generate_device_key(),
            approved_at=now if auto_approve else None,
            approved_by="system" if auto_approve else None,
            expires_at=expires_at if auto_approve else None,
            usage_count=0,
        )
        db.add(db_device)

        try:
            await db.flush()
            if not auto_approve:
                db.add(
                    DeviceApprovalRequest(
                        device_id=db_device.id,
                        requested_identity=identity,
                        request_type=request_type.value,
                        status=RequestStatus.PENDING.value,
                    )
                )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info(
                f"Registo concorrente do mesmo dispositivo (owner {owner_id}, "
                f"hwid {key_preview(hwid)}). Usando o existente."
            )
            existing = await self.find(db, owner_id=owner_id, hwid=hwid, fingerprint=fingerprint)
            if existing is None:
                raise StorageError(
                    "Device vanished after unique conflict",
                    operation="register_device",
                    context={"owner_id": owner_id, "hwid": key_preview(hwid)},
                )
            await self.touch(db, device_id=existing.id)
            await db.refresh(existing)
            return existing, True
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Erro ao registar dispositivo para owner {owner_id}: {e}")
            raise StorageError(
                "Database error",
                operation="register_device",
                context={"owner_id": owner_id, "hwid": key_preview(hwid)},
            ) from e

        await db.refresh(db_device)
        logger.info(
            f"Novo dispositivo (ID: {db_device.id}) registado para owner {owner_id} "
            f"com status '{db_device.status}'"
        )
        return db_device, False

    async def touch(self, db: AsyncSession, *, device_id: int) -> None:
        """Atualiza last_used_at sem mexer no usage_count."""
        stmt = update(Device).where(Device.id == device_id).values(last_used_at=utc_now())
        await db.execute(stmt)
        await commit_or_raise(db, operation="touch_device", device_id=device_id)

    async def record_access(self, db: AsyncSession, *, device: Device) -> Device:
        """Incremento atômico no banco, nunca read-modify-write na aplicação."""
        stmt = (
            update(Device)
            .where(Device.id == device.id)
            .values(usage_count=Device.usage_count + 1, last_used_at=utc_now())
        )
        await db.execute(stmt)
        await commit_or_raise(db, operation="record_device_access", device_id=device.id)
        await db.refresh(device)
        return device

    async def update_status(
        self,
        db: AsyncSession,
        *,
        device: Device,
        status: DeviceStatus,
        approved_by: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        commit: bool = True,
    ) -> Device:
        """
        Transição pura de status. approved_at/approved_by (e a nova janela de
        expiração) só são gravados ao entrar em 'active'; 'blocked' não tem janela.
        """
        device.status = status.value
        if status == DeviceStatus.ACTIVE:
            device.approved_at = utc_now()
            device.approved_by = approved_by
            device.expires_at = expires_at
        elif status == DeviceStatus.BLOCKED:
            device.expires_at = None
        db.add(device)
        if commit:
            await commit_or_raise(
                db, operation="update_device_status", device_id=device.id, status=status.value
            )
            await db.refresh(device)
        return device

    async def list_devices(
        self,
        db: AsyncSession,
        *,
        status: Optional[DeviceStatus] = None,
        identity: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = 100,
    ) -> List[Device]:
        stmt = select(Device).join(User, Device.owner_id == User.id)
        if status is not None:
            stmt = stmt.where(Device.status == status.value)
        if identity:
            stmt = stmt.where(User.identity == identity)
        stmt = stmt.order_by(Device.created_at.desc(), Device.id.desc()).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def get_active_for_owner(
        self, db: AsyncSession, *, owner_id: int, exclude_id: Optional[int] = None
    ) -> List[Device]:
        stmt = select(Device).where(
            Device.owner_id == owner_id, Device.status == DeviceStatus.ACTIVE.value
        )
        if exclude_id is not None:
            stmt = stmt.where(Device.id != exclude_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def delete_device(self, db: AsyncSession, *, device_id: int) -> bool:
        """Remove o dispositivo e os seus pedidos de aprovação. Irreversível."""
        await db.execute(
            delete(DeviceApprovalRequest).where(DeviceApprovalRequest.device_id == device_id)
        )
        result = await db.execute(delete(Device).where(Device.id == device_id))
        await commit_or_raise(db, operation="delete_device", device_id=device_id)
        if result.rowcount:
            logger.info(f"Dispositivo (ID: {device_id}) removido")
        return bool(result.rowcount)


device = CRUDDevice(Device)
