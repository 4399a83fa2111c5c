# scriptgate/app/crud/crud_script.py
from typing import List, Optional

from loguru import logger
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.security import compute_checksum
from app.crud.base import CRUDBase, commit_or_raise
from app.models.script_version import ScriptVersion


class CRUDScript(CRUDBase[ScriptVersion]):

    async def upload(
        self, db: AsyncSession, *, version: str, payload: str, notes: Optional[str] = None
    ) -> ScriptVersion:
        """Cria uma nova versão inativa, com checksum SHA-256 do payload."""
        file_size = len(payload.encode("utf-8"))
        if file_size == 0:
            raise ValidationError("Script payload is required")
        if file_size > settings.SCRIPT_MAX_SIZE_BYTES:
            raise ValidationError(
                f"Script payload too large (max {settings.SCRIPT_MAX_SIZE_BYTES} bytes)"
            )

        db_obj = ScriptVersion(
            version=version,
            payload=payload,
            checksum=compute_checksum(payload),
            update_notes=notes,
            is_active=False,
            file_size=file_size,
        )
        db.add(db_obj)
        await commit_or_raise(db, operation="upload_script", version=version)
        await db.refresh(db_obj)
        logger.info(f"Script versão '{version}' (ID: {db_obj.id}, {file_size} bytes) carregado")
        return db_obj

    async def get_or_404(self, db: AsyncSession, *, script_id: int) -> ScriptVersion:
        target = await self.get(db, id=script_id)
        if target is None:
            raise NotFoundError("Script not found")
        return target

    async def get_active(self, db: AsyncSession) -> Optional[ScriptVersion]:
        stmt = select(ScriptVersion).where(ScriptVersion.is_active.is_(True))
        result = await db.execute(stmt)
        return result.scalars().first()

    async def list_scripts(self, db: AsyncSession) -> List[ScriptVersion]:
        stmt = select(ScriptVersion).order_by(ScriptVersion.created_at.desc(), ScriptVersion.id.desc())
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def activate(self, db: AsyncSession, *, script_id: int) -> ScriptVersion:
        """
        Um único UPDATE sobre todas as linhas: is_active = (id == script_id).
        Dois activate concorrentes serializam no lock de linha e o último
        a commitar deixa exatamente uma versão ativa.
        """
        target = await self.get_or_404(db, script_id=script_id)

        await db.execute(
            update(ScriptVersion).values(is_active=(ScriptVersion.id == script_id))
        )
        await commit_or_raise(db, operation="activate_script", script_id=script_id)
        await db.refresh(target)
        logger.info(f"Script versão '{target.version}' (ID: {script_id}) ativado")
        return target

    async def deactivate(self, db: AsyncSession, *, script_id: int) -> ScriptVersion:
        target = await self.get_or_404(db, script_id=script_id)
        if target.is_active:
            target.is_active = False
            db.add(target)
            await commit_or_raise(db, operation="deactivate_script", script_id=script_id)
            await db.refresh(target)
            logger.info(f"Script (ID: {script_id}) desativado")
        return target

    async def delete_script(self, db: AsyncSession, *, script_id: int) -> None:
        target = await self.get_or_404(db, script_id=script_id)
        if target.is_active:
            raise ConflictError("Cannot delete the active script", reason="script_active")
        await db.execute(
            delete(ScriptVersion).where(
                ScriptVersion.id == script_id, ScriptVersion.is_active.is_(False)
            )
        )
        await commit_or_raise(db, operation="delete_script", script_id=script_id)
        logger.info(f"Script (ID: {script_id}) removido")


script = CRUDScript(ScriptVersion)
