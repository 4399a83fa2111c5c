# scriptgate/app/crud/crud_user.py
from typing import Optional

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.exceptions import StorageError
from app.crud.base import CRUDBase, commit_or_raise
from app.db.base import utc_now
from app.models.user import User


class CRUDUser(CRUDBase[User]):

    async def get_by_identity(self, db: AsyncSession, *, identity: str) -> Optional[User]:
        stmt = select(User).where(User.identity == identity)
        result = await db.execute(stmt)
        return result.scalars().first()

    async def get_or_create(self, db: AsyncSession, *, identity: str) -> User:
        """
        Procura um utilizador pela identidade (username ou email). Se não
        existir, cria-o. Dois pedidos simultâneos para a mesma identidade
        resolvem-se pela constraint UNIQUE: quem perde relê a linha vencedora.
        """
        try:
            user = await self.get_by_identity(db, identity=identity)
            if user:
                return user

            db_obj = User(identity=identity)
            db.add(db_obj)
            await db.commit()
            await db.refresh(db_obj)
            logger.info(f"Novo utilizador criado (ID: {db_obj.id})")
            return db_obj
        except IntegrityError:
            # Outro pedido criou o mesmo utilizador entre o SELECT e o INSERT
            await db.rollback()
            user = await self.get_by_identity(db, identity=identity)
            if user is None:
                raise StorageError(
                    "User vanished after unique conflict", operation="get_or_create_user"
                )
            return user
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Erro de armazenamento em get_or_create_user: {e}")
            raise StorageError("Database error", operation="get_or_create_user") from e

    async def touch_last_active(self, db: AsyncSession, *, user_id: int) -> None:
        stmt = update(User).where(User.id == user_id).values(last_active=utc_now())
        await db.execute(stmt)
        await commit_or_raise(db, operation="touch_last_active", user_id=user_id)


# Instância única do CRUD para ser usada nos serviços
user = CRUDUser(User)
