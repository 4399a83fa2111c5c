# scriptgate/app/crud/base.py
from typing import Any, Generic, Optional, Type, TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.exceptions import StorageError
from app.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


async def commit_or_raise(db: AsyncSession, *, operation: str, **context: Any) -> None:
    """Commit; em falha do banco faz rollback e levanta StorageError."""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Erro de armazenamento em '{operation}' ({context}): {e}")
        raise StorageError("Database error", operation=operation, context=context) from e


class CRUDBase(Generic[ModelType]):
    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        stmt = select(self.model).where(self.model.id == id)
        result = await db.execute(stmt)
        return result.scalars().first()

