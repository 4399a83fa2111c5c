# scriptgate/app/db/initial_data.py
import asyncio
import logging
import sys

from app.crud.crud_setting import seed_defaults
from app.db.base import Base
from app.db.session import dispose_engine, get_async_engine, get_session_factory
from app import models  # noqa F401

# Configuração básica de logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def init_db(*, drop_existing: bool = False) -> None:
    engine = get_async_engine()
    async with engine.begin() as conn:
        if drop_existing:
            logger.info("Removendo todas as tabelas existentes (--drop)...")
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Criando tabelas em falta...")
        await conn.run_sync(Base.metadata.create_all)

    async with get_session_factory()() as session:
        created = await seed_defaults(session)
    logger.info(f"Política padrão: {created} chave(s) criada(s) em system_settings.")

    logger.info("Processo de inicialização do banco de dados concluído.")
    await dispose_engine()


async def main() -> None:
    await init_db(drop_existing="--drop" in sys.argv[1:])


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except Exception:
        logger.exception("Ocorreu um erro durante a inicialização do banco de dados")
        sys.exit(1)
