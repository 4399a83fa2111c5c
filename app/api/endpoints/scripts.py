# scriptgate/app/api/endpoints/scripts.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_admin_session
from app.core.exceptions import UnavailableError
from app.crud.crud_script import script as crud_script
from app.db.session import get_db
from app.schemas.admin import MessageResponse
from app.schemas.device import AdminActionRequest
from app.schemas.script import (
    ScriptDetail,
    ScriptDetailResponse,
    ScriptInfo,
    ScriptListResponse,
    ScriptMetaResponse,
    ScriptResponse,
    ScriptUploadRequest,
)

router = APIRouter()
admin_router = APIRouter()


@router.get(
    "/active/meta",
    response_model=ScriptMetaResponse,
    responses={503: {"description": "Nenhum script ativo"}},
)
async def get_active_script_meta(db: AsyncSession = Depends(get_db)) -> Any:
    """Versão e checksum do script ativo, sem o payload."""
    active_script = await crud_script.get_active(db)
    if active_script is None:
        raise UnavailableError("No active script available", reason="no_active_script")
    return ScriptMetaResponse(
        version=active_script.version,
        checksum=active_script.checksum,
        file_size=active_script.file_size,
        update_notes=active_script.update_notes,
        created_at=active_script.created_at,
    )


# --- Registo de scripts (admin) ---

@admin_router.get("", response_model=ScriptListResponse)
async def list_scripts(
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    scripts = await crud_script.list_scripts(db)
    return ScriptListResponse(scripts=[ScriptInfo.from_script(s) for s in scripts])


@admin_router.post("", response_model=ScriptResponse, status_code=status.HTTP_201_CREATED)
async def upload_script(
    script_in: ScriptUploadRequest,
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    db_script = await crud_script.upload(
        db, version=script_in.version, payload=script_in.payload, notes=script_in.notes
    )
    return ScriptResponse(script=ScriptInfo.from_script(db_script))


@admin_router.get(
    "/{script_id}",
    response_model=ScriptDetailResponse,
    responses={404: {"description": "Script não encontrado"}},
)
async def get_script(
    script_id: int,
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    db_script = await crud_script.get_or_404(db, script_id=script_id)
    return ScriptDetailResponse(script=ScriptDetail.from_script(db_script))


@admin_router.post("/{script_id}/activate", response_model=ScriptResponse)
async def activate_script(
    script_id: int,
    action_in: Optional[AdminActionRequest] = None,
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    db_script = await crud_script.activate(db, script_id=script_id)
    return ScriptResponse(script=ScriptInfo.from_script(db_script))


@admin_router.post("/{script_id}/deactivate", response_model=ScriptResponse)
async def deactivate_script(
    script_id: int,
    action_in: Optional[AdminActionRequest] = None,
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    db_script = await crud_script.deactivate(db, script_id=script_id)
    return ScriptResponse(script=ScriptInfo.from_script(db_script))


@admin_router.delete(
    "/{script_id}",
    response_model=MessageResponse,
    responses={409: {"description": "O script ativo não pode ser removido"}},
)
async def delete_script(
    script_id: int,
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    await crud_script.delete_script(db, script_id=script_id)
    return MessageResponse(message="Script deleted")
