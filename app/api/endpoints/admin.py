# scriptgate/app/api/endpoints/admin.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_admin_session, get_client_details, get_policy
from app.core import security
from app.core.config import settings
from app.core.exceptions import AuthError
from app.crud import crud_device_request, crud_setting
from app.crud.crud_device import device as crud_device
from app.db.session import get_db
from app.models.device import DeviceStatus
from app.schemas.admin import (
    AdminLoginRequest,
    AdminLoginResponse,
    AdminPasswordChangeRequest,
    AdminVerifyResponse,
    MessageResponse,
)
from app.schemas.device import (
    AdminActionRequest,
    ApprovalRequestInfo,
    BulkApproveResponse,
    DeviceActionResponse,
    DeviceApproveRequest,
    DeviceBlockRequest,
    DeviceDenyRequest,
    DeviceDetailResponse,
    DeviceInfo,
    DeviceListResponse,
    PendingRequestsResponse,
)
from app.schemas.setting import GatewayPolicy, GatewaySettingsResponse, GatewaySettingsUpdate
from app.services import admin_auth, device_lifecycle
from app.services.device_lifecycle import TransitionResult

router = APIRouter()


def _action_response(result: TransitionResult, done: str) -> DeviceActionResponse:
    message = done if result.changed else f"Device already {result.device.status}"
    return DeviceActionResponse(
        device_id=result.device.id,
        status=result.device.status,
        changed=result.changed,
        replaced_device_ids=result.replaced_device_ids,
        message=message,
    )


# --- Sessão do administrador ---

@router.post(
    "/login",
    response_model=AdminLoginResponse,
    responses={401: {"description": "Senha de administrador inválida"}},
)
async def admin_login(
    login_in: AdminLoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Any:
    client = get_client_details(request)
    if not await admin_auth.authenticate_admin(db, password=login_in.password):
        logger.warning(f"Tentativa de login admin falhada a partir de {client['ip_address']}")
        raise AuthError("Invalid admin password", reason="invalid_credentials")

    token = security.create_admin_token(client["ip_address"], client["user_agent"])
    logger.info(f"Login admin bem-sucedido a partir de {client['ip_address']}")
    return AdminLoginResponse(token=token, expires_in=settings.ADMIN_SESSION_EXPIRE_SECONDS)


@router.post("/verify", response_model=AdminVerifyResponse)
async def admin_verify(session: Dict[str, Any] = Depends(get_admin_session)) -> Any:
    return AdminVerifyResponse(expires_at=session["exp"])


@router.post("/password", response_model=MessageResponse)
async def admin_change_password(
    password_in: AdminPasswordChangeRequest,
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    await admin_auth.change_admin_password(
        db,
        current_password=password_in.current_password,
        new_password=password_in.new_password,
    )
    return MessageResponse(message="Admin password updated")


# --- Dispositivos ---

@router.get("/devices", response_model=DeviceListResponse)
async def list_devices(
    status: Optional[DeviceStatus] = Query(default=None),
    identity: Optional[str] = Query(default=None, max_length=settings.IDENTITY_MAX_LENGTH),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    devices = await crud_device.list_devices(db, status=status, identity=identity, skip=skip, limit=limit)
    return DeviceListResponse(devices=[DeviceInfo.from_device(d) for d in devices])


@router.get("/requests/pending", response_model=PendingRequestsResponse)
async def list_pending_requests(
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    pending = await crud_device_request.get_pending_requests(db)
    return PendingRequestsResponse(requests=[ApprovalRequestInfo.from_request(r) for r in pending])


@router.post("/devices/bulk-approve", response_model=BulkApproveResponse)
async def bulk_approve_devices(
    action_in: Optional[AdminActionRequest] = None,
    db: AsyncSession = Depends(get_db),
    policy: GatewayPolicy = Depends(get_policy),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    approved = await device_lifecycle.bulk_approve(db, policy=policy)
    logger.info(f"Aprovação em massa: {approved} dispositivo(s) aprovados")
    return BulkApproveResponse(approved=approved)


@router.get(
    "/devices/{device_id}",
    response_model=DeviceDetailResponse,
    responses={404: {"description": "Dispositivo não encontrado"}},
)
async def get_device(
    device_id: int,
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    db_device = await device_lifecycle.get_device_or_404(db, device_id)
    requests = await crud_device_request.get_requests_for_device(db, device_id=device_id)
    return DeviceDetailResponse(
        device=DeviceInfo.from_device(db_device),
        requests=[ApprovalRequestInfo.from_request(r) for r in requests],
    )


@router.post("/devices/{device_id}/approve", response_model=DeviceActionResponse)
async def approve_device(
    device_id: int,
    action_in: Optional[DeviceApproveRequest] = None,
    db: AsyncSession = Depends(get_db),
    policy: GatewayPolicy = Depends(get_policy),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    action_in = action_in or DeviceApproveRequest()
    result = await device_lifecycle.approve_device(
        db,
        device_id=device_id,
        policy=policy,
        replace_existing=action_in.replace_existing,
        admin_notes=action_in.admin_notes,
    )
    return _action_response(result, "Device approved")


@router.post("/devices/{device_id}/deny", response_model=DeviceActionResponse)
async def deny_device(
    device_id: int,
    action_in: Optional[DeviceDenyRequest] = None,
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    action_in = action_in or DeviceDenyRequest()
    result = await device_lifecycle.deny_device(db, device_id=device_id, admin_notes=action_in.admin_notes)
    return _action_response(result, "Device request denied")


@router.post("/devices/{device_id}/block", response_model=DeviceActionResponse)
async def block_device(
    device_id: int,
    action_in: Optional[DeviceBlockRequest] = None,
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    action_in = action_in or DeviceBlockRequest()
    result = await device_lifecycle.block_device(db, device_id=device_id, reason=action_in.reason)
    return _action_response(result, "Device blocked")


@router.post("/devices/{device_id}/unblock", response_model=DeviceActionResponse)
async def unblock_device(
    device_id: int,
    action_in: Optional[AdminActionRequest] = None,
    db: AsyncSession = Depends(get_db),
    policy: GatewayPolicy = Depends(get_policy),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    result = await device_lifecycle.unblock_device(db, device_id=device_id, policy=policy)
    return _action_response(result, "Device unblocked")


@router.delete("/devices/{device_id}", response_model=MessageResponse)
async def delete_device(
    device_id: int,
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    if not await device_lifecycle.delete_device(db, device_id=device_id):
        return MessageResponse(message="Device already deleted")
    return MessageResponse(message="Device deleted")


# --- Política do gateway ---

@router.get("/settings", response_model=GatewaySettingsResponse)
async def get_gateway_settings(
    policy: GatewayPolicy = Depends(get_policy),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    return GatewaySettingsResponse(settings=policy)


@router.put("/settings", response_model=GatewaySettingsResponse)
async def update_gateway_settings(
    settings_in: GatewaySettingsUpdate,
    db: AsyncSession = Depends(get_db),
    session: Dict[str, Any] = Depends(get_admin_session),
) -> Any:
    await crud_setting.update_policy(db, obj_in=settings_in)
    policy = await crud_setting.resolve_policy(db)
    return GatewaySettingsResponse(settings=policy)
