# scriptgate/app/schemas/device.py
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import List, Literal, Optional
from datetime import datetime

from app.core.config import settings
from app.models.device import Device
from app.models.device_request import DeviceApprovalRequest


class DeviceIdentityRequest(BaseModel):
    """Identidade do dispositivo enviada pelo userscript."""
    model_config = ConfigDict(populate_by_name=True)

    # Clientes antigos ainda enviam 'username' ou 'email'
    identity: str = Field(
        min_length=1,
        max_length=settings.IDENTITY_MAX_LENGTH,
        validation_alias=AliasChoices("identity", "username", "email"),
    )
    hwid: str = Field(min_length=1, max_length=settings.HWID_MAX_LENGTH)
    fingerprint: str = Field(min_length=1, max_length=settings.FINGERPRINT_MAX_LENGTH)


class DeviceRegisterRequest(DeviceIdentityRequest):
    device_name: Optional[str] = Field(
        default=None, max_length=settings.DEVICE_NAME_MAX_LENGTH, alias="deviceName"
    )
    browser_info: Optional[str] = Field(
        default=None, max_length=settings.BROWSER_INFO_MAX_LENGTH, alias="browserInfo"
    )
    os_info: Optional[str] = Field(
        default=None, max_length=settings.OS_INFO_MAX_LENGTH, alias="osInfo"
    )


class ScriptDeliveryRequest(DeviceIdentityRequest):
    # Entrega cifrada com a chave AES do dispositivo
    encrypted: bool = False


class DeviceRegisterResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    status: Literal["pending", "active", "blocked", "expired", "limit_exceeded"]
    device_id: Optional[int] = Field(default=None, alias="deviceId")
    duplicate: bool = False
    auto_approved: bool = Field(default=False, alias="autoApproved")
    message: str


class DeviceStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    status: Literal["not_found", "active", "pending", "blocked", "expired"]
    device_id: Optional[int] = Field(default=None, alias="deviceId")
    approved_at: Optional[datetime] = Field(default=None, alias="approvedAt")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")


class ScriptDeliveryResponse(BaseModel):
    success: bool = True
    payload: str
    version: str
    checksum: str
    encrypted: bool = False


class DeviceInfo(BaseModel):
    """Visão administrativa de um dispositivo (sem a aes_key)."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    identity: str
    hwid: str
    fingerprint: str
    display_name: Optional[str] = Field(default=None, alias="displayName")
    browser_info: Optional[str] = Field(default=None, alias="browserInfo")
    os_info: Optional[str] = Field(default=None, alias="osInfo")
    status: str
    created_at: datetime = Field(alias="createdAt")
    approved_at: Optional[datetime] = Field(default=None, alias="approvedAt")
    approved_by: Optional[str] = Field(default=None, alias="approvedBy")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    last_used_at: Optional[datetime] = Field(default=None, alias="lastUsedAt")
    usage_count: int = Field(alias="usageCount")

    @classmethod
    def from_device(cls, device: Device) -> "DeviceInfo":
        return cls(
            id=device.id,
            identity=device.owner.identity,
            hwid=device.hwid,
            fingerprint=device.fingerprint,
            display_name=device.display_name,
            browser_info=device.browser_info,
            os_info=device.os_info,
            status=device.status,
            created_at=device.created_at,
            approved_at=device.approved_at,
            approved_by=device.approved_by,
            expires_at=device.expires_at,
            last_used_at=device.last_used_at,
            usage_count=device.usage_count,
        )


class ApprovalRequestInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    device_id: int = Field(alias="deviceId")
    requested_identity: str = Field(alias="requestedIdentity")
    request_type: str = Field(alias="requestType")
    status: str
    processed_by: Optional[str] = Field(default=None, alias="processedBy")
    processed_at: Optional[datetime] = Field(default=None, alias="processedAt")
    admin_notes: Optional[str] = Field(default=None, alias="adminNotes")
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_request(cls, db_request: DeviceApprovalRequest) -> "ApprovalRequestInfo":
        return cls(
            id=db_request.id,
            device_id=db_request.device_id,
            requested_identity=db_request.requested_identity,
            request_type=db_request.request_type,
            status=db_request.status,
            processed_by=db_request.processed_by,
            processed_at=db_request.processed_at,
            admin_notes=db_request.admin_notes,
            created_at=db_request.created_at,
        )


class DeviceListResponse(BaseModel):
    success: bool = True
    devices: List[DeviceInfo]


class DeviceDetailResponse(BaseModel):
    success: bool = True
    device: DeviceInfo
    requests: List[ApprovalRequestInfo]


class PendingRequestsResponse(BaseModel):
    success: bool = True
    requests: List[ApprovalRequestInfo]


# --- Ações administrativas ---

class AdminActionRequest(BaseModel):
    token: Optional[str] = None


class DeviceApproveRequest(AdminActionRequest):
    model_config = ConfigDict(populate_by_name=True)

    # None = seguir o tipo do pedido ('replace' substitui os outros ativos)
    replace_existing: Optional[bool] = Field(default=None, alias="replaceExisting")
    admin_notes: Optional[str] = Field(default=None, alias="adminNotes")


class DeviceDenyRequest(AdminActionRequest):
    model_config = ConfigDict(populate_by_name=True)

    admin_notes: Optional[str] = Field(default=None, alias="adminNotes")


class DeviceBlockRequest(AdminActionRequest):
    reason: Optional[str] = None


class DeviceActionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    device_id: int = Field(alias="deviceId")
    status: str
    changed: bool
    replaced_device_ids: List[int] = Field(default_factory=list, alias="replacedDeviceIds")
    message: str


class BulkApproveResponse(BaseModel):
    success: bool = True
    approved: int
