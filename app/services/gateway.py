# scriptgate/app/services/gateway.py
from typing import Awaitable, Callable, Tuple

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AccessDeniedError,
    IntegrityError,
    NotFoundError,
    UnavailableError,
)
from app.core.fingerprint import key_preview, normalize_fingerprint, normalize_hwid
from app.core.security import encrypt_payload, verify_checksum
from app.crud.crud_device import CRUDDevice, DeviceMetadata, device as default_devices
from app.crud.crud_script import CRUDScript, script as default_scripts
from app.crud.crud_setting import resolve_policy
from app.crud.crud_user import CRUDUser, user as default_users
from app.models.device_request import RequestType
from app.schemas.device import (
    DeviceIdentityRequest,
    DeviceRegisterRequest,
    DeviceRegisterResponse,
    DeviceStatusResponse,
    ScriptDeliveryRequest,
    ScriptDeliveryResponse,
)
from app.schemas.setting import GatewayPolicy
from app.services import device_lifecycle
from app.services.device_lifecycle import AccessDecision

PolicyResolver = Callable[[AsyncSession], Awaitable[GatewayPolicy]]

_DENIED_MESSAGES = {
    AccessDecision.PENDING: "Device is pending admin approval",
    AccessDecision.BLOCKED: "Device has been blocked",
    AccessDecision.EXPIRED: "Device access has expired",
}


class DeliveryGateway:
    """
    Registo, consulta de status e entrega do script, compostos a partir do
    store de identidade, da máquina de estados e do registo de scripts.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        users: CRUDUser = default_users,
        devices: CRUDDevice = default_devices,
        scripts: CRUDScript = default_scripts,
        policy_resolver: PolicyResolver = resolve_policy,
    ):
        self.db = db
        self.users = users
        self.devices = devices
        self.scripts = scripts
        self.policy_resolver = policy_resolver

    @staticmethod
    def _normalize(request: DeviceIdentityRequest) -> Tuple[str, str]:
        return normalize_hwid(request.hwid), normalize_fingerprint(request.fingerprint)

    async def register(self, request: DeviceRegisterRequest) -> DeviceRegisterResponse:
        hwid, fingerprint = self._normalize(request)
        owner = await self.users.get_or_create(self.db, identity=request.identity)
        owner_id = owner.id

        existing = await self.devices.find(self.db, owner_id=owner_id, hwid=hwid, fingerprint=fingerprint)
        if existing is None:
            policy = await self.policy_resolver(self.db)
            if not await device_lifecycle.can_register_new_device(self.db, owner_id=owner_id, policy=policy):
                logger.warning(
                    f"Limite de {policy.max_devices_per_user} dispositivo(s) atingido para owner {owner_id}"
                )
                return DeviceRegisterResponse(
                    success=False,
                    status="limit_exceeded",
                    message=f"Device limit reached (max {policy.max_devices_per_user} per user)",
                )
            request_type = await device_lifecycle.request_type_for(self.db, owner_id=owner_id)
            auto_approve = policy.auto_approve_devices
            expires_at = device_lifecycle.expiry_for(policy) if auto_approve else None
        else:
            # Caminho duplicado: a política não é consultada
            request_type = RequestType.NEW
            auto_approve = False
            expires_at = None

        db_device, duplicate = await self.devices.register(
            self.db,
            owner_id=owner_id,
            identity=request.identity,
            hwid=hwid,
            fingerprint=fingerprint,
            metadata=DeviceMetadata(
                display_name=request.device_name,
                browser_info=request.browser_info,
                os_info=request.os_info,
            ),
            auto_approve=auto_approve,
            expires_at=expires_at,
            request_type=request_type,
        )

        if duplicate:
            decision = await device_lifecycle.authorize(self.db, db_device)
            logger.info(
                f"Dispositivo já registado (ID: {db_device.id}, hwid {key_preview(hwid)}), "
                f"status '{db_device.status}'"
            )
            return DeviceRegisterResponse(
                success=True,
                status=device_lifecycle.status_label(decision),
                device_id=db_device.id,
                duplicate=True,
                message="Device already registered",
            )

        return DeviceRegisterResponse(
            success=True,
            status=db_device.status,
            device_id=db_device.id,
            duplicate=False,
            auto_approved=auto_approve,
            message="Device registered and approved" if auto_approve else "Device registered - pending approval",
        )

    async def check_status(self, request: DeviceIdentityRequest) -> DeviceStatusResponse:
        """Nunca cria nada: dispositivo desconhecido é 'not_found'."""
        hwid, fingerprint = self._normalize(request)
        db_device = await self.devices.find_by_identity(
            self.db, identity=request.identity, hwid=hwid, fingerprint=fingerprint
        )
        decision = await device_lifecycle.authorize(self.db, db_device)
        if db_device is None:
            return DeviceStatusResponse(success=False, status="not_found")
        return DeviceStatusResponse(
            success=True,
            status=device_lifecycle.status_label(decision),
            device_id=db_device.id,
            approved_at=db_device.approved_at,
            expires_at=db_device.expires_at,
        )

    async def deliver(self, request: ScriptDeliveryRequest) -> ScriptDeliveryResponse:
        hwid, fingerprint = self._normalize(request)
        db_device = await self.devices.find_by_identity(
            self.db, identity=request.identity, hwid=hwid, fingerprint=fingerprint
        )
        decision = await device_lifecycle.authorize(self.db, db_device)
        if decision == AccessDecision.NOT_FOUND:
            raise NotFoundError("Device not found. Please register first.")
        if decision != AccessDecision.APPROVED:
            raise AccessDeniedError(_DENIED_MESSAGES[decision], reason=decision.value)

        active_script = await self.scripts.get_active(self.db)
        if active_script is None:
            raise UnavailableError("No active script available", reason="no_active_script")

        if not verify_checksum(active_script.payload, active_script.checksum):
            logger.error(
                f"Checksum do script (ID: {active_script.id}, versão '{active_script.version}') "
                f"não confere. Entrega recusada."
            )
            raise IntegrityError("Script integrity check failed")

        await self.devices.record_access(self.db, device=db_device)
        await self.users.touch_last_active(self.db, user_id=db_device.owner_id)
        logger.info(
            f"Script versão '{active_script.version}' entregue ao dispositivo (ID: {db_device.id})"
        )

        payload = active_script.payload
        if request.encrypted:
            payload = encrypt_payload(payload, db_device.aes_key)
        return ScriptDeliveryResponse(
            payload=payload,
            version=active_script.version,
            checksum=active_script.checksum,
            encrypted=request.encrypted,
        )
