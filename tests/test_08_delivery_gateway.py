# tests/test_08_delivery_gateway.py
from datetime import timedelta

import pytest
from unittest.mock import AsyncMock

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AccessDeniedError, IntegrityError, NotFoundError, UnavailableError
from app.core.security import decrypt_payload
from app.crud.crud_script import script as crud_script
from app.crud.crud_user import user as crud_user
from app.db.base import utc_now
from app.models.device import Device
from app.models.device_request import DeviceApprovalRequest, RequestType
from app.models.script_version import ScriptVersion
from app.schemas.device import DeviceIdentityRequest, DeviceRegisterRequest, ScriptDeliveryRequest
from app.schemas.setting import GatewayPolicy
from app.services import device_lifecycle
from app.services.gateway import DeliveryGateway

pytestmark = pytest.mark.asyncio

MANUAL = GatewayPolicy(max_devices_per_user=3, auto_approve_devices=False, device_expiry_days=30)
AUTO = GatewayPolicy(max_devices_per_user=3, auto_approve_devices=True, device_expiry_days=30)
SCRIPT = "// ==UserScript==\n// @name demo\n// ==/UserScript==\nconsole.log('ok');"


def _gateway(db: AsyncSession, policy: GatewayPolicy = MANUAL) -> DeliveryGateway:
    return DeliveryGateway(db, policy_resolver=AsyncMock(return_value=policy))


def _register_request(hwid: str = "H1", fingerprint: str = "F1", identity: str = "a@x.com") -> DeviceRegisterRequest:
    return DeviceRegisterRequest(identity=identity, hwid=hwid, fingerprint=fingerprint)


def _delivery_request(hwid: str = "H1", fingerprint: str = "F1", encrypted: bool = False) -> ScriptDeliveryRequest:
    return ScriptDeliveryRequest(identity="a@x.com", hwid=hwid, fingerprint=fingerprint, encrypted=encrypted)


async def _activate_script(db: AsyncSession, payload: str = SCRIPT) -> ScriptVersion:
    db_script = await crud_script.upload(db, version="1.0.0", payload=payload)
    return await crud_script.activate(db, script_id=db_script.id)


async def _device_count(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(Device.id)))
    return result.scalar_one()


async def test_register_new_device_pending(db_session: AsyncSession):
    response = await _gateway(db_session).register(_register_request())
    assert response.success is True
    assert response.status == "pending"
    assert response.device_id is not None
    assert response.duplicate is False
    assert response.auto_approved is False


async def test_register_with_auto_approve(db_session: AsyncSession):
    response = await _gateway(db_session, AUTO).register(_register_request())
    assert response.status == "active"
    assert response.auto_approved is True

    result = await db_session.execute(select(DeviceApprovalRequest))
    assert result.scalars().all() == []


async def test_reregistration_is_idempotent(db_session: AsyncSession):
    gateway = _gateway(db_session)
    first = await gateway.register(_register_request())
    second = await gateway.register(_register_request())
    assert second.duplicate is True
    assert second.device_id == first.device_id
    assert second.status == "pending"
    assert await _device_count(db_session) == 1


async def test_long_identifiers_are_normalized_consistently(db_session: AsyncSession):
    gateway = _gateway(db_session)
    long_fp = "canvas:" + "x" * 5000
    first = await gateway.register(_register_request(fingerprint=long_fp))
    second = await gateway.register(_register_request(fingerprint=long_fp))
    assert second.device_id == first.device_id

    stored = await db_session.get(Device, first.device_id)
    assert len(stored.fingerprint) == 64


async def test_over_limit_registration(db_session: AsyncSession):
    policy = GatewayPolicy(max_devices_per_user=1, auto_approve_devices=False, device_expiry_days=30)
    gateway = _gateway(db_session, policy)
    first = await gateway.register(_register_request(hwid="H1"))
    await device_lifecycle.approve_device(db_session, device_id=first.device_id, policy=policy)

    response = await gateway.register(_register_request(hwid="H2"))
    assert response.success is False
    assert response.status == "limit_exceeded"
    assert response.device_id is None
    assert await _device_count(db_session) == 1


async def test_lapsed_device_frees_its_slot(db_session: AsyncSession):
    policy = GatewayPolicy(max_devices_per_user=1, auto_approve_devices=False, device_expiry_days=30)
    gateway = _gateway(db_session, policy)
    first = await gateway.register(_register_request(hwid="H1"))
    await device_lifecycle.approve_device(db_session, device_id=first.device_id, policy=policy)
    await db_session.execute(
        update(Device).where(Device.id == first.device_id).values(expires_at=utc_now() - timedelta(days=1))
    )
    await db_session.commit()

    response = await gateway.register(_register_request(hwid="H2"))
    assert response.success is True
    assert response.status == "pending"
    assert await _device_count(db_session) == 2


async def test_known_device_is_exempt_from_limit(db_session: AsyncSession):
    policy = GatewayPolicy(max_devices_per_user=1, auto_approve_devices=False, device_expiry_days=30)
    gateway = _gateway(db_session, policy)
    first = await gateway.register(_register_request())
    again = await gateway.register(_register_request())
    assert again.duplicate is True
    assert again.device_id == first.device_id


async def test_second_device_of_active_owner_is_a_replace_request(db_session: AsyncSession):
    gateway = _gateway(db_session)
    first = await gateway.register(_register_request(hwid="H1"))
    await device_lifecycle.approve_device(db_session, device_id=first.device_id, policy=MANUAL)

    second = await gateway.register(_register_request(hwid="H2"))
    result = await db_session.execute(
        select(DeviceApprovalRequest).where(DeviceApprovalRequest.device_id == second.device_id)
    )
    assert result.scalars().one().request_type == RequestType.REPLACE.value


async def test_check_status_never_creates(db_session: AsyncSession):
    response = await _gateway(db_session).check_status(
        DeviceIdentityRequest(identity="nobody", hwid="H1", fingerprint="F1")
    )
    assert response.success is False
    assert response.status == "not_found"
    assert await crud_user.get_by_identity(db_session, identity="nobody") is None
    assert await _device_count(db_session) == 0


async def test_manual_approval_scenario(db_session: AsyncSession):
    gateway = _gateway(db_session)
    registered = await gateway.register(_register_request())
    assert registered.status == "pending"

    status_request = DeviceIdentityRequest(identity="a@x.com", hwid="H1", fingerprint="F1")
    assert (await gateway.check_status(status_request)).status == "pending"

    await device_lifecycle.approve_device(db_session, device_id=registered.device_id, policy=MANUAL)
    status_response = await gateway.check_status(status_request)
    assert status_response.status == "active"
    assert status_response.expires_at is not None

    db_script = await _activate_script(db_session)
    delivered = await gateway.deliver(_delivery_request())
    assert delivered.payload == SCRIPT
    assert delivered.checksum == db_script.checksum
    assert delivered.version == "1.0.0"

    stored = await db_session.get(Device, registered.device_id)
    assert stored.usage_count == 1


async def test_deliver_unknown_device(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await _gateway(db_session).deliver(_delivery_request())


@pytest.mark.parametrize("action", ["pending", "blocked"])
async def test_deliver_denied_without_payload(db_session: AsyncSession, action):
    gateway = _gateway(db_session)
    registered = await gateway.register(_register_request())
    if action == "blocked":
        await device_lifecycle.block_device(db_session, device_id=registered.device_id)
    await _activate_script(db_session)

    with pytest.raises(AccessDeniedError) as excinfo:
        await gateway.deliver(_delivery_request())
    assert excinfo.value.reason == action
    assert excinfo.value.status_code == 403


async def test_deliver_without_active_script(db_session: AsyncSession):
    gateway = _gateway(db_session, AUTO)
    await gateway.register(_register_request())
    with pytest.raises(UnavailableError) as excinfo:
        await gateway.deliver(_delivery_request())
    assert excinfo.value.reason == "no_active_script"


async def test_deliver_refuses_corrupted_payload(db_session: AsyncSession):
    gateway = _gateway(db_session, AUTO)
    registered = await gateway.register(_register_request())
    db_script = await _activate_script(db_session)
    await db_session.execute(
        update(ScriptVersion).where(ScriptVersion.id == db_script.id).values(payload="tampered")
    )
    await db_session.commit()

    with pytest.raises(IntegrityError):
        await gateway.deliver(_delivery_request())
    stored = await db_session.get(Device, registered.device_id)
    assert stored.usage_count == 0


async def test_encrypted_delivery_uses_device_key(db_session: AsyncSession):
    gateway = _gateway(db_session, AUTO)
    registered = await gateway.register(_register_request())
    await _activate_script(db_session)

    delivered = await gateway.deliver(_delivery_request(encrypted=True))
    assert delivered.encrypted is True
    assert delivered.payload != SCRIPT

    stored = await db_session.get(Device, registered.device_id)
    assert decrypt_payload(delivered.payload, stored.aes_key) == SCRIPT
