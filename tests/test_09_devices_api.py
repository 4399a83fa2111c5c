# tests/test_09_devices_api.py
import pytest
from httpx import AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud import crud_setting
from app.models.device import Device

pytestmark = pytest.mark.asyncio

DEVICE = {"identity": "a@x.com", "hwid": "H1", "fingerprint": "F1"}
SCRIPT = "// ==UserScript==\nconsole.log('delivered');"


async def _upload_and_activate(async_client: AsyncClient, admin_headers: dict, payload: str = SCRIPT) -> dict:
    upload = await async_client.post(
        "/api/v1/admin/scripts",
        json={"version": "1.0.0", "payload": payload, "notes": "initial"},
        headers=admin_headers,
    )
    assert upload.status_code == 201, upload.text
    script_id = upload.json()["script"]["id"]
    activated = await async_client.post(f"/api/v1/admin/scripts/{script_id}/activate", headers=admin_headers)
    assert activated.status_code == 200, activated.text
    return activated.json()["script"]


async def test_root_health(async_client: AsyncClient):
    response = await async_client.get("/")
    assert response.status_code == 200
    assert response.json()["success"] is True


async def test_register_device(async_client: AsyncClient):
    response = await async_client.post(
        "/api/v1/devices/register",
        json={**DEVICE, "deviceName": "Laptop", "browserInfo": "Firefox", "osInfo": "Linux"},
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "pending"
    assert data["deviceId"] is not None
    assert data["duplicate"] is False
    assert data["autoApproved"] is False


async def test_register_accepts_legacy_username_field(async_client: AsyncClient):
    response = await async_client.post(
        "/api/v1/devices/register", json={"username": "legacy", "hwid": "H1", "fingerprint": "F1"}
    )
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "pending"


@pytest.mark.parametrize("missing", ["identity", "hwid", "fingerprint"])
async def test_register_rejects_missing_fields(async_client: AsyncClient, missing):
    payload = {k: v for k, v in DEVICE.items() if k != missing}
    response = await async_client.post("/api/v1/devices/register", json=payload)
    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["reason"] == "validation_error"


async def test_register_rejects_oversized_hwid(async_client: AsyncClient):
    response = await async_client.post("/api/v1/devices/register", json={**DEVICE, "hwid": "h" * 501})
    assert response.status_code == 400
    assert response.json()["reason"] == "validation_error"


async def test_over_limit_returns_409(async_client: AsyncClient, db_session: AsyncSession):
    await crud_setting.set_setting(db_session, key="max_devices_per_user", value="1", value_type="number")
    first = await async_client.post("/api/v1/devices/register", json=DEVICE)
    assert first.status_code == 200

    second = await async_client.post("/api/v1/devices/register", json={**DEVICE, "hwid": "H2"})
    assert second.status_code == 409
    data = second.json()
    assert data["success"] is False
    assert data["status"] == "limit_exceeded"


async def test_status_unknown_device(async_client: AsyncClient):
    response = await async_client.post("/api/v1/devices/status", json=DEVICE)
    assert response.status_code == 200
    assert response.json() == {
        "success": False,
        "status": "not_found",
        "deviceId": None,
        "approvedAt": None,
        "expiresAt": None,
    }


async def test_full_manual_approval_flow(async_client: AsyncClient, admin_headers: dict):
    registered = (await async_client.post("/api/v1/devices/register", json=DEVICE)).json()
    device_id = registered["deviceId"]

    status_response = await async_client.post("/api/v1/devices/status", json=DEVICE)
    assert status_response.json()["status"] == "pending"

    denied = await async_client.post("/api/v1/devices/script", json=DEVICE)
    assert denied.status_code == 403
    assert denied.json()["reason"] == "pending"
    assert "payload" not in denied.json()

    approved = await async_client.post(f"/api/v1/admin/devices/{device_id}/approve", headers=admin_headers)
    assert approved.status_code == 200, approved.text
    assert approved.json()["status"] == "active"
    assert approved.json()["changed"] is True

    status_response = await async_client.post("/api/v1/devices/status", json=DEVICE)
    assert status_response.json()["status"] == "active"
    assert status_response.json()["expiresAt"] is not None

    active_script = await _upload_and_activate(async_client, admin_headers)
    delivered = await async_client.post("/api/v1/devices/script", json=DEVICE)
    assert delivered.status_code == 200, delivered.text
    data = delivered.json()
    assert data["success"] is True
    assert data["payload"] == SCRIPT
    assert data["checksum"] == active_script["checksum"]
    assert data["version"] == "1.0.0"


async def test_blocked_device_gets_no_payload(async_client: AsyncClient, admin_headers: dict):
    device_id = (await async_client.post("/api/v1/devices/register", json=DEVICE)).json()["deviceId"]
    blocked = await async_client.post(
        f"/api/v1/admin/devices/{device_id}/block", json={"reason": "abuse"}, headers=admin_headers
    )
    assert blocked.json()["status"] == "blocked"
    await _upload_and_activate(async_client, admin_headers)

    response = await async_client.post("/api/v1/devices/script", json=DEVICE)
    assert response.status_code == 403
    assert response.json() == {"success": False, "reason": "blocked", "message": "Device has been blocked"}


async def test_script_for_unknown_device(async_client: AsyncClient):
    response = await async_client.post("/api/v1/devices/script", json=DEVICE)
    assert response.status_code == 404
    assert response.json()["reason"] == "not_found"


async def test_no_active_script(async_client: AsyncClient, admin_headers: dict):
    device_id = (await async_client.post("/api/v1/devices/register", json=DEVICE)).json()["deviceId"]
    await async_client.post(f"/api/v1/admin/devices/{device_id}/approve", headers=admin_headers)

    response = await async_client.post("/api/v1/devices/script", json=DEVICE)
    assert response.status_code == 503
    assert response.json()["reason"] == "no_active_script"

    meta = await async_client.get("/api/v1/scripts/active/meta")
    assert meta.status_code == 503


async def test_corrupted_script_is_not_delivered(
    async_client: AsyncClient, admin_headers: dict, db_session: AsyncSession
):
    from app.models.script_version import ScriptVersion

    device_id = (await async_client.post("/api/v1/devices/register", json=DEVICE)).json()["deviceId"]
    await async_client.post(f"/api/v1/admin/devices/{device_id}/approve", headers=admin_headers)
    active_script = await _upload_and_activate(async_client, admin_headers)
    await db_session.execute(
        update(ScriptVersion).where(ScriptVersion.id == active_script["id"]).values(payload="evil()")
    )
    await db_session.commit()

    response = await async_client.post("/api/v1/devices/script", json=DEVICE)
    assert response.status_code == 500
    assert response.json()["reason"] == "integrity_error"
    assert "payload" not in response.json()


async def test_expired_device_is_denied(
    async_client: AsyncClient, admin_headers: dict, db_session: AsyncSession
):
    from datetime import timedelta
    from app.db.base import utc_now

    device_id = (await async_client.post("/api/v1/devices/register", json=DEVICE)).json()["deviceId"]
    await async_client.post(f"/api/v1/admin/devices/{device_id}/approve", headers=admin_headers)
    await db_session.execute(
        update(Device).where(Device.id == device_id).values(expires_at=utc_now() - timedelta(hours=1))
    )
    await db_session.commit()
    await _upload_and_activate(async_client, admin_headers)

    status_response = await async_client.post("/api/v1/devices/status", json=DEVICE)
    assert status_response.json()["status"] == "expired"
    response = await async_client.post("/api/v1/devices/script", json=DEVICE)
    assert response.status_code == 403
    assert response.json()["reason"] == "expired"


async def test_active_script_meta(async_client: AsyncClient, admin_headers: dict):
    await _upload_and_activate(async_client, admin_headers)
    response = await async_client.get("/api/v1/scripts/active/meta")
    assert response.status_code == 200
    data = response.json()
    assert data["version"] == "1.0.0"
    assert data["fileSize"] == len(SCRIPT.encode("utf-8"))
    assert data["updateNotes"] == "initial"
    assert "payload" not in data
