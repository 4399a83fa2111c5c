# scriptgate/app/schemas/setting.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class GatewayPolicy(BaseModel):
    """Política efetiva, já resolvida (env -> banco -> padrão)."""
    model_config = ConfigDict(populate_by_name=True)

    max_devices_per_user: int = Field(alias="maxDevicesPerUser")
    auto_approve_devices: bool = Field(alias="autoApproveDevices")
    device_expiry_days: int = Field(alias="deviceExpiryDays")


class GatewaySettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_devices_per_user: Optional[int] = Field(default=None, ge=1, alias="maxDevicesPerUser")
    auto_approve_devices: Optional[bool] = Field(default=None, alias="autoApproveDevices")
    device_expiry_days: Optional[int] = Field(default=None, ge=0, alias="deviceExpiryDays")
    token: Optional[str] = None


class GatewaySettingsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    settings: GatewayPolicy
