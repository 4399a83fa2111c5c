from app.models.user import User  # noqa F401
from app.models.device import Device, DeviceStatus  # noqa F401
from app.models.device_request import DeviceApprovalRequest, RequestStatus, RequestType  # noqa F401
from app.models.script_version import ScriptVersion  # noqa F401
from app.models.system_setting import SystemSetting  # noqa F401
