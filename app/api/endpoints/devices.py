# scriptgate/app/api/endpoints/devices.py
from typing import Any

from fastapi import APIRouter, Depends, Response, status

from app.api.dependencies import get_gateway
from app.schemas.device import (
    DeviceIdentityRequest,
    DeviceRegisterRequest,
    DeviceRegisterResponse,
    DeviceStatusResponse,
    ScriptDeliveryRequest,
    ScriptDeliveryResponse,
)
from app.services.gateway import DeliveryGateway

router = APIRouter()


@router.post(
    "/register",
    response_model=DeviceRegisterResponse,
    responses={
        200: {"description": "Dispositivo registado (novo ou já existente)"},
        409: {"description": "Limite de dispositivos do utilizador atingido", "model": DeviceRegisterResponse},
    },
)
async def register_device(
    request_in: DeviceRegisterRequest,
    response: Response,
    gateway: DeliveryGateway = Depends(get_gateway),
) -> Any:
    result = await gateway.register(request_in)
    if result.status == "limit_exceeded":
        response.status_code = status.HTTP_409_CONFLICT
    return result


@router.post("/status", response_model=DeviceStatusResponse)
async def check_device_status(
    request_in: DeviceIdentityRequest,
    gateway: DeliveryGateway = Depends(get_gateway),
) -> Any:
    return await gateway.check_status(request_in)


@router.post(
    "/script",
    response_model=ScriptDeliveryResponse,
    responses={
        403: {"description": "Dispositivo pendente, bloqueado ou expirado"},
        404: {"description": "Dispositivo não encontrado"},
        503: {"description": "Nenhum script ativo"},
    },
)
async def deliver_script(
    request_in: ScriptDeliveryRequest,
    gateway: DeliveryGateway = Depends(get_gateway),
) -> Any:
    return await gateway.deliver(request_in)
