# scriptgate/app/api/dependencies.py
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import security
from app.core.exceptions import AuthError
from app.crud.crud_setting import resolve_policy
from app.db.session import get_db
from app.schemas.setting import GatewayPolicy
from app.services.gateway import DeliveryGateway

# Aceita 'Authorization: Bearer <token>'; sem header, procura 'token' no corpo JSON
bearer_scheme = HTTPBearer(
    auto_error=False,
    description="Token de sessão do administrador (obtido em /api/v1/admin/login)",
)


async def _token_from_body(request: Request) -> Optional[str]:
    if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
        return None
    try:
        body = await request.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("token"), str):
        return body["token"]
    return None


async def get_admin_session(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """Valida o token de administrador e retorna os seus claims."""
    # HTTPBearer com auto_error=False devolve None para esquemas que não são Bearer
    token = creds.credentials if creds is not None else await _token_from_body(request)

    if not token:
        raise AuthError("Admin token required", reason="token_required")

    payload = security.decode_admin_token(token)
    if payload is None:
        raise AuthError("Invalid or expired admin token", reason="invalid_token")
    return payload


async def get_policy(db: AsyncSession = Depends(get_db)) -> GatewayPolicy:
    return await resolve_policy(db)


async def get_gateway(db: AsyncSession = Depends(get_db)) -> DeliveryGateway:
    return DeliveryGateway(db)


def get_client_details(request: Request) -> Dict[str, Optional[str]]:
    """Extrai IP (respeitando X-Forwarded-For) e User-Agent do request."""
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (
        request.client.host if request.client else None
    )
    return {"ip_address": ip_address, "user_agent": request.headers.get("user-agent")}
