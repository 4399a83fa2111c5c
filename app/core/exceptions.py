# scriptgate/app/core/exceptions.py
from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Erro base: vira uma resposta {success: false, reason, message}."""
    status_code: int = 400
    reason: str = "error"

    def __init__(self, message: str, *, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if reason:
            self.reason = reason


class ValidationError(GatewayError):
    status_code = 400
    reason = "validation_error"


class AuthError(GatewayError):
    status_code = 401
    reason = "unauthorized"


class NotFoundError(GatewayError):
    status_code = 404
    reason = "not_found"


class ConflictError(GatewayError):
    status_code = 409
    reason = "conflict"


class IntegrityError(GatewayError):
    """Checksum do payload não confere. Nunca entregar o payload."""
    status_code = 500
    reason = "integrity_error"


class StorageError(GatewayError):
    status_code = 503
    reason = "storage_error"

    def __init__(self, message: str, *, operation: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.operation = operation
        self.context = context or {}


class AccessDeniedError(GatewayError):
    """Dispositivo conhecido mas sem acesso (pending/blocked/expired)."""
    status_code = 403
    reason = "access_denied"


class UnavailableError(GatewayError):
    """Nada para servir agora (ex: nenhum script ativo). Não é falha do sistema."""
    status_code = 503
    reason = "unavailable"
