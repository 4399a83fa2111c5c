# scriptgate/main.py
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

# --- Imports slowapi (Rate Limiting) ---
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

# --- Imports da Aplicação ---
from app.db.session import dispose_engine
from app.api.endpoints import admin, devices, scripts
from app.api.dependencies import bearer_scheme
from app.core.config import settings
from app.core.exceptions import GatewayError, StorageError
from app.db.base import Base  # noqa - Importar Base para Alembic
# Importar todos os modelos para Base.metadata
from app.models import device, device_request, script_version, system_setting, user  # noqa

# --- Configuração do FastAPI ---
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=not settings.TESTING,
)

app = FastAPI(
    title="ScriptGate",
    description="Licenciamento de dispositivos e entrega de userscripts",
    version="1.0.0",
    openapi_components={
        "securitySchemes": {
            "BearerAuth": bearer_scheme,
        }
    },
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Tratamento de erros ---
def _error_response(status_code: int, reason: str, message: str, **extra) -> JSONResponse:
    content = {"success": False, "reason": reason, "message": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error(f"Falha de armazenamento em '{exc.operation}' {exc.context}: {exc.message}")
    elif exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.reason} - {exc.message}")
    return _error_response(exc.status_code, exc.reason, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    return _error_response(
        status.HTTP_400_BAD_REQUEST, "validation_error", message, errors=errors
    )


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(f"Erro de banco de dados em {request.method} {request.url.path}: {exc}")
    return _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE, "storage_error", "Storage temporarily unavailable"
    )


# --- Registrar Roteadores ---
api_prefix = "/api/v1"

app.include_router(
    devices.router,
    prefix=f"{api_prefix}/devices",
    tags=["Devices"],
)
app.include_router(
    scripts.router,
    prefix=f"{api_prefix}/scripts",
    tags=["Scripts"],
)
app.include_router(
    admin.router,
    prefix=f"{api_prefix}/admin",
    tags=["Admin"],
)
app.include_router(
    scripts.admin_router,
    prefix=f"{api_prefix}/admin/scripts",
    tags=["Admin"],
)


# --- Evento de Shutdown e Rota Raiz ---
@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down: Disposing database engine...")
    await dispose_engine()
    logger.info("Database engine disposed.")


@app.get("/")
def read_root():
    return {"success": True, "message": "ScriptGate is running!"}
