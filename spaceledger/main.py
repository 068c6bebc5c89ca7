from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from spaceledger.api.routes import catalog, customers, health, invoices, payments, subscriptions
from spaceledger.core.config import settings
from spaceledger.core.errors import (
    InvalidAmount,
    InvalidSubscription,
    InvalidTransition,
    InvoiceNotEditable,
    LedgerError,
    NotFound,
    PaymentNotEditable,
    SequenceConflict,
    StorageUnavailable,
)
from spaceledger.core.logging_setup import logger
from spaceledger.db.session import init_db
from spaceledger.schemas.common import ErrorRead

ERROR_STATUS: dict[type[LedgerError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidTransition: status.HTTP_409_CONFLICT,
    SequenceConflict: status.HTTP_409_CONFLICT,
    InvoiceNotEditable: status.HTTP_409_CONFLICT,
    PaymentNotEditable: status.HTTP_409_CONFLICT,
    InvalidAmount: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidSubscription: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncGenerator[None, None]:
    init_db()
    yield


def _normalize_origin(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = value.strip().rstrip("/")
    return cleaned or None


def _error_response(exc: LedgerError | StorageUnavailable, status_code: int) -> JSONResponse:
    body = ErrorRead(detail=str(exc), error=exc.kind, context=exc.details)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.kind, exc)
    return _error_response(exc, status_code)


async def storage_unavailable_handler(request: Request, exc: StorageUnavailable) -> JSONResponse:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return _error_response(exc, status.HTTP_503_SERVICE_UNAVAILABLE)


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.project_name,
        debug=settings.debug,
        lifespan=lifespan,
    )

    origins: list[str] = []
    for item in settings.allowed_origins:
        normalized = _normalize_origin(item)
        if normalized and normalized not in origins:
            origins.append(normalized)

    logger.info("CORS configured with origins: %s", origins)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(LedgerError, ledger_error_handler)
    application.add_exception_handler(StorageUnavailable, storage_unavailable_handler)

    application.include_router(health.router, prefix="/health")
    application.include_router(customers.router, prefix=settings.api_v1_str)
    application.include_router(catalog.router, prefix=settings.api_v1_str)
    application.include_router(subscriptions.router, prefix=settings.api_v1_str)
    application.include_router(payments.router, prefix=settings.api_v1_str)
    application.include_router(invoices.router, prefix=settings.api_v1_str)

    @application.get("/")
    def root():
        return {"service": settings.project_name}

    logger.info("SpaceLedger API initialised")
    return application


app = create_app()
