from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from chantier_billing.api.deps import reset_services
from chantier_billing.api.v1.api import api_router
from chantier_billing.core.config import settings
from chantier_billing.core.exceptions import (
    BillingError,
    ConcurrentUpdateError,
    ConnectivityBlockedError,
    InvalidInvoiceStateError,
    InvoiceNotFoundError,
    NoActiveScheduleError,
    OverpaymentError,
    PermissionDeniedError,
    ScheduleAlreadyExistsError,
)
from chantier_billing.core.logging import get_logger, setup_logging
from chantier_billing.db.mongo import close_mongo_connection, connect_to_mongo
from chantier_billing.utils.payment_validation import PaymentValidationError

logger = get_logger(__name__)

# Most specific first
ERROR_STATUS = [
    (NoActiveScheduleError, status.HTTP_404_NOT_FOUND),
    (InvoiceNotFoundError, status.HTTP_404_NOT_FOUND),
    (ScheduleAlreadyExistsError, status.HTTP_409_CONFLICT),
    (InvalidInvoiceStateError, status.HTTP_409_CONFLICT),
    (OverpaymentError, status.HTTP_409_CONFLICT),
    (ConcurrentUpdateError, status.HTTP_409_CONFLICT),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ConnectivityBlockedError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: BillingError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def startup():
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    if settings.STORE_BACKEND == "mongo":
        await connect_to_mongo()
    logger.info("%s started (store=%s)", settings.PROJECT_NAME, settings.STORE_BACKEND)


async def shutdown():
    reset_services()
    await close_mongo_connection()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup()
    try:
        yield
    finally:
        await shutdown()


app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.DESCRIPTION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(PaymentValidationError)
async def validation_error_handler(request: Request, exc: PaymentValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    code = status_for(exc)
    if code >= 500:
        logger.error("Unhandled billing error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": str(exc)})


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME}"}

app.include_router(api_router, prefix=settings.API_V1_STR)
