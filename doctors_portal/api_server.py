"""FastAPI server for the doctors portal.

Features:
- Treatment availability (application join and database join)
- Booking admission with duplicate protection
- Users, admin promotion and the doctor roster
- Stripe payment intents and payment recording
- Global exception handling and structured logging

Storage work runs in the thread pool: each call is one transaction that
finishes (commit or rollback) even if the client goes away.

Usage:
    uvicorn doctors_portal.api_server:app --port 5000
"""
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from doctors_portal.admission import InvalidBookingError
from doctors_portal.api.dependencies import (
    get_current_identity,
    get_portal,
    get_settings,
    require_admin,
    require_subject,
    reset_portal,
)
from doctors_portal.api.models import (
    AccessToken,
    AdminStatus,
    BookingDecision,
    BookingOut,
    BookingRequest,
    DeletionResult,
    DoctorIn,
    DoctorOut,
    ErrorResponse,
    PaymentIn,
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentRecorded,
    PromotionResult,
    TreatmentAvailability,
    UserIn,
    UserOut,
    UserRegistration,
)
from doctors_portal.auth import Identity
from doctors_portal.catalog import DuplicateTreatmentError
from doctors_portal.config import Settings
from doctors_portal.database import close_storage
from doctors_portal.doctors import DuplicateDoctorError
from doctors_portal.errors import ForbiddenError, NotFoundError, StorageUnavailableError
from doctors_portal.logging_config import RequestIDMiddleware, get_logger, setup_structured_logging
from doctors_portal.payments import AlreadyPaidError, PaymentProviderError
from doctors_portal.portal import Portal

settings = get_settings()
setup_structured_logging(settings.log_level)
logger = get_logger(__name__)

SERVICE_NAME = "doctors-portal-api"
SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    logger.info("server_starting")

    try:
        portal = get_portal()
        await run_in_threadpool(portal.storage.init_database)
        logger.info("database_initialized")
    except Exception as e:
        logger.error("database_initialization_failed", error=str(e))
        raise

    yield

    close_storage()
    reset_portal()
    logger.info("server_stopped")


app = FastAPI(
    title="Doctors Portal API",
    description="Appointment options, bookings, users, doctors and payments for a clinic portal",
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)


def install_middleware(app: FastAPI, settings: Settings) -> None:
    """CORS for the configured origins, plus request IDs."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)


install_middleware(app, settings)


def _error(status_code: int, error: str, detail: str, code: str, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, code=code).model_dump(),
        headers=headers,
    )


# Global exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors consistently."""
    logger.warning("validation_error", errors=str(exc.errors()))
    return _error(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error", str(exc.errors()), "VALIDATION_ERROR"
    )


HTTP_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Gate and routing errors in the common error shape (headers kept)."""
    return _error(
        exc.status_code,
        HTTPStatus(exc.status_code).phrase,
        str(exc.detail),
        HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(InvalidBookingError)
async def invalid_booking_handler(request: Request, exc: InvalidBookingError):
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid Booking", str(exc), "INVALID_BOOKING")


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, "Not Found", str(exc), "NOT_FOUND")


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError):
    return _error(status.HTTP_403_FORBIDDEN, "Forbidden", str(exc), "FORBIDDEN")


@app.exception_handler(DuplicateDoctorError)
async def duplicate_doctor_handler(request: Request, exc: DuplicateDoctorError):
    return _error(status.HTTP_409_CONFLICT, "Duplicate Doctor", str(exc), "DUPLICATE_DOCTOR")


@app.exception_handler(DuplicateTreatmentError)
async def duplicate_treatment_handler(request: Request, exc: DuplicateTreatmentError):
    return _error(status.HTTP_409_CONFLICT, "Duplicate Treatment", str(exc), "DUPLICATE_TREATMENT")


@app.exception_handler(AlreadyPaidError)
async def already_paid_handler(request: Request, exc: AlreadyPaidError):
    return _error(status.HTTP_409_CONFLICT, "Already Paid", str(exc), "ALREADY_PAID")


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    """Storage timeouts are retryable, never an empty result."""
    logger.error("storage_unavailable", error=str(exc))
    return _error(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Storage Unavailable",
        str(exc),
        "STORAGE_UNAVAILABLE",
        headers={"Retry-After": str(exc.retry_after)},
    )


@app.exception_handler(PaymentProviderError)
async def payment_provider_handler(request: Request, exc: PaymentProviderError):
    logger.error("payment_provider_failure", error=str(exc))
    return _error(status.HTTP_502_BAD_GATEWAY, "Upstream Failure", str(exc), "UPSTREAM_FAILURE")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.error("unexpected_error", error=str(exc), exc_info=True)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_ERROR",
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API info."""
    return {
        "message": "doctors portal server running",
        "docs": "/docs",
        "health": "/health"
    }


# Appointment options

@app.get(
    "/appointmentOptions",
    tags=["Availability"],
    response_model=List[TreatmentAvailability],
)
async def appointment_options(
    date: Optional[str] = Query(None, description="Appointment date (equality match)"),
    portal: Portal = Depends(get_portal),
):
    """Remaining slots per treatment on ``date`` (joined in the application)."""
    return await run_in_threadpool(portal.availability.resolve, date)


@app.get(
    "/v2/appointmentOptions",
    tags=["Availability"],
    response_model=List[TreatmentAvailability],
)
async def appointment_options_v2(
    date: Optional[str] = Query(None, description="Appointment date (equality match)"),
    portal: Portal = Depends(get_portal),
):
    """Remaining slots per treatment on ``date`` (joined by the database)."""
    return await run_in_threadpool(portal.availability.resolve_in_storage, date)


# Bookings

@app.get("/bookings", tags=["Bookings"], response_model=List[BookingOut])
async def patient_bookings(
    email: str = Query(..., min_length=1),
    identity: Identity = Depends(get_current_identity),
    portal: Portal = Depends(get_portal),
):
    """All bookings of the authenticated patient."""
    require_subject(identity, email)
    return await run_in_threadpool(portal.ledger.bookings_for, email)


@app.get("/bookings/{booking_id}", tags=["Bookings"], response_model=BookingOut)
async def booking_detail(booking_id: str, portal: Portal = Depends(get_portal)):
    """
    One booking by id.

    Public so the payment page can be opened from a direct link.
    """
    return await run_in_threadpool(portal.ledger.get, booking_id)


@app.post(
    "/bookings",
    tags=["Bookings"],
    response_model=BookingDecision,
    response_model_exclude_none=True,
)
async def submit_booking(
    request: BookingRequest,
    identity: Identity = Depends(get_current_identity),
    portal: Portal = Depends(get_portal),
):
    """
    Admit a booking.

    A duplicate (same patient, date and treatment) is a 200 with
    ``accepted: false`` and a reason, not an HTTP error.
    """
    require_subject(identity, str(request.email))
    return await run_in_threadpool(portal.admission.submit, request)


# Users

@app.post("/users", tags=["Users"], response_model=UserRegistration)
async def register_user(payload: UserIn, portal: Portal = Depends(get_portal)):
    """Create the user on first login; re-registering is harmless."""
    return await run_in_threadpool(portal.users.register, payload)


@app.get("/users/admin/{email}", tags=["Users"], response_model=AdminStatus)
async def admin_status(email: str, portal: Portal = Depends(get_portal)):
    is_admin = await run_in_threadpool(portal.users.is_admin, email)
    return AdminStatus(is_admin=is_admin)


@app.get("/users", tags=["Users"], response_model=List[UserOut])
async def list_users(
    identity: Identity = Depends(require_admin),
    portal: Portal = Depends(get_portal),
):
    return await run_in_threadpool(portal.users.list_users)


@app.put("/users/admin/{user_id}", tags=["Users"], response_model=PromotionResult)
async def promote_user(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    portal: Portal = Depends(get_portal),
):
    """Elevate a user to admin. The caller must already be an admin."""
    return await run_in_threadpool(portal.users.promote, identity.email, user_id)


# Doctors

@app.get("/doctors", tags=["Doctors"], response_model=List[DoctorOut])
async def list_doctors(
    identity: Identity = Depends(require_admin),
    portal: Portal = Depends(get_portal),
):
    return await run_in_threadpool(portal.doctors.list_doctors)


@app.post(
    "/doctors",
    tags=["Doctors"],
    response_model=DoctorOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_doctor(
    payload: DoctorIn,
    identity: Identity = Depends(require_admin),
    portal: Portal = Depends(get_portal),
):
    return await run_in_threadpool(portal.doctors.add, payload)


@app.delete("/doctors/{doctor_id}", tags=["Doctors"], response_model=DeletionResult)
async def remove_doctor(
    doctor_id: str,
    identity: Identity = Depends(require_admin),
    portal: Portal = Depends(get_portal),
):
    return await run_in_threadpool(portal.doctors.remove, doctor_id)


# Payments

@app.post(
    "/create-payment-intent",
    tags=["Payments"],
    response_model=PaymentIntentResponse,
)
async def create_payment_intent(
    payload: PaymentIntentRequest,
    identity: Identity = Depends(get_current_identity),
    portal: Portal = Depends(get_portal),
):
    """Create a Stripe payment intent and return its client secret."""
    client_secret = await run_in_threadpool(portal.payment_gateway.create_intent, payload.price)
    return PaymentIntentResponse(client_secret=client_secret)


@app.post("/payments", tags=["Payments"], response_model=PaymentRecorded)
async def record_payment(
    payload: PaymentIn,
    identity: Identity = Depends(get_current_identity),
    portal: Portal = Depends(get_portal),
):
    """Record a payment and mark its booking as paid (404 if the booking is gone)."""
    require_subject(identity, str(payload.email))
    return await run_in_threadpool(portal.payments.record, payload)


# Credentials

@app.get("/jwt", tags=["Auth"], response_model=AccessToken)
async def issue_token(
    email: str = Query(..., min_length=1),
    portal: Portal = Depends(get_portal),
):
    """Issue an access token for a known user; unknown emails get 403."""
    if not await run_in_threadpool(portal.users.exists, email):
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"accessToken": ""},
        )
    return AccessToken(access_token=portal.credentials.issue(email))
