"""Pydantic models for API request/response validation.

Wire format is camelCase (``appointmentDate``, ``timeSlot``); Python code
uses snake_case attribute names.
"""
from datetime import datetime
from typing import Annotated, List, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel


def normalize_email(email: str) -> str:
    """Canonical (lowercased) form used for every email lookup and comparison."""
    return email.strip().lower()


Email = Annotated[EmailStr, AfterValidator(normalize_email)]


class CamelModel(BaseModel):
    """Base model serializing to camelCase and accepting either spelling."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TreatmentOptionIn(CamelModel):
    """Catalog entry payload used by admin tooling."""
    name: str = Field(..., min_length=1, max_length=200, description="Unique treatment name")
    price: float = Field(..., ge=0, description="Price (0 or positive)")
    slots: List[str] = Field(
        ...,
        min_length=1,
        description="Ordered slot labels, e.g. '10.00 AM - 10.30 AM'"
    )


class TreatmentAvailability(CamelModel):
    """A treatment with the slots still open on the requested date."""
    id: str
    name: str
    price: float
    slots: List[str] = Field(default_factory=list, description="Remaining slots in catalog order")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "opt-3f2a",
                "name": "Teeth Cleaning",
                "price": 45.0,
                "slots": ["08.00 AM - 08.30 AM", "09.00 AM - 09.30 AM"]
            }
        }
    )


class BookingRequest(CamelModel):
    """Request schema for POST /bookings."""
    email: Email = Field(..., description="Patient email")
    treatment_id: Optional[str] = Field(None, description="Canonical treatment id")
    treatment: Optional[str] = Field(None, description="Treatment name")
    appointment_date: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Appointment date, matched by equality (e.g. 'Jan 1, 2024')"
    )
    time_slot: str = Field(..., min_length=1, max_length=100)
    patient_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    price: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def require_treatment_reference(self):
        """Either treatmentId or treatment (name) must be present."""
        if not (self.treatment_id or self.treatment):
            raise ValueError("treatmentId or treatment is required")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "treatmentId": "opt-3f2a",
                "treatment": "Teeth Cleaning",
                "appointmentDate": "Jan 1, 2024",
                "email": "patient@example.com",
                "timeSlot": "08.00 AM - 08.30 AM",
                "patientName": "Jane Doe",
                "phone": "555-0100",
                "price": 45.0
            }
        }
    )


class BookingDecision(CamelModel):
    """Admission result. A conflict is a soft rejection, not an HTTP error."""
    accepted: bool
    booking_id: Optional[str] = None
    reason: Optional[str] = None


class BookingOut(CamelModel):
    """Stored booking."""
    id: str
    treatment_id: str
    treatment_name: str
    email: str
    patient_name: Optional[str] = None
    phone: Optional[str] = None
    appointment_date: str
    time_slot: str
    price: Optional[float] = None
    paid: bool = False
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None


class UserIn(CamelModel):
    """Registration payload for POST /users."""
    email: Email
    name: Optional[str] = Field(None, max_length=200)


class UserOut(CamelModel):
    """Public user record."""
    id: str
    email: str
    name: Optional[str] = None
    role: str = "patient"


class UserRegistration(CamelModel):
    """Result of registering (or re-registering) a user."""
    acknowledged: bool = True
    user_id: str
    created: bool


class AdminStatus(CamelModel):
    is_admin: bool


class PromotionResult(CamelModel):
    user_id: str
    role: str
    modified: bool


class DoctorIn(CamelModel):
    """Payload for POST /doctors."""
    name: str = Field(..., min_length=1, max_length=200)
    email: Email
    specialty: str = Field(..., min_length=1, max_length=200)
    image: Optional[str] = Field(None, max_length=1000)


class DoctorOut(CamelModel):
    id: str
    name: str
    email: str
    specialty: str
    image: Optional[str] = None


class DeletionResult(CamelModel):
    id: str
    deleted: bool = True


class PaymentIntentRequest(CamelModel):
    """Payload for POST /create-payment-intent."""
    price: float = Field(..., gt=0, description="Amount in major currency units")


class PaymentIntentResponse(CamelModel):
    client_secret: str


class PaymentIn(CamelModel):
    """Payload for POST /payments."""
    booking_id: str = Field(..., min_length=1)
    email: Email
    price: float = Field(..., ge=0)
    transaction_id: str = Field(..., min_length=1, max_length=255)


class PaymentRecorded(CamelModel):
    payment_id: str
    booking_id: str


class AccessToken(CamelModel):
    access_token: str


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: Optional[str] = Field(None, description="Error code")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Forbidden",
                "detail": "forbidden access",
                "code": "FORBIDDEN"
            }
        }
    )
