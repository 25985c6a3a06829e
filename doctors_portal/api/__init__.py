"""API package initialization."""
from doctors_portal.api.models import BookingDecision, BookingRequest, ErrorResponse, TreatmentAvailability

__all__ = ["BookingDecision", "BookingRequest", "ErrorResponse", "TreatmentAvailability"]
