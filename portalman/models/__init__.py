"""Portalman models."""

from portalman.models.wholesaler import Wholesaler
from portalman.models.customer import Customer
from portalman.models.challenge import Channel, VerificationChallenge
from portalman.models.registration import RegistrationRequest, RegistrationStatus

__all__ = [
    # Tenancy
    "Wholesaler",
    "Customer",
    # One-time codes
    "Channel",
    "VerificationChallenge",
    # Access requests
    "RegistrationRequest",
    "RegistrationStatus",
]
