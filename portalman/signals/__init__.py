"""
Portalman signals - public event API.

Emitted signals:
- customer_verified: Emitted by services.challenge.verify_sms()/verify_email()
- registration_requested: Emitted by services.registration.submit()
- registration_responded: Emitted by services.registration.respond()
"""

from django.dispatch import Signal

customer_verified = Signal()  # sender=Customer, customer, channel
registration_requested = Signal()  # sender=RegistrationRequest, request
registration_responded = Signal()  # sender=RegistrationRequest, request, action
