"""
Portal authentication endpoints.

JSON in, JSON out. Errors are {"error": <message>, "code": <kind>, ...}
with the HTTP status from STATUS_BY_KIND; clients branch on "code".

Flow:
    1. GET  marketplace/wholesaler/<id>           - branding
    2. GET  customer-auth/check/<id>              - existing session?
    3. POST customer-auth/verify                  - last four digits
    4. POST customer-auth/request-sms             - send SMS code
    5. POST customer-auth/verify-sms              - check code, open session
    (4'/5') customer-email-verification/send|verify - email channel
    POST customer/request-wholesaler-access       - registration fallback
"""

from __future__ import annotations

import json
import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from portalman.exceptions import ErrorKind, PortalError
from portalman.services import challenge as challenge_service
from portalman.services import phone_match
from portalman.services import registration as registration_service
from portalman.services import session as session_service
from portalman.services import wholesaler as wholesaler_service

logger = logging.getLogger("portalman.views")

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.INVALID_CODE: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNKNOWN_WHOLESALER: 404,
    ErrorKind.AMBIGUOUS: 409,
    ErrorKind.EXPIRED_CODE: 410,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.DELIVERY_FAILED: 502,
    ErrorKind.TRANSPORT: 503,
}


def error_response(exc: PortalError) -> JsonResponse:
    return JsonResponse(exc.as_dict(), status=STATUS_BY_KIND[exc.kind])


def issue_response(challenge) -> JsonResponse:
    return JsonResponse(
        {
            "expiresAt": challenge.expires_at.isoformat(),
            "expiresIn": challenge.seconds_remaining(),
        }
    )


class PortalView(View):
    """
    Base view: JSON body parsing and PortalError translation.

    Subclasses implement handle(request, data, **kwargs).
    """

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except PortalError as exc:
            return error_response(exc)
        except Exception:
            logger.exception("Portal endpoint %s failed", request.path)
            return JsonResponse({"error": "Internal error"}, status=500)

    def get(self, request, *args, **kwargs):
        return self.handle(request, {}, **kwargs)

    def post(self, request, *args, **kwargs):
        return self.handle(request, self.parse_body(request), **kwargs)

    def handle(self, request, data: dict, **kwargs):
        raise NotImplementedError

    @staticmethod
    def parse_body(request) -> dict:
        try:
            data = json.loads(request.body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise PortalError(ErrorKind.VALIDATION, "Invalid JSON")
        if not isinstance(data, dict):
            raise PortalError(ErrorKind.VALIDATION, "Invalid JSON")
        return data

    @staticmethod
    def field(data: dict, name: str) -> str:
        """Required string field (numbers are accepted and stringified)."""
        value = data.get(name)
        if value is None or value == "":
            raise PortalError(ErrorKind.VALIDATION, f"Missing field: {name}")
        return str(value)


class WholesalerProfileView(PortalView):
    http_method_names = ["get"]

    def handle(self, request, data, wholesaler_id):
        wholesaler = wholesaler_service.get(wholesaler_id)
        if not wholesaler:
            raise PortalError(ErrorKind.UNKNOWN_WHOLESALER)
        return JsonResponse(wholesaler_service.profile(wholesaler))


class SessionCheckView(PortalView):
    http_method_names = ["get"]

    def handle(self, request, data, wholesaler_id):
        customer = session_service.current_customer(request, wholesaler_id)
        if not customer:
            return JsonResponse({"authenticated": False})
        return JsonResponse({"authenticated": True, "customer": customer.to_public_dict()})


@method_decorator(csrf_exempt, name="dispatch")
class LogoutView(PortalView):
    http_method_names = ["post"]

    def handle(self, request, data):
        session_service.logout(request, data.get("wholesalerId") or None)
        return JsonResponse({"success": True})


@method_decorator(csrf_exempt, name="dispatch")
class PhoneMatchView(PortalView):
    http_method_names = ["post"]

    def handle(self, request, data):
        customer = phone_match.match(
            self.field(data, "wholesalerId"),
            self.field(data, "lastFourDigits"),
        )
        return JsonResponse({"customer": customer.to_public_dict()})


@method_decorator(csrf_exempt, name="dispatch")
class RequestSmsView(PortalView):
    http_method_names = ["post"]

    def handle(self, request, data):
        challenge = challenge_service.issue_sms(
            self.field(data, "wholesalerId"),
            self.field(data, "lastFourDigits"),
        )
        return issue_response(challenge)


@method_decorator(csrf_exempt, name="dispatch")
class VerifySmsView(PortalView):
    http_method_names = ["post"]

    def handle(self, request, data):
        customer = challenge_service.verify_sms(
            self.field(data, "wholesalerId"),
            self.field(data, "lastFourDigits"),
            self.field(data, "smsCode"),
        )
        session_service.login(request, customer)
        return JsonResponse({"customer": customer.to_public_dict()})


@method_decorator(csrf_exempt, name="dispatch")
class SendEmailCodeView(PortalView):
    http_method_names = ["post"]

    def handle(self, request, data):
        challenge = challenge_service.issue_email(
            self.field(data, "customerId"),
            data.get("email") or None,
        )
        return issue_response(challenge)


@method_decorator(csrf_exempt, name="dispatch")
class VerifyEmailCodeView(PortalView):
    http_method_names = ["post"]

    def handle(self, request, data):
        customer = challenge_service.verify_email(
            self.field(data, "customerId"),
            self.field(data, "code"),
            data.get("email") or None,
        )
        session_service.login(request, customer)
        return JsonResponse({"customer": customer.to_public_dict()})


@method_decorator(csrf_exempt, name="dispatch")
class RequestAccessView(PortalView):
    http_method_names = ["post"]

    def handle(self, request, data):
        registration, created = registration_service.submit(
            wholesaler_code=self.field(data, "wholesalerId"),
            customer_phone=self.field(data, "customerPhone"),
            customer_name=self.field(data, "customerName"),
            customer_email=data.get("customerEmail") or "",
            business_name=data.get("businessName") or "",
            request_message=data.get("requestMessage") or "",
        )
        if created:
            message = (
                f"Your request has been sent to {registration.wholesaler.business_name}. "
                "You will be able to sign in once it is approved."
            )
        else:
            message = "Your request is already pending approval."
        return JsonResponse(
            {"message": message, "requestId": str(registration.uuid)},
            status=201 if created else 200,
        )
