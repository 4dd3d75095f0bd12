"""
Tests for maintenance surfaces: cleanup command, admin actions, delivery backends.
"""

from datetime import timedelta
from io import StringIO
from unittest.mock import MagicMock, patch

import httpx
import pytest
from django.contrib import admin
from django.core.management import call_command
from django.test import RequestFactory

from portalman.admin import RegistrationRequestAdmin
from portalman.delivery.twilio import TwilioSmsSender
from portalman.models import (
    Channel,
    RegistrationRequest,
    RegistrationStatus,
    VerificationChallenge,
)
from portalman.services import registration

from .conftest import T0

pytestmark = pytest.mark.django_db


class TestCleanupCommand:
    def _challenge(self, customer, expires_at):
        return VerificationChallenge.objects.create(
            customer=customer,
            channel=Channel.SMS,
            destination=customer.phone,
            code_hash=VerificationChallenge.hash_code("123456"),
            created_at=expires_at - timedelta(seconds=300),
            expires_at=expires_at,
        )

    def test_removes_old_challenges(self, jane, clock):
        old = self._challenge(jane, T0 - timedelta(days=8))
        recent = self._challenge(jane, T0 - timedelta(days=2))

        out = StringIO()
        call_command("portalman_cleanup", stdout=out)

        assert "Deleted 1 old verification challenges." in out.getvalue()
        assert not VerificationChallenge.objects.filter(pk=old.pk).exists()
        assert VerificationChallenge.objects.filter(pk=recent.pk).exists()

    def test_days_override(self, jane, clock):
        self._challenge(jane, T0 - timedelta(days=2))
        call_command("portalman_cleanup", "--days", "1", stdout=StringIO())
        assert not VerificationChallenge.objects.exists()


class TestRegistrationAdmin:
    @pytest.fixture
    def model_admin(self):
        return RegistrationRequestAdmin(RegistrationRequest, admin.site)

    @pytest.fixture
    def admin_request(self):
        request = RequestFactory().post("/admin/")
        request.user = MagicMock()
        request.user.get_username.return_value = "owner"
        return request

    def test_approve_action(self, model_admin, admin_request, w2):
        pending, _ = registration.submit("W2", "07700 909999", "Pat")

        with patch.object(model_admin, "message_user") as message_user:
            model_admin.approve_requests(admin_request, RegistrationRequest.objects.all())

        pending.refresh_from_db()
        assert pending.status == RegistrationStatus.APPROVED
        assert pending.responded_by == "owner"
        assert pending.customer is not None
        message_user.assert_called_once()

    def test_reject_reports_already_answered(self, model_admin, admin_request, w2):
        pending, _ = registration.submit("W2", "07700 909999", "Pat")
        registration.respond(str(pending.uuid), "approve")

        with patch.object(model_admin, "message_user") as message_user:
            model_admin.reject_requests(admin_request, RegistrationRequest.objects.all())

        pending.refresh_from_db()
        assert pending.status == RegistrationStatus.APPROVED
        assert "already approved" in message_user.call_args.args[1]


class TestTwilioSender:
    @pytest.fixture
    def twilio_settings(self, settings):
        settings.PORTALMAN = {
            **settings.PORTALMAN,
            "TWILIO_ACCOUNT_SID": "AC123",
            "TWILIO_AUTH_TOKEN": "secret",
            "TWILIO_FROM_NUMBER": "+447700900000",
        }

    def test_not_configured(self):
        result = TwilioSmsSender().send_sms("+447700904321", "hi")
        assert result.success is False

    def test_sends_form_encoded_message(self, twilio_settings):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"sid": "SM1"})

        sender = TwilioSmsSender(client=httpx.Client(transport=httpx.MockTransport(handler)))
        result = sender.send_sms("+447700904321", "Your code: 123456")

        assert result.success is True
        assert result.message_id == "SM1"
        assert seen[0].url.path == "/2010-04-01/Accounts/AC123/Messages.json"
        assert b"To=%2B447700904321" in seen[0].content

    def test_twilio_error(self, twilio_settings):
        def handler(request):
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To'"})

        sender = TwilioSmsSender(client=httpx.Client(transport=httpx.MockTransport(handler)))
        result = sender.send_sms("+44123", "Your code: 123456")

        assert result.success is False
        assert "Invalid phone number format" in result.error

    def test_network_error(self, twilio_settings):
        def handler(request):
            raise httpx.ConnectError("down")

        sender = TwilioSmsSender(client=httpx.Client(transport=httpx.MockTransport(handler)))
        assert sender.send_sms("+447700904321", "x").success is False

    def test_owned_client_closed_after_send(self, twilio_settings):
        made = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(201, json={"sid": "SM2"}))
        )

        with patch.object(httpx, "Client", return_value=made):
            result = TwilioSmsSender().send_sms("+447700904321", "Your code: 123456")

        assert result.success is True
        assert made.is_closed

    def test_unreadable_success_body(self, twilio_settings):
        def handler(request):
            return httpx.Response(201, text="<html>queued</html>")

        sender = TwilioSmsSender(client=httpx.Client(transport=httpx.MockTransport(handler)))
        result = sender.send_sms("+447700904321", "Your code: 123456")

        assert result.success is True
        assert result.message_id is None
