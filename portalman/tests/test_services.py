"""
Tests for Portalman services: phone match, one-time codes, registration.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from django.core import mail

from portalman.delivery import locmem
from portalman.exceptions import ErrorKind, PortalError
from portalman.models import (
    Channel,
    Customer,
    RegistrationRequest,
    RegistrationStatus,
    VerificationChallenge,
)
from portalman.services import challenge, phone_match, registration
from portalman.signals import customer_verified, registration_requested, registration_responded

from .conftest import T0, last_sms_code

pytestmark = pytest.mark.django_db


def _email_code():
    return mail.outbox[-1].body.split("verification code: ", 1)[1][:6]


def _wrong(code):
    return "000000" if code != "000000" else "111111"


class BrokenSmsSender:
    def send_sms(self, to, body):
        raise ValueError("unreadable provider response")


# ===========================================
# Phone match
# ===========================================


class TestPhoneMatch:
    def test_unique_match_returns_customer(self, jane, sms_only):
        assert phone_match.match("W1", "4321") == jane

    def test_scoped_to_wholesaler(self, jane, w2):
        with pytest.raises(PortalError) as exc:
            phone_match.match("W2", "4321")
        assert exc.value.kind is ErrorKind.NOT_FOUND

    def test_not_found(self, w2):
        with pytest.raises(PortalError) as exc:
            phone_match.match("W2", "9999")
        assert exc.value.kind is ErrorKind.NOT_FOUND

    def test_ambiguous_never_picks_first(self, twins):
        with pytest.raises(PortalError) as exc:
            phone_match.match("W1", "1234")
        assert exc.value.kind is ErrorKind.AMBIGUOUS

    def test_inactive_customers_ignored(self, twins):
        twins[1].is_active = False
        twins[1].save()
        assert phone_match.match("W1", "1234") == twins[0]

    def test_unknown_wholesaler(self, db):
        with pytest.raises(PortalError) as exc:
            phone_match.match("NOPE", "4321")
        assert exc.value.kind is ErrorKind.UNKNOWN_WHOLESALER

    def test_inactive_wholesaler_is_unknown(self, jane, w1):
        w1.is_active = False
        w1.save()
        with pytest.raises(PortalError) as exc:
            phone_match.match("W1", "4321")
        assert exc.value.kind is ErrorKind.UNKNOWN_WHOLESALER

    @pytest.mark.parametrize("digits", ["432", "43210", "43-1", ""])
    def test_server_revalidates_digits(self, jane, digits):
        with pytest.raises(PortalError) as exc:
            phone_match.match("W1", digits)
        assert exc.value.kind is ErrorKind.VALIDATION

    def test_match_issues_nothing(self, jane):
        phone_match.match("W1", "4321")
        assert not VerificationChallenge.objects.exists()
        assert locmem.outbox == []


# ===========================================
# Issue
# ===========================================


class TestIssueSms:
    def test_sends_code_to_customer_phone(self, jane, clock):
        issued = challenge.issue_sms("W1", "4321")

        assert len(locmem.outbox) == 1
        assert locmem.outbox[0].to == "+447700904321"
        assert "Fresh Foods Wholesale" in locmem.outbox[0].body
        assert issued.expires_at == T0 + timedelta(seconds=300)
        assert issued.matches(last_sms_code())

    def test_code_never_stored_in_clear(self, jane, clock):
        issued = challenge.issue_sms("W1", "4321")
        code = last_sms_code()
        issued.refresh_from_db()
        assert len(issued.code_hash) == 64
        assert issued.code_hash == VerificationChallenge.hash_code(code)

    def test_cooldown_rejects_second_issue(self, jane, clock):
        challenge.issue_sms("W1", "4321")
        clock.advance(30)

        with pytest.raises(PortalError) as exc:
            challenge.issue_sms("W1", "4321")

        assert exc.value.kind is ErrorKind.RATE_LIMITED
        assert exc.value.data["retryAfter"] == 31
        assert len(locmem.outbox) == 1

    def test_reissue_after_cooldown_supersedes(self, jane, clock):
        first = challenge.issue_sms("W1", "4321")
        old_code = last_sms_code()
        clock.advance(61)

        second = challenge.issue_sms("W1", "4321")
        new_code = last_sms_code()

        first.refresh_from_db()
        assert first.superseded_at is not None
        assert second.is_active()
        if old_code != new_code:
            with pytest.raises(PortalError) as exc:
                challenge.verify_sms("W1", "4321", old_code)
            assert exc.value.kind is ErrorKind.INVALID_CODE
        assert challenge.verify_sms("W1", "4321", new_code) == jane

    def test_delivery_failure_drops_challenge(self, jane, clock):
        locmem.fail_next.append("carrier rejected")

        with pytest.raises(PortalError) as exc:
            challenge.issue_sms("W1", "4321")

        assert exc.value.kind is ErrorKind.DELIVERY_FAILED
        assert not VerificationChallenge.objects.exists()
        # No cooldown held by an unsent code
        challenge.issue_sms("W1", "4321")
        assert len(locmem.outbox) == 1

    def test_raising_sender_is_delivery_failure(self, jane, clock, settings):
        settings.PORTALMAN = {
            **settings.PORTALMAN,
            "SMS_BACKEND": "portalman.tests.test_services.BrokenSmsSender",
        }

        with pytest.raises(PortalError) as exc:
            challenge.issue_sms("W1", "4321")

        assert exc.value.kind is ErrorKind.DELIVERY_FAILED
        assert not VerificationChallenge.objects.exists()

    def test_not_found_issues_nothing(self, w2, clock):
        with pytest.raises(PortalError):
            challenge.issue_sms("W2", "9999")
        assert locmem.outbox == []

    def test_store_link_appended(self, jane, clock, settings):
        settings.PORTALMAN = {
            **settings.PORTALMAN,
            "STORE_BASE_URL": "https://shop.example.com/",
        }
        challenge.issue_sms("W1", "4321")
        assert locmem.outbox[0].body.endswith("https://shop.example.com/store/W1")


class TestIssueEmail:
    def test_sends_code_to_email_on_file(self, jane, clock):
        issued = challenge.issue_email(str(jane.uuid))

        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ["jane@x.com"]
        assert mail.outbox[0].from_email == "portal@example.com"
        assert issued.expires_at == T0 + timedelta(seconds=600)
        assert issued.matches(_email_code())

    def test_email_must_match_record(self, jane, clock):
        with pytest.raises(PortalError) as exc:
            challenge.issue_email(str(jane.uuid), "someone@else.com")
        assert exc.value.kind is ErrorKind.VALIDATION
        assert mail.outbox == []

    def test_email_match_is_case_insensitive(self, jane, clock):
        challenge.issue_email(str(jane.uuid), "JANE@x.com")
        assert len(mail.outbox) == 1

    def test_customer_without_email(self, sms_only, clock):
        with pytest.raises(PortalError) as exc:
            challenge.issue_email(str(sms_only.uuid))
        assert exc.value.kind is ErrorKind.VALIDATION

    def test_unknown_customer(self, db):
        with pytest.raises(PortalError) as exc:
            challenge.issue_email("not-a-uuid")
        assert exc.value.kind is ErrorKind.NOT_FOUND

    def test_sms_cooldown_does_not_block_email(self, jane, clock):
        challenge.issue_sms("W1", "4321")
        clock.advance(5)
        challenge.issue_email(str(jane.uuid))
        assert len(mail.outbox) == 1


# ===========================================
# Verify
# ===========================================


class TestVerifySms:
    def test_correct_code_consumes_and_marks_verified(self, jane, clock):
        issued = challenge.issue_sms("W1", "4321")
        code = last_sms_code()
        handler = MagicMock()
        customer_verified.connect(handler)
        try:
            customer = challenge.verify_sms("W1", "4321", code)
        finally:
            customer_verified.disconnect(handler)

        issued.refresh_from_db()
        customer.refresh_from_db()
        assert issued.consumed_at == T0
        assert customer.phone_verified_at == T0
        handler.assert_called_once()
        assert handler.call_args.kwargs["channel"] == Channel.SMS

    def test_code_cannot_be_used_twice(self, jane, clock):
        challenge.issue_sms("W1", "4321")
        code = last_sms_code()
        challenge.verify_sms("W1", "4321", code)

        with pytest.raises(PortalError) as exc:
            challenge.verify_sms("W1", "4321", code)
        assert exc.value.kind is ErrorKind.EXPIRED_CODE

    def test_wrong_codes_do_not_consume_or_extend(self, jane, clock):
        issued = challenge.issue_sms("W1", "4321")
        code = last_sms_code()

        for _ in range(2):
            clock.advance(10)
            with pytest.raises(PortalError) as exc:
                challenge.verify_sms("W1", "4321", _wrong(code))
            assert exc.value.kind is ErrorKind.INVALID_CODE

        issued.refresh_from_db()
        assert issued.attempts == 2
        assert issued.consumed_at is None
        assert issued.expires_at == T0 + timedelta(seconds=300)
        assert challenge.verify_sms("W1", "4321", code) == jane

    def test_invalid_code_reports_attempts_left(self, jane, clock):
        challenge.issue_sms("W1", "4321")
        code = last_sms_code()
        with pytest.raises(PortalError) as exc:
            challenge.verify_sms("W1", "4321", _wrong(code))
        assert exc.value.data["attemptsLeft"] == 4

    def test_locked_after_max_attempts(self, jane, clock):
        challenge.issue_sms("W1", "4321")
        code = last_sms_code()
        for _ in range(5):
            with pytest.raises(PortalError):
                challenge.verify_sms("W1", "4321", _wrong(code))

        with pytest.raises(PortalError) as exc:
            challenge.verify_sms("W1", "4321", code)
        assert exc.value.kind is ErrorKind.EXPIRED_CODE

    def test_accepted_just_before_expiry(self, jane, clock):
        challenge.issue_sms("W1", "4321")
        code = last_sms_code()
        clock.advance(299.999)
        assert challenge.verify_sms("W1", "4321", code) == jane

    def test_rejected_at_expiry(self, jane, clock):
        challenge.issue_sms("W1", "4321")
        code = last_sms_code()
        clock.advance(300)
        with pytest.raises(PortalError) as exc:
            challenge.verify_sms("W1", "4321", code)
        assert exc.value.kind is ErrorKind.EXPIRED_CODE

    def test_no_challenge_is_expired(self, jane, clock):
        with pytest.raises(PortalError) as exc:
            challenge.verify_sms("W1", "4321", "123456")
        assert exc.value.kind is ErrorKind.EXPIRED_CODE

    @pytest.mark.parametrize("code", ["12345", "1234567", "abcdef"])
    def test_code_format_checked_first(self, jane, clock, code):
        with pytest.raises(PortalError) as exc:
            challenge.verify_sms("W1", "4321", code)
        assert exc.value.kind is ErrorKind.VALIDATION


class TestVerifyEmail:
    def test_window_is_ten_minutes(self, jane, clock):
        challenge.issue_email(str(jane.uuid))
        code = _email_code()
        clock.advance(599)
        customer = challenge.verify_email(str(jane.uuid), code)
        customer.refresh_from_db()
        assert customer.email_verified_at is not None

    def test_rejected_at_ten_minutes(self, jane, clock):
        challenge.issue_email(str(jane.uuid))
        code = _email_code()
        clock.advance(600)
        with pytest.raises(PortalError) as exc:
            challenge.verify_email(str(jane.uuid), code)
        assert exc.value.kind is ErrorKind.EXPIRED_CODE

    def test_sms_code_not_valid_for_email(self, jane, clock):
        challenge.issue_sms("W1", "4321")
        with pytest.raises(PortalError) as exc:
            challenge.verify_email(str(jane.uuid), last_sms_code())
        assert exc.value.kind is ErrorKind.EXPIRED_CODE


# ===========================================
# Registration
# ===========================================


class TestRegistration:
    def test_submit_creates_pending_request(self, w2):
        handler = MagicMock()
        registration_requested.connect(handler)
        try:
            request, created = registration.submit(
                wholesaler_code="W2",
                customer_phone="07700 909999",
                customer_name=" Pat ",
                customer_email="Pat@Example.com",
            )
        finally:
            registration_requested.disconnect(handler)

        assert created is True
        assert request.status == RegistrationStatus.PENDING
        assert request.customer_name == "Pat"
        assert request.customer_phone == "+447700909999"
        assert request.customer_email == "pat@example.com"
        handler.assert_called_once()

    def test_duplicate_pending_request_reused(self, w2):
        first, _ = registration.submit("W2", "07700 909999", "Pat")
        second, created = registration.submit("W2", "+44 7700 909999", "Pat")
        assert created is False
        assert second.pk == first.pk
        assert RegistrationRequest.objects.count() == 1

    @pytest.mark.parametrize("phone,name", [("123", "Pat"), ("07700 909999", "  ")])
    def test_validation(self, w2, phone, name):
        with pytest.raises(PortalError) as exc:
            registration.submit("W2", phone, name)
        assert exc.value.kind is ErrorKind.VALIDATION

    def test_unknown_wholesaler(self, db):
        with pytest.raises(PortalError) as exc:
            registration.submit("NOPE", "07700 909999", "Pat")
        assert exc.value.kind is ErrorKind.UNKNOWN_WHOLESALER

    def test_pending_lists_oldest_first(self, w2):
        a, _ = registration.submit("W2", "07700 900001", "A")
        b, _ = registration.submit("W2", "07700 900002", "B")
        assert registration.pending("W2") == [a, b]

    def test_approve_creates_customer_who_can_sign_in(self, w2, clock):
        request, _ = registration.submit("W2", "07700 909999", "Pat", business_name="Pat's Deli")
        handler = MagicMock()
        registration_responded.connect(handler)
        try:
            answered = registration.respond(str(request.uuid), "approve", responded_by="owner")
        finally:
            registration_responded.disconnect(handler)

        assert answered.status == RegistrationStatus.APPROVED
        assert answered.responded_at == T0
        assert answered.customer.name == "Pat"
        assert answered.customer.business_name == "Pat's Deli"
        assert handler.call_args.kwargs["action"] == "approve"
        assert phone_match.match("W2", "9999") == answered.customer

    def test_reject_creates_nothing(self, w2):
        request, _ = registration.submit("W2", "07700 909999", "Pat")
        answered = registration.respond(str(request.uuid), "reject", "Not a trade customer")
        assert answered.status == RegistrationStatus.REJECTED
        assert answered.response_message == "Not a trade customer"
        assert not Customer.objects.exists()

    def test_cannot_answer_twice(self, w2):
        request, _ = registration.submit("W2", "07700 909999", "Pat")
        registration.respond(str(request.uuid), "reject")
        with pytest.raises(PortalError):
            registration.respond(str(request.uuid), "approve")

    def test_unknown_request(self, db):
        with pytest.raises(PortalError) as exc:
            registration.respond("00000000-0000-0000-0000-000000000000", "approve")
        assert exc.value.kind is ErrorKind.NOT_FOUND
