"""
Tests for Portalman gates G1-G5.
"""

from datetime import timedelta

import pytest

from portalman.exceptions import ErrorKind, PortalError
from portalman.gates import GateError, Gates
from portalman.models import Channel, RegistrationRequest, VerificationChallenge

from .conftest import T0


class TestG1LastFourFormat:
    @pytest.mark.parametrize("value", ["4321", "0000"])
    def test_valid(self, value):
        assert Gates.last_four_format(value).passed is True

    @pytest.mark.parametrize("value", ["", "432", "43210", "43a1", " 4321", "٤٣٢١", None, 4321])
    def test_invalid(self, value):
        with pytest.raises(GateError) as exc:
            Gates.last_four_format(value)
        assert exc.value.kind is ErrorKind.VALIDATION
        assert exc.value.gate_name == "G1_LastFourFormat"

    def test_check_variant(self):
        assert Gates.check_last_four_format("4321") is True
        assert Gates.check_last_four_format("43") is False


class TestG2CodeFormat:
    def test_valid(self):
        assert Gates.check_code_format("000000") is True

    @pytest.mark.parametrize("value", ["12345", "1234567", "12345a", "", None])
    def test_invalid(self, value):
        with pytest.raises(GateError) as exc:
            Gates.code_format(value)
        assert exc.value.code == "validation"


class TestG3IssueCooldown:
    def _challenge(self, customer, created_at, ttl=300):
        return VerificationChallenge.objects.create(
            customer=customer,
            channel=Channel.SMS,
            destination=customer.phone,
            code_hash=VerificationChallenge.hash_code("123456"),
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=ttl),
        )

    def test_first_issue_passes(self, jane):
        assert Gates.issue_cooldown(jane, Channel.SMS, now=T0).passed is True

    def test_inside_cooldown_is_rate_limited(self, jane):
        challenge = self._challenge(jane, T0)

        with pytest.raises(GateError) as exc:
            Gates.issue_cooldown(jane, Channel.SMS, now=T0 + timedelta(seconds=20))

        assert exc.value.kind is ErrorKind.RATE_LIMITED
        assert exc.value.data["retryAfter"] == 41
        assert exc.value.data["expiresAt"] == challenge.expires_at.isoformat()
        assert exc.value.data["expiresIn"] == 280

    def test_after_cooldown_passes(self, jane):
        self._challenge(jane, T0)
        assert Gates.check_issue_cooldown(jane, Channel.SMS, now=T0 + timedelta(seconds=60))

    def test_other_channel_not_affected(self, jane):
        self._challenge(jane, T0)
        assert Gates.check_issue_cooldown(jane, Channel.EMAIL, now=T0 + timedelta(seconds=5))


class TestG4UniqueMatch:
    def test_single(self, jane):
        assert Gates.unique_match([jane]).passed is True

    def test_none_is_not_found(self):
        with pytest.raises(GateError) as exc:
            Gates.unique_match([])
        assert exc.value.kind is ErrorKind.NOT_FOUND

    def test_several_is_ambiguous(self, twins, caplog):
        with pytest.raises(GateError) as exc:
            Gates.unique_match(twins, wholesaler_code="W1")
        assert exc.value.kind is ErrorKind.AMBIGUOUS
        assert "share a phone suffix" in caplog.text


class TestG5RegistrationPending:
    def test_unknown_action(self, w1):
        request = RegistrationRequest(wholesaler=w1, customer_name="X", customer_phone="+441")
        with pytest.raises(GateError) as exc:
            Gates.registration_pending(request, "maybe")
        assert exc.value.data["allowed"] == ["approve", "reject"]

    def test_already_answered(self, w1):
        request = RegistrationRequest(
            wholesaler=w1, customer_name="X", customer_phone="+441", status="approved"
        )
        with pytest.raises(GateError):
            Gates.registration_pending(request, "reject")


class TestGateError:
    def test_is_portal_error(self):
        error = GateError("G1_LastFourFormat", ErrorKind.VALIDATION, "bad")
        assert isinstance(error, PortalError)
        assert str(error) == "[G1_LastFourFormat] bad"
        assert error.as_dict() == {"error": "bad", "code": "validation"}
