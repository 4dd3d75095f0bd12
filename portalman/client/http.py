"""
HttpPortalBackend - PortalBackend over the portal's JSON endpoints.

One httpx.Client per portal visit; its cookie jar carries the Django
session cookie, so a verified customer stays verified across calls.

Error bodies {"error", "code"} become PortalError(code), whatever the
status (a 502 delivery_failed stays delivery_failed). Connection
failures and 5xx responses without a portal body become
ErrorKind.TRANSPORT. The idempotent GETs (resolve, session check) are
retried on transport errors.
"""

import logging
from datetime import datetime

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from portalman.exceptions import ErrorKind, PortalError
from portalman.protocols.portal import (
    CodeIssue,
    CustomerRecord,
    RegistrationForm,
    WholesalerProfile,
)

logger = logging.getLogger(__name__)


def _is_transport(exc: BaseException) -> bool:
    return isinstance(exc, PortalError) and exc.kind is ErrorKind.TRANSPORT


class HttpPortalBackend:
    """
    PortalBackend implementation talking to portalman.urls.

    Args:
        base_url: Site root; API paths are under /api/
        client: Preconfigured httpx.Client (tests pass one with a MockTransport)
        retries: Attempts for idempotent GETs
        retry_wait: tenacity wait strategy between attempts
    """

    def __init__(
        self,
        base_url: str = "",
        client: httpx.Client | None = None,
        timeout: float = 10.0,
        retries: int = 3,
        retry_wait=None,
    ):
        self.client = client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Accept": "application/json"},
        )
        self.retries = retries
        self.retry_wait = retry_wait or wait_exponential(multiplier=0.5, max=4)

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ------------------------------------------------------------------
    # PortalBackend
    # ------------------------------------------------------------------

    def resolve_wholesaler(self, wholesaler_id: str) -> WholesalerProfile | None:
        response = self._get(f"/api/marketplace/wholesaler/{wholesaler_id}", allow=(404,))
        if response.status_code == 404:
            return None
        data = response.json()
        return WholesalerProfile(
            id=str(data.get("id", wholesaler_id)),
            business_name=data.get("businessName") or "",
            logo_url=data.get("logoUrl") or None,
        )

    def check_session(self, wholesaler_id: str) -> CustomerRecord | None:
        response = self._get(f"/api/customer-auth/check/{wholesaler_id}", allow=(401, 403))
        if response.status_code in (401, 403):
            return None
        data = response.json()
        if not data.get("authenticated") or not data.get("customer"):
            return None
        return CustomerRecord.from_payload(data["customer"])

    def logout(self, wholesaler_id: str) -> None:
        self._post("/api/customer-auth/logout", {"wholesalerId": wholesaler_id})

    def match_phone(self, wholesaler_id: str, last_four: str) -> CustomerRecord:
        data = self._post(
            "/api/customer-auth/verify",
            {"wholesalerId": wholesaler_id, "lastFourDigits": last_four},
        )
        return CustomerRecord.from_payload(data["customer"])

    def request_sms(self, wholesaler_id: str, last_four: str) -> CodeIssue:
        data = self._post(
            "/api/customer-auth/request-sms",
            {"wholesalerId": wholesaler_id, "lastFourDigits": last_four},
        )
        return self._code_issue(data)

    def verify_sms(self, wholesaler_id: str, last_four: str, code: str) -> CustomerRecord:
        data = self._post(
            "/api/customer-auth/verify-sms",
            {"wholesalerId": wholesaler_id, "lastFourDigits": last_four, "smsCode": code},
        )
        return CustomerRecord.from_payload(data["customer"])

    def send_email_code(self, customer_id: str) -> CodeIssue:
        data = self._post("/api/customer-email-verification/send", {"customerId": customer_id})
        return self._code_issue(data)

    def verify_email_code(self, customer_id: str, code: str) -> CustomerRecord:
        data = self._post(
            "/api/customer-email-verification/verify",
            {"customerId": customer_id, "code": code},
        )
        return CustomerRecord.from_payload(data["customer"])

    def request_access(self, wholesaler_id: str, form: RegistrationForm) -> str:
        payload = {
            "wholesalerId": wholesaler_id,
            "customerName": form.customer_name,
            "customerPhone": form.customer_phone,
        }
        optional = {
            "customerEmail": form.customer_email,
            "businessName": form.business_name,
            "requestMessage": form.request_message,
        }
        payload.update({key: value for key, value in optional.items() if value})
        data = self._post("/api/customer/request-wholesaler-access", payload)
        return data.get("message", "")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get(self, path: str, allow: tuple[int, ...] = ()) -> httpx.Response:
        for attempt in Retrying(
            retry=retry_if_exception(_is_transport),
            stop=stop_after_attempt(self.retries),
            wait=self.retry_wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return self._send("GET", path, allow=allow)

    def _post(self, path: str, payload: dict) -> dict:
        response = self._send("POST", path, json=payload)
        return response.json()

    def _send(self, method: str, path: str, allow: tuple[int, ...] = (), **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("Portal %s %s failed: %s", method, path, exc)
            raise PortalError(ErrorKind.TRANSPORT) from exc

        if response.status_code in allow or response.is_success:
            return response
        raise self._map_error(response)

    @staticmethod
    def _map_error(response: httpx.Response) -> PortalError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        details = {k: v for k, v in body.items() if k not in ("error", "code")}
        try:
            kind = ErrorKind(body.get("code"))
        except ValueError:
            # Proxies and crashed workers answer 5xx without a portal body
            if response.status_code >= 500:
                return PortalError(ErrorKind.TRANSPORT)
            kind = ErrorKind.NOT_FOUND if response.status_code == 404 else ErrorKind.VALIDATION
        return PortalError(kind, body.get("error") or None, **details)

    @staticmethod
    def _code_issue(data: dict) -> CodeIssue:
        expires_at = datetime.fromisoformat(data["expiresAt"])
        expires_in = data.get("expiresIn")
        return CodeIssue(
            expires_at=expires_at,
            expires_in=int(expires_in) if expires_in is not None else None,
        )
