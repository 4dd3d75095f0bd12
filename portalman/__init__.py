"""
Django Portalman - Customer portal authentication.

Usage:
    from portalman.services import phone_match, challenge, session
    from portalman.client import PortalController, HttpPortalBackend

    customer = phone_match.match("W1", "4321")
    challenge.issue_sms("W1", "4321")
    customer = challenge.verify_sms("W1", "4321", "123456")

    # Gates validation
    Gates.last_four_format("4321")
    Gates.code_format("123456")
"""


def __getattr__(name):
    if name == "Gates":
        from portalman.gates import Gates

        return Gates
    if name == "GateError":
        from portalman.gates import GateError

        return GateError
    if name == "PortalError":
        from portalman.exceptions import PortalError

        return PortalError
    if name == "ErrorKind":
        from portalman.exceptions import ErrorKind

        return ErrorKind
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["Gates", "GateError", "PortalError", "ErrorKind"]
__version__ = "0.1.0"
