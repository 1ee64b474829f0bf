import base64
import binascii
from secrets import compare_digest
from typing import Optional

from fastapi import Request

from app.errors import AuthError
from logger_config import get_logger

logger = get_logger()


class BasicAuthGate:
    """Single shared admin credential checked with HTTP Basic auth."""

    def __init__(self, username: str, password: str):
        self._username = username
        self._password = password

    @staticmethod
    def parse_header(authorization: Optional[str]) -> Optional[tuple]:
        """Decode a Basic Authorization header into (username, password), or None if malformed."""
        if not authorization:
            return None
        scheme, _, encoded = authorization.partition(" ")
        if scheme.lower() != "basic" or not encoded.strip():
            return None
        try:
            decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None
        if ":" not in decoded:
            return None
        username, _, password = decoded.partition(":")
        return username, password

    def check(self, authorization: Optional[str]):
        credentials = self.parse_header(authorization)
        if credentials is None:
            raise AuthError("Authentication required")

        username, password = credentials
        # Compare both halves so timing does not reveal which one was wrong
        user_ok = compare_digest(username.encode("utf-8"), self._username.encode("utf-8"))
        pass_ok = compare_digest(password.encode("utf-8"), self._password.encode("utf-8"))
        if not (user_ok and pass_ok):
            logger.warning(f"Rejected credentials for user {username!r}")
            raise AuthError("Invalid credentials")


def require_admin(request: Request):
    """FastAPI dependency guarding the mutating routes."""
    request.app.state.auth_gate.check(request.headers.get("authorization"))
