"""Session verification for the image proxy.

Sessions are issued by the diary's login service as an HS256 JWT stored in
the ``session`` cookie. This service only verifies them.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import jwt

from ..config import get_config, get_session_secret, is_session_check_bypassed
from ..error_handling import AuthenticationError
from ..logging_config import get_logger, log_security_event

logger = get_logger(__name__)

SESSION_COOKIE_NAME = "session"
SESSION_ALGORITHM = "HS256"


@dataclass
class SessionUser:
    """Identity carried by a verified session token."""

    user_id: str
    email: str | None = None
    claims: dict[str, Any] | None = None


class SessionAuthService:
    """Verifies session cookies, bypassed in development environments."""

    def __init__(self, secret: str | None = None, development_mode: bool | None = None) -> None:
        self._secret = secret if secret is not None else get_session_secret()
        self._development_mode = (
            development_mode if development_mode is not None else is_session_check_bypassed()
        )

        if self._development_mode:
            logger.info("development_auth_mode_enabled", message="Session checks are bypassed")

    @property
    def development_mode(self) -> bool:
        return self._development_mode

    def _get_development_user(self) -> SessionUser:
        config = get_config()
        return SessionUser(
            user_id=str(config.get("DEV_USER_ID", "dev-user")),
            email=config.get("DEV_USER_EMAIL", "dev@example.com"),
        )

    def verify_token(self, token: str) -> SessionUser:
        """
        Verify a session token and return its user.

        Args:
            token: Encoded JWT

        Returns:
            SessionUser: User from the token claims

        Raises:
            AuthenticationError: If the token is invalid, expired or unverifiable
        """
        if not self._secret:
            raise AuthenticationError(
                "SESSION_SECRET is not configured; sessions cannot be verified",
                code="session_secret_missing",
            )

        try:
            claims = jwt.decode(token, self._secret, algorithms=[SESSION_ALGORITHM])
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Session token expired", code="session_expired", original_exception=e) from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Invalid session token", code="session_invalid", original_exception=e) from e

        user_id = claims.get("userId") or claims.get("sub")
        if not user_id:
            raise AuthenticationError("Session token has no user", code="session_invalid")

        return SessionUser(user_id=str(user_id), email=claims.get("email"), claims=claims)

    def authenticate(self, cookies: Mapping[str, str]) -> SessionUser:
        """
        Authenticate a request from its cookies.

        Raises:
            AuthenticationError: If there is no valid session
        """
        if self._development_mode:
            return self._get_development_user()

        token = cookies.get(SESSION_COOKIE_NAME)
        if not token:
            log_security_event("missing_session_cookie", cookies_present=sorted(cookies.keys()))
            raise AuthenticationError("No session cookie", code="session_missing")

        return self.verify_token(token)
