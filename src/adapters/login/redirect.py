"""
Redirect login adapter - Implements LoginHandoff protocol.

Registration ends by sending the client to the login step. The login
step itself lives outside this service; the adapter only builds the URL
carrying the original redirect parameters.
"""

import logging

logger = logging.getLogger(__name__)


class RedirectLoginHandoff:
    """Hands a freshly registered user over to the login page."""

    def __init__(self, login_url: str) -> None:
        self._login_url = login_url

    def login_user(self, username: str, redirect_params: str) -> str:
        logger.info("Handing off %s to login", username)
        if redirect_params:
            return f"{self._login_url}?{redirect_params.lstrip('?')}"
        return self._login_url
