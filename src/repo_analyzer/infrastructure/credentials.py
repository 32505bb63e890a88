"""Process-wide holder for the active GitHub credential."""

from __future__ import annotations

import logging

from repo_analyzer.domain.value_objects import AccessToken

logger = logging.getLogger(__name__)


class CredentialManager:
    """Holds at most one :class:`AccessToken`, swappable at runtime.

    The GitHub adapter reads :meth:`current_credential` on every request, so a
    swap applies to all calls issued afterwards.  A request already in flight
    keeps the credential it was sent with.
    """

    def __init__(self, token: str | None = None) -> None:
        self._token: AccessToken | None = None
        if token:
            self.set_credential(token)

    def set_credential(self, token: str) -> bool:
        """Validate and activate *token*; return whether a credential is now set."""
        self._token = AccessToken.from_string(token)
        logger.info("GitHub credential updated (%s)", self._token.masked)
        return self.is_authenticated()

    def clear_credential(self) -> None:
        if self._token is not None:
            logger.info("GitHub credential cleared")
        self._token = None

    def restore(self, token: AccessToken | None) -> None:
        """Reinstate a previously active credential (or none)."""
        self._token = token

    def is_authenticated(self) -> bool:
        """Whether a credential is set; says nothing about its validity."""
        return self._token is not None

    def current_credential(self) -> AccessToken | None:
        return self._token
