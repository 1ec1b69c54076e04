"""
Bearer-token check for the speed-test routes.

Token issuance lives elsewhere; this only maps an ``Authorization`` header
to a user id through a static token table from the config file.
"""
from __future__ import annotations

from typing import Dict, Optional


class TokenAuthenticator:
    """Resolve ``Bearer <token>`` headers against a token -> user id table."""

    def __init__(self, tokens: Optional[Dict[str, str]] = None) -> None:
        self._tokens = dict(tokens or {})

    def authenticate(self, header: Optional[str]) -> Optional[str]:
        """Return the user id for *header*, or None if it is missing or unknown."""
        if not header:
            return None
        scheme, _, token = header.strip().partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return self._tokens.get(token.strip())
