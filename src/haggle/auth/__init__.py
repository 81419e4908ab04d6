"""Bearer-token authentication for the HTTP API."""

from haggle.auth.identity import current_user, extract_token

__all__ = ["current_user", "extract_token"]
