"""Login adapters - Handoff to the login step."""

from .redirect import RedirectLoginHandoff

__all__ = ["RedirectLoginHandoff"]
