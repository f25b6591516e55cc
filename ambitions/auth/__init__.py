"""Caller authentication."""

from ambitions.auth.dependencies import CallerIdentity, get_current_caller
from ambitions.auth.oidc import TokenValidationError, validate_token

__all__ = ["CallerIdentity", "TokenValidationError", "get_current_caller", "validate_token"]
