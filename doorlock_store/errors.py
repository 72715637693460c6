"""
Error taxonomy shared by the store, auth and control packages.

    DoorlockError
     ├── AuthError              sign-in/up/out failures (surfaced, no retry)
     │    └── NotAuthenticatedError   no current session
     ├── StoreError             Supabase query/insert/update failures
     └── ValidationError        rejected locally before any remote call
"""


class DoorlockError(Exception):
    """Base class for user-visible, non-fatal failures."""
    pass


class AuthError(DoorlockError):
    """Authentication provider rejected the request."""
    pass


class NotAuthenticatedError(AuthError):
    """Operation requires a signed-in user."""
    pass


class StoreError(DoorlockError):
    """Data store request failed. Local state is left unchanged."""
    pass


class ValidationError(DoorlockError, ValueError):
    """Input rejected before any remote write."""
    pass
