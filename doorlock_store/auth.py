"""
Supabase Auth Client
====================

Bounded Context: Authentication

Sign in (password or magic link), sign up, sign out, current user and a
session-change subscription. Errors from Supabase are surfaced as AuthError
with the provider's message; nothing is retried.
"""

import logging
from typing import Any, Callable, Dict, Optional

from supabase import AuthError as SupabaseAuthError
from supabase import Client

from .errors import AuthError, NotAuthenticatedError, ValidationError
from .models import AuthUser

logger = logging.getLogger(__name__)

SessionCallback = Callable[[Optional[Any]], None]


class SupabaseAuth:
    """
    Authentication provider over a shared supabase-py Client.

    Example:
        auth = SupabaseAuth(client)
        user = auth.sign_in_with_password("me@example.com", "secret")
        unsubscribe = auth.on_session_change(lambda session: ...)
    """

    def __init__(self, client: Client):
        self.client = client

    def get_current_user(self) -> Optional[AuthUser]:
        """Signed-in user or None when there is no session."""
        try:
            response = self.client.auth.get_user()
        except SupabaseAuthError as e:
            logger.debug(f"No current user: {e}")
            return None
        if response is None or response.user is None:
            return None
        return AuthUser.from_supabase(response.user)

    def require_user(self) -> AuthUser:
        """
        Raises:
            NotAuthenticatedError: If nobody is signed in
        """
        user = self.get_current_user()
        if user is None:
            raise NotAuthenticatedError("Please log in to access the door dashboard.")
        return user

    def access_token(self) -> Optional[str]:
        try:
            session = self.client.auth.get_session()
        except SupabaseAuthError:
            return None
        return session.access_token if session else None

    def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        if not email or not password:
            raise ValidationError("Email and password are required.")
        try:
            response = self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except SupabaseAuthError as e:
            raise AuthError(e.message or "Error during login") from e
        logger.info(f"✅ Signed in as {email}")
        return AuthUser.from_supabase(response.user)

    def sign_in_with_magic_link(self, email: str) -> None:
        """Send a one-time login link to the email address."""
        if not email:
            raise ValidationError("Please enter your email first.")
        try:
            self.client.auth.sign_in_with_otp({"email": email})
        except SupabaseAuthError as e:
            raise AuthError(e.message or "Error sending magic link") from e
        logger.info(f"📧 Magic link sent to {email}")

    def sign_up(self, email: str, password: str, profile: Optional[Dict[str, Any]] = None) -> None:
        """
        Create an account. The user must confirm by email before signing in.

        Args:
            profile: User metadata, e.g. {"full_name": "Ada Lovelace"}
        """
        if not email or not password:
            raise ValidationError("Email and password are required.")
        try:
            self.client.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": profile or {}},
            })
        except SupabaseAuthError as e:
            raise AuthError(e.message or "Error during signup") from e
        logger.info(f"✅ Signup requested for {email}")

    def sign_out(self) -> None:
        try:
            self.client.auth.sign_out()
        except SupabaseAuthError as e:
            raise AuthError(e.message or "Error during logout") from e
        logger.info("👋 Signed out")

    def on_session_change(self, callback: SessionCallback) -> Callable[[], None]:
        """
        Call callback(session_or_None) on every auth state change.

        Returns:
            Function that cancels the subscription
        """
        subscription = self.client.auth.on_auth_state_change(
            lambda _event, session: callback(session)
        )
        return subscription.unsubscribe
