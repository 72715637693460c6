"""
doorlock_store - Supabase collaborators for the door dashboard

Bounded Context: Persistence, authentication and change notification
Responsibilities:
  - DataStore contract + SupabaseStore (access_logs, system_settings, users)
  - RealtimeListener (INSERT notifications on access_logs)
  - SupabaseAuth (password / magic link sign in, sign up, sign out)
  - SystemSettingsManager (door password, RFID tags)
  - Error taxonomy (AuthError, StoreError, ValidationError)
"""

from .errors import (
    DoorlockError,
    AuthError,
    NotAuthenticatedError,
    StoreError,
    ValidationError,
)
from .models import AuthUser, UserProfile, SystemSettings
from .base import DataStore
from .settings import SystemSettingsManager

__all__ = [
    "DoorlockError",
    "AuthError",
    "NotAuthenticatedError",
    "StoreError",
    "ValidationError",
    "AuthUser",
    "UserProfile",
    "SystemSettings",
    "DataStore",
    "SystemSettingsManager",
]
