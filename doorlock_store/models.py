"""Records for the auth identity, user profile and system settings rows."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class AuthUser:
    """Signed-in identity as reported by Supabase Auth."""
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or "User"

    @classmethod
    def from_supabase(cls, user: Any) -> 'AuthUser':
        metadata = getattr(user, 'user_metadata', None) or {}
        return cls(
            id=str(user.id),
            email=getattr(user, 'email', None),
            full_name=metadata.get('full_name'),
        )


@dataclass(frozen=True)
class UserProfile:
    """Row of the users table linking an auth identity to a profile id."""
    id: Any
    auth_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserProfile':
        return cls(
            id=data['id'],
            auth_id=str(data.get('auth_id', '')),
            email=data.get('email'),
            full_name=data.get('full_name'),
        )


@dataclass(frozen=True)
class SystemSettings:
    """Row of the system_settings table."""
    id: Any
    door_password: Optional[str] = None
    rfid_tags: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SystemSettings':
        tags = data.get('rfid_tag')
        return cls(
            id=data.get('id'),
            door_password=data.get('door_password'),
            rfid_tags=list(tags) if isinstance(tags, list) else [],
        )
