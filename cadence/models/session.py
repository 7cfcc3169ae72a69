"""Authenticated session and user profile."""
from dataclasses import asdict, dataclass
from typing import Optional


@dataclass
class UserProfile:
    """Spotify user profile, fetched once after the code exchange."""
    id: str
    display_name: str
    email: str
    is_premium: bool
    image_url: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "UserProfile":
        return cls(
            id=data["id"],
            display_name=data.get("display_name") or data["id"],
            email=data.get("email") or "",
            is_premium=bool(data.get("is_premium", False)),
            image_url=data.get("image_url"),
        )


@dataclass
class Session:
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    user: Optional[UserProfile] = None
    is_authenticated: bool = False
