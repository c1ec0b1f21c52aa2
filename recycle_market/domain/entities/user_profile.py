from dataclasses import dataclass


@dataclass(frozen=True)
class UserProfileSnapshot:
    """Denormalized view of a user profile, joined in at read time."""

    full_name: str
    email: str | None = None
    avatar_url: str | None = None
    phone: str | None = None
