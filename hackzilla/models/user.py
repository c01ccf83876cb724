# hackzilla/models/user.py
from pydantic import BaseModel

from .enums import UserRole


class User(BaseModel):
    """An admin or volunteer account as cached after sign-in."""

    id: str
    username: str
    password: str  # Opaque credential, stored as the backend returns it
    role: UserRole = UserRole.VOLUNTEER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
