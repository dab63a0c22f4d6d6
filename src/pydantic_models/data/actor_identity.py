from enum import Enum

from pydantic import BaseModel, field_validator

from shared_modules.utils import safe_str


class ActorRole(str, Enum):
    ADMIN = "admin"
    FREELANCER = "freelancer"


class ActorIdentity(BaseModel):
    """
    Handelnde Person eines Berichts: der Freelancer selbst oder,
    bei Impersonation durch einen Admin, die vertretene Person.
    """
    id: str
    display_name: str = ""
    role: ActorRole = ActorRole.FREELANCER

    @field_validator("id", mode="before")
    def id_as_str(cls, v):
        return safe_str(v)

    @field_validator("display_name", mode="before")
    def name_as_str(cls, v):
        return safe_str(v)

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN
