from typing import Optional

from loguru import logger

from pydantic_models.data.actor_identity import ActorIdentity
from shared_modules.errors import AuthorizationDenied, NotFound

from .record_repository import SqliteRecordRepository


class IdentityProvider:
    """
    Liefert die angemeldete Person und prüft, ob sie im Namen einer anderen
    Person handeln darf (Impersonation ist Admins vorbehalten).
    """

    def __init__(self, repository: SqliteRecordRepository, current_user_id: str):
        self.repository = repository
        self.current_user_id: str = current_user_id

    def current_actor(self) -> ActorIdentity:
        actor = self.repository.get_profile(self.current_user_id)
        if actor is None:
            raise NotFound("Profil", self.current_user_id)
        return actor

    def is_admin(self) -> bool:
        return self.current_actor().is_admin

    def resolve_actor_id(self, on_behalf_of: Optional[str] = None, action: str = "Berichte erstellen") -> str:
        """
        Bestimmt die effektive Person eines Aufrufs.

        Raises:
            AuthorizationDenied: Wenn im Namen einer anderen Person gehandelt
                werden soll, ohne Admin zu sein.
        """
        if not on_behalf_of or on_behalf_of == self.current_user_id:
            return self.current_user_id
        if not self.is_admin():
            logger.warning(
                f"{self.current_user_id} versucht ohne Admin-Rechte für {on_behalf_of} zu handeln."
            )
            raise AuthorizationDenied(f"Nur Admins dürfen im Namen anderer {action}.")
        logger.debug(f"Admin {self.current_user_id} handelt im Namen von {on_behalf_of}.")
        return on_behalf_of
