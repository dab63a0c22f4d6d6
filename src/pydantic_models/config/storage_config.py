from typing import Optional
from pydantic import BaseModel, field_validator

class StorageConfig(BaseModel):
    """
    Einstellungen für den Objektspeicher der gespeicherten Berichte.
    """
    bucket: str = "work-reports"
    signed_url_ttl: int = 3600
    signing_key_env: Optional[str] = "FERNET_KEY"

    @field_validator("signed_url_ttl")
    def ttl_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("storage.signed_url_ttl muss größer als 0 sein.")
        return v
