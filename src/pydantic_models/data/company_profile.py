from typing import Optional

from pydantic import BaseModel, field_validator

from shared_modules.utils import safe_str


class CompanyProfile(BaseModel):
    """
    Rechnungsempfänger eines Berichts.
    """
    id: str
    name: str
    tax_id: Optional[str] = None
    city: Optional[str] = None

    @field_validator("id", mode="before")
    def id_as_str(cls, v):
        return safe_str(v)
