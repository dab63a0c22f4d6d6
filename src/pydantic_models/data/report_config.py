from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator

from shared_modules.utils import safe_str


class ReportTemplate(BaseModel):
    """
    Globale Berichtsvorlage. template_definition ist die rohe, verschachtelte
    Dokumentbeschreibung mit Platzhaltern; styles optionale Stil-Überschreibungen.
    """
    id: str
    name: str
    template_definition: Any
    styles: Optional[Dict[str, Any]] = None

    @field_validator("id", mode="before")
    def id_as_str(cls, v):
        return safe_str(v)


class ReportConfig(BaseModel):
    """
    Berichtseinstellungen eines Freelancers für eine Firma.
    Muss vor der Berichtserstellung existieren.
    """
    id: Optional[str] = None
    user_id: str
    company_id: str
    template_id: str
    location: Optional[str] = None
    intro_text: Optional[str] = None
    outro_text: Optional[str] = None

    @field_validator("id", "user_id", "company_id", "template_id", mode="before")
    def ids_as_str(cls, v):
        return None if v is None else safe_str(v)

    @field_validator("location", "intro_text", "outro_text", mode="before")
    def empty_to_none(cls, v):
        # Leere Eingaben werden wie fehlende Werte behandelt
        return v or None
