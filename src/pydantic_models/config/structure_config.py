from typing import Optional
from pydantic import BaseModel

class StructureConfig(BaseModel):
    """
    Modell für die Struktur-Konfiguration des Projekts.

    Attribute:
        prj_root (str): Wurzelverzeichnis des Projekts.
        local_data_path (Optional[str]): Verzeichnis der SQLite-Datenbank (Standard: "data").
        output_path (Optional[str]): Zielverzeichnis für lokale Downloads (Standard: "output").
        storage_path (Optional[str]): Wurzel des Objektspeichers (Standard: "storage").
        template_path (Optional[str]): Verzeichnis mit Vorlagen im JSON-Format (Standard: "templates").
        log_path (Optional[str]): Pfad zum Log-Verzeichnis relativ zu prj_root (Standard: ".logs").
    """
    prj_root: str = "."
    local_data_path: Optional[str] = "data"
    output_path: Optional[str] = "output"
    storage_path: Optional[str] = "storage"
    template_path: Optional[str] = "templates"
    log_path: Optional[str] = ".logs"
