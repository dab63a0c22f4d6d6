from pydantic import BaseModel

from .database_config import DatabaseConfig
from .formatting_config import FormattingConfig
from .logging_config import LoggingConfig
from .rendering_config import RenderingConfig
from .storage_config import StorageConfig
from .structure_config import StructureConfig


class ConfigData(BaseModel):
    """
    Modell für die gesamte Konfiguration des Projekts.
    Das sind die Sektionen in der Config-Datei.
    """
    structure: StructureConfig = StructureConfig()
    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    formatting: FormattingConfig = FormattingConfig()
    storage: StorageConfig = StorageConfig()
    rendering: RenderingConfig = RenderingConfig()
