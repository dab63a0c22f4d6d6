import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Type

import yaml
from loguru import logger
from pydantic import BaseModel

from pydantic_models.config.config_data import ConfigData
from pydantic_models.config.database_config import DatabaseConfig
from pydantic_models.config.formatting_config import FormattingConfig
from pydantic_models.config.logging_config import LoggingConfig
from pydantic_models.config.rendering_config import RenderingConfig
from pydantic_models.config.storage_config import StorageConfig
from pydantic_models.config.structure_config import StructureConfig

from .utils import ensure_dir

DEFAULT_CONFIG_PATH = Path(".config") / "work_reports_config.yaml"
CONFIG_PATH_ENV = "WORK_REPORTS_CONFIG"


class Config:
    """
    Singleton für das Laden und Prüfen der Konfiguration.
    Nutzt statische Pydantic-Modelle für alle Abschnitte.
    Prüft Pfade einmalig beim Laden und legt fehlende Arbeitsverzeichnisse an.
    """

    _instance: Optional["Config"] = None

    def __new__(cls, config_path: Optional[Path] = None):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[Path] = None):
        if self._initialized:
            return
        # Fallback-Logger für Fehler beim Laden der Config
        logger.remove()
        logger.add(sys.stderr, level="WARNING")
        self.config_path: Path = Path(config_path or os.getenv(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
        try:
            self.raw_config: Dict[str, Any] = self._load_config()
            self.structure = self._parse_section(self.raw_config, "structure", StructureConfig)
            self.logging = self._parse_section(self.raw_config, "logging", LoggingConfig)
            self._setup_logging()
            logger.debug(f"Lade Konfiguration von {self.config_path}")
        except Exception as e:
            logger.error(f"Fehler beim Laden der Konfiguration: {e}")
            raise

        self.database = self._parse_section(self.raw_config, "database", DatabaseConfig)
        self.formatting = self._parse_section(self.raw_config, "formatting", FormattingConfig)
        self.storage = self._parse_section(self.raw_config, "storage", StorageConfig)
        self.rendering = self._parse_section(self.raw_config, "rendering", RenderingConfig)
        self.data = ConfigData(
            structure=self.structure,
            database=self.database,
            logging=self.logging,
            formatting=self.formatting,
            storage=self.storage,
            rendering=self.rendering,
        )

        self._validate_structure_and_paths()
        logger.debug("Konfiguration erfolgreich geladen und validiert.")
        self._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Verwirft die geladene Instanz, z. B. für Tests oder einen Wechsel der Config-Datei."""
        cls._instance = None

    def _setup_logging(self) -> None:
        """
        Initialisiert loguru mit den Einstellungen aus der Config-Datei.
        """
        logger.remove()
        log_level = self.logging.log_level or "INFO"
        logger.add(sys.stderr, level=log_level)
        if self.logging.log_file and self.prj_root.exists():
            logs_dir = ensure_dir(self.prj_root / (self.structure.log_path or ".logs"))
            logger.add(
                str(logs_dir / self.logging.log_file),
                level=log_level,
                rotation=self.logging.rotation,
                retention=self.logging.retention,
            )

    def _load_config(self) -> Dict[str, Any]:
        """
        Lädt die YAML-Konfigurationsdatei. Eine leere Datei ergibt die Standardwerte.
        """
        with open(self.config_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def _parse_section(self, config: Dict[str, Any], section: str, model: Type[BaseModel]) -> Any:
        """
        Parst einen Abschnitt der Config mit dem passenden Pydantic-Modell.
        """
        data = config.get(section) or {}
        logger.debug(f"Parsiere Abschnitt '{section}': {data}")
        return model(**data)

    @property
    def prj_root(self) -> Path:
        root = Path(self.structure.prj_root).expanduser()
        if not root.is_absolute():
            # relative Wurzel bezieht sich auf den Ort der Config-Datei (.config/..)
            root = self.config_path.resolve().parent.parent / root
        return root.resolve()

    @property
    def data_dir(self) -> Path:
        return self.prj_root / (self.structure.local_data_path or "data")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.database.sqlite_db_name

    @property
    def output_dir(self) -> Path:
        return self.prj_root / (self.structure.output_path or "output")

    @property
    def storage_dir(self) -> Path:
        return self.prj_root / (self.structure.storage_path or "storage")

    @property
    def template_dir(self) -> Path:
        return self.prj_root / (self.structure.template_path or "templates")

    def _validate_structure_and_paths(self) -> None:
        """
        Prüft einmalig alle Pfad- und Pflichtangaben. Scheitern die Prüfungen,
        wird die Konfiguration verworfen.
        """
        prj_root = self.prj_root
        if not prj_root.exists():
            logger.error(f"Projektwurzel existiert nicht: {prj_root}")
            raise FileNotFoundError(f"Projektwurzel nicht gefunden: {prj_root}")

        if not self.database.sqlite_db_name:
            logger.error("database.sqlite_db_name ist nicht gesetzt.")
            raise ValueError("database.sqlite_db_name ist Pflicht.")

        for directory in (self.data_dir, self.output_dir, self.storage_dir):
            ensure_dir(directory)

        # Vorlagenverzeichnis ist optional, Warnung statt Fehler
        if not self.template_dir.exists():
            logger.warning(f"Template-Verzeichnis existiert nicht: {self.template_dir}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Allgemeiner Getter für beliebige Felder (dot-notation für verschachtelte Felder).
        """
        parts = key.split(".")
        val = self.raw_config
        for part in parts:
            if isinstance(val, dict) and part in val:
                val = val[part]
            else:
                logger.debug(f"Feld '{key}' nicht gefunden, Rückgabe Default: {default}")
                return default
        return val

    def get_secret(self, key: str, default: Any = None) -> Optional[str]:
        """
        Gibt ein Secret (z. B. Signaturschlüssel) aus Umgebungsvariablen zurück.
        """
        logger.debug(f"Lese Secret '{key}' aus Umgebungsvariablen.")
        return os.getenv(key, default)
