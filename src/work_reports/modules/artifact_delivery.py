from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, field_validator

from pydantic_models.data.generated_artifact_record import GeneratedArtifactRecord
from shared_modules.errors import (
    DownloadFailed,
    ErrorKind,
    MetadataWriteFailed,
    ReportGenerationError,
    StorageUploadFailed,
)
from shared_modules.month_period import parse_period, parse_report_date
from shared_modules.utils import atomic_write, safe_str, to_year_month_str

from .object_storage import LocalObjectStorage
from .record_repository import SqliteRecordRepository


def build_storage_path(actor_id: str, company_id: str, period: Any) -> str:
    """
    Speicherpfad eines Berichts: "{actor_id}/{company_id}/{YYYY-MM}.pdf".
    Das Format muss stabil bleiben, damit bereits gespeicherte Berichte gefunden werden.
    """
    month = to_year_month_str(period)
    if month is None:
        raise ValueError(f"Ungültiger Abrechnungsmonat: {period!r}")
    return f"{actor_id}/{company_id}/{month}.pdf"


def download_filename(period: Any) -> str:
    """Dateiname des lokalen Downloads, z. B. work-report-2025-03.pdf."""
    return f"work-report-{to_year_month_str(period)}.pdf"


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"


class DeliveryRequest(BaseModel):
    actor_id: str
    company_id: str
    period: date
    report_date: date
    persist: bool = False

    @field_validator("actor_id", "company_id", mode="before")
    def ids_as_str(cls, v):
        return safe_str(v)

    @field_validator("period", mode="before")
    def normalize_period(cls, v):
        return parse_period(v)

    @field_validator("report_date", mode="before")
    def normalize_report_date(cls, v):
        return parse_report_date(v)


class DeliveryResult(BaseModel):
    """
    Ergebnis einer Auslieferung. Im Fehlerfall beschreiben error_kind und
    orphaned_storage_path, welche Nacharbeit nötig ist.
    """
    status: DeliveryStatus
    persist: bool = False
    download_path: Optional[Path] = None
    storage_path: Optional[str] = None
    record: Optional[GeneratedArtifactRecord] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    orphaned_storage_path: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED


class ArtifactDeliveryOrchestrator:
    """
    Liefert ein gerendertes PDF aus: entweder nur als lokalen Download oder
    zusätzlich mit Upload in den Objektspeicher und Tracking-Eintrag.

    Ablauf bei persist=True (streng sequentiell):
        1. Speicherpfad bestimmen
        2. Upload (überschreibt einen früheren Bericht desselben Monats)
        3. Tracking-Eintrag schreiben
        4. lokaler Download
    Scheitert 2., passiert nichts weiter. Scheitert 3., bleibt das Objekt aus 2.
    ohne Tracking-Eintrag liegen und 4. entfällt ebenfalls. Scheitert 4., bleiben
    Objekt und Tracking-Eintrag bestehen und das Ergebnis meldet download_failed.
    """

    def __init__(
        self,
        storage: LocalObjectStorage,
        repository: SqliteRecordRepository,
        download_dir: Path,
    ):
        self.storage = storage
        self.repository = repository
        self.download_dir: Path = Path(download_dir)

    def deliver(self, artifact: bytes, request: DeliveryRequest) -> DeliveryResult:
        storage_path = None
        record = None
        try:
            if request.persist:
                storage_path, record = self._persist(artifact, request)
            target = self._deliver_locally(artifact, request)
        except MetadataWriteFailed as e:
            logger.error(e.message)
            logger.warning(f"Verwaistes Objekt ohne Tracking-Eintrag: {e.storage_path}")
            return DeliveryResult(
                status=DeliveryStatus.FAILED,
                persist=True,
                storage_path=e.storage_path,
                error_kind=e.kind,
                message=e.message,
                orphaned_storage_path=e.storage_path,
            )
        except ReportGenerationError as e:
            logger.error(e.message)
            return DeliveryResult(
                status=DeliveryStatus.FAILED,
                persist=request.persist,
                storage_path=storage_path,
                record=record,
                error_kind=e.kind,
                message=e.message,
            )

        return DeliveryResult(
            status=DeliveryStatus.DELIVERED,
            persist=request.persist,
            download_path=target,
            storage_path=storage_path,
            record=record,
        )

    def _persist(self, artifact: bytes, request: DeliveryRequest):
        storage_path = build_storage_path(request.actor_id, request.company_id, request.period)
        try:
            self.storage.upload(storage_path, artifact, content_type="application/pdf", upsert=True)
        except Exception as e:
            raise StorageUploadFailed(storage_path, str(e)) from e
        logger.info(f"Bericht nach {storage_path} hochgeladen.")

        try:
            record = self.repository.insert_generated_report(
                GeneratedArtifactRecord(
                    actor_id=request.actor_id,
                    company_id=request.company_id,
                    period=request.period,
                    report_date=request.report_date,
                    storage_path=storage_path,
                    persisted=True,
                )
            )
        except Exception as e:
            raise MetadataWriteFailed(storage_path, str(e)) from e
        return storage_path, record

    def _deliver_locally(self, artifact: bytes, request: DeliveryRequest) -> Path:
        """
        Legt das PDF als lokalen Download unter
        {download_dir}/{actor_id}/{company_id}/work-report-{YYYY-MM}.pdf ab.
        Kein Netzwerk- oder Speicherzugriff.

        Raises:
            DownloadFailed: Wenn das Zielverzeichnis oder die Datei nicht geschrieben werden kann.
        """
        target = self.download_dir / request.actor_id / request.company_id / download_filename(request.period)
        try:
            with atomic_write(target) as tmp_path:
                tmp_path.write_bytes(artifact)
        except OSError as e:
            raise DownloadFailed(str(target), str(e)) from e
        logger.success(f"Bericht als {target.name} bereitgestellt.")
        return target
