"""
Fehlerklassen der Berichtserstellung.

    ReportGenerationError (Basis, trägt ErrorKind)
    |
    +-- PreconditionFailed
    |   +-- NotConfigured
    |   +-- NoWorkRecords
    |   +-- NotFound
    |
    +-- AuthorizationDenied
    +-- TemplateMalformed
    +-- RenderFailed
    +-- StorageUploadFailed
    +-- MetadataWriteFailed
    +-- DownloadFailed

Die einzelnen Stufen lösen diese Fehler aus. Orchestrator und ReportService
wandeln sie an ihrer Grenze in explizite Ergebniswerte (ErrorKind + Meldung) um.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    PRECONDITION_FAILED = "precondition_failed"
    NOT_CONFIGURED = "not_configured"
    NO_WORK_RECORDS = "no_work_records"
    NOT_FOUND = "not_found"
    AUTHORIZATION_DENIED = "authorization_denied"
    TEMPLATE_MALFORMED = "template_malformed"
    RENDER_FAILED = "render_failed"
    STORAGE_UPLOAD_FAILED = "storage_upload_failed"
    METADATA_WRITE_FAILED = "metadata_write_failed"
    DOWNLOAD_FAILED = "download_failed"


class ReportGenerationError(Exception):
    kind: ErrorKind = ErrorKind.PRECONDITION_FAILED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PreconditionFailed(ReportGenerationError):
    kind = ErrorKind.PRECONDITION_FAILED


class NotConfigured(PreconditionFailed):
    kind = ErrorKind.NOT_CONFIGURED

    def __init__(self, company_id: str):
        super().__init__(
            f"Keine Berichtskonfiguration für Firma {company_id} gefunden. "
            "Bitte zuerst die Berichtseinstellungen anlegen."
        )
        self.company_id = company_id


class NoWorkRecords(PreconditionFailed):
    kind = ErrorKind.NO_WORK_RECORDS

    def __init__(self, company_id: str, period: str):
        super().__init__(f"Keine Arbeitseinträge für Firma {company_id} im Monat {period}.")
        self.company_id = company_id
        self.period = period


class NotFound(PreconditionFailed):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: Optional[str]):
        super().__init__(f"{entity} {entity_id} nicht gefunden.")
        self.entity = entity
        self.entity_id = entity_id


class AuthorizationDenied(ReportGenerationError):
    kind = ErrorKind.AUTHORIZATION_DENIED


class TemplateMalformed(ReportGenerationError):
    kind = ErrorKind.TEMPLATE_MALFORMED


class RenderFailed(ReportGenerationError):
    kind = ErrorKind.RENDER_FAILED


class StorageUploadFailed(ReportGenerationError):
    kind = ErrorKind.STORAGE_UPLOAD_FAILED

    def __init__(self, storage_path: str, reason: str):
        super().__init__(f"Upload nach {storage_path} fehlgeschlagen: {reason}")
        self.storage_path = storage_path


class MetadataWriteFailed(ReportGenerationError):
    """
    Upload war erfolgreich, der Tracking-Eintrag konnte aber nicht geschrieben
    werden. Das Objekt unter storage_path ist damit verwaist.
    """
    kind = ErrorKind.METADATA_WRITE_FAILED

    def __init__(self, storage_path: str, reason: str):
        super().__init__(
            f"Bericht unter {storage_path} gespeichert, Tracking-Eintrag fehlgeschlagen: {reason}"
        )
        self.storage_path = storage_path


class DownloadFailed(ReportGenerationError):
    """Der lokale Download konnte nicht geschrieben werden."""
    kind = ErrorKind.DOWNLOAD_FAILED

    def __init__(self, target: str, reason: str):
        super().__init__(f"Download nach {target} fehlgeschlagen: {reason}")
        self.target = target
