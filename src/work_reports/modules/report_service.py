import json
from pathlib import Path
from typing import Any, List, Optional

from loguru import logger
from pydantic import BaseModel

from pydantic_models.data.generated_artifact_record import GeneratedArtifactRecord
from pydantic_models.data.monthly_total import MonthlyTotal
from pydantic_models.data.report_config import ReportConfig, ReportTemplate
from pydantic_models.data.template_node import parse_template
from shared_modules.config import Config
from shared_modules.errors import ErrorKind, NotFound, PreconditionFailed, ReportGenerationError
from shared_modules.formatting import ValueFormatter

from .artifact_delivery import (
    ArtifactDeliveryOrchestrator,
    DeliveryRequest,
    DeliveryResult,
    download_filename,
)
from .identity_provider import IdentityProvider
from .object_storage import LocalObjectStorage
from .pdf_renderer import PdfRenderer
from .record_repository import SqliteRecordRepository
from .report_aggregator import ReportAggregator
from .template_merger import merge_template


class GenerationError(BaseModel):
    kind: ErrorKind
    message: str


class GenerationResult(BaseModel):
    """
    Ergebnis eines Berichtslaufs. artifact_bytes ist nur bei vollständig
    erfolgreicher Auslieferung gesetzt, in jedem Fehlerfall None.
    """
    artifact_bytes: Optional[bytes] = None
    delivery: Optional[DeliveryResult] = None
    error: Optional[GenerationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ReportService:
    """
    Einstiegspunkt für die Berichtserstellung:
    Aggregation -> Zusammenführen mit der Vorlage -> PDF -> Auslieferung.
    """

    def __init__(
        self,
        repository: SqliteRecordRepository,
        identity: IdentityProvider,
        formatter: ValueFormatter,
        renderer: PdfRenderer,
        storage: LocalObjectStorage,
        delivery: ArtifactDeliveryOrchestrator,
        signed_url_ttl: int = 3600,
    ):
        self.repository = repository
        self.identity = identity
        self.aggregator = ReportAggregator(repository, identity)
        self.formatter = formatter
        self.renderer = renderer
        self.storage = storage
        self.delivery = delivery
        self.signed_url_ttl = signed_url_ttl

    @classmethod
    def from_config(cls, config: Config, current_user_id: str) -> "ReportService":
        """Baut den Service mit allen Abhängigkeiten aus der geladenen Konfiguration."""
        repository = SqliteRecordRepository(config.db_path)
        storage = LocalObjectStorage(
            config.storage_dir,
            bucket=config.storage.bucket,
            signing_key=(
                config.get_secret(config.storage.signing_key_env) if config.storage.signing_key_env else None
            ),
        )
        return cls(
            repository=repository,
            identity=IdentityProvider(repository, current_user_id),
            formatter=ValueFormatter(config.formatting),
            renderer=PdfRenderer(config.rendering),
            storage=storage,
            delivery=ArtifactDeliveryOrchestrator(storage, repository, config.output_dir),
            signed_url_ttl=config.storage.signed_url_ttl,
        )

    def generate_report(
        self,
        company_id: str,
        period: Any,
        report_date: Any,
        actor_id: Optional[str] = None,
        persist: bool = False,
    ) -> GenerationResult:
        """
        Erstellt den Monatsbericht und liefert ihn aus. Fehler aller Stufen
        werden als GenerationResult mit ErrorKind zurückgegeben, nicht ausgelöst.
        """
        try:
            model = self.aggregator.build_report_model(company_id, period, report_date, actor_id)
            template = parse_template(model.template.template_definition)
            document = merge_template(template, model, self.formatter)
            artifact = self.renderer.render(document, styles=model.template.styles)
        except ReportGenerationError as e:
            logger.error(f"Bericht für Firma {company_id} nicht erstellt: {e.message}")
            return GenerationResult(error=GenerationError(kind=e.kind, message=e.message))

        delivery = self.delivery.deliver(
            artifact,
            DeliveryRequest(
                actor_id=model.actor.id,
                company_id=model.company.id,
                period=model.period,
                report_date=model.report_date,
                persist=persist,
            ),
        )
        if not delivery.ok:
            return GenerationResult(
                delivery=delivery,
                error=GenerationError(kind=delivery.error_kind, message=delivery.message or ""),
            )
        return GenerationResult(artifact_bytes=artifact, delivery=delivery)

    def list_generated_reports(
        self, company_id: Optional[str] = None, actor_id: Optional[str] = None
    ) -> List[GeneratedArtifactRecord]:
        user_id = self.identity.resolve_actor_id(actor_id, action="Berichte ansehen")
        return self.repository.list_generated_reports(user_id, company_id)

    def delete_generated_report(self, report_id: str, actor_id: Optional[str] = None) -> bool:
        """
        Entfernt nur den Tracking-Eintrag. Das gespeicherte PDF bleibt erhalten.
        """
        user_id = self.identity.resolve_actor_id(actor_id, action="Berichte löschen")
        deleted = self.repository.delete_generated_report(report_id, user_id)
        if deleted:
            logger.info(f"Tracking-Eintrag {report_id} gelöscht.")
        else:
            logger.warning(f"Tracking-Eintrag {report_id} nicht gefunden.")
        return deleted

    def get_report_download_url(self, storage_path: str, expires_in: Optional[int] = None) -> str:
        return self.storage.create_signed_url(storage_path, expires_in or self.signed_url_ttl)

    def fetch_report(self, url: str) -> bytes:
        """
        Liest einen gespeicherten Bericht über einen signierten Download-Link.

        Raises:
            StorageError: Link ungültig, abgelaufen oder Objekt fehlt.
        """
        storage_path = self.storage.resolve_signed_url(url)
        logger.debug(f"Signierter Link für {storage_path} eingelöst.")
        return self.storage.download(storage_path)

    def save_report_config(
        self,
        company_id: str,
        template_id: str,
        location: Optional[str] = None,
        intro_text: Optional[str] = None,
        outro_text: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> ReportConfig:
        """
        Legt die Berichtseinstellungen für eine Firma an oder aktualisiert sie.

        Raises:
            PreconditionFailed: Firma oder Vorlage fehlt.
        """
        if not company_id or not template_id:
            raise PreconditionFailed("Bitte Firma und Vorlage auswählen.")
        user_id = self.identity.resolve_actor_id(actor_id, action="Einstellungen ändern")
        if self.repository.get_company(company_id) is None:
            raise NotFound("Firma", company_id)
        if self.repository.get_report_template(template_id) is None:
            raise NotFound("Vorlage", template_id)
        config = self.repository.upsert_report_config(
            ReportConfig(
                user_id=user_id,
                company_id=company_id,
                template_id=template_id,
                location=location,
                intro_text=intro_text,
                outro_text=outro_text,
            )
        )
        logger.success(f"Berichtseinstellungen für Firma {company_id} gespeichert.")
        return config

    def list_report_templates(self) -> List[ReportTemplate]:
        return self.repository.list_report_templates()

    def import_template(self, path: Path) -> ReportTemplate:
        """
        Importiert eine Vorlage aus einer JSON-Datei mit den Feldern
        name, template_definition und optional styles.

        Raises:
            TemplateMalformed: Wenn die Vorlage nicht verarbeitet werden kann.
            ValueError: Wenn Pflichtfelder fehlen.
        """
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, dict) or "template_definition" not in raw:
            logger.error(f"{path} enthält keine template_definition.")
            raise ValueError(f"{path} enthält keine template_definition.")
        parse_template(raw["template_definition"])
        name = raw.get("name") or path.stem
        template = self.repository.save_report_template(name, raw["template_definition"], raw.get("styles"))
        logger.success(f"Vorlage '{name}' importiert ({template.id}).")
        return template

    def monthly_total(self, company_id: str, period: Any, actor_id: Optional[str] = None) -> MonthlyTotal:
        return self.aggregator.monthly_total(company_id, period, actor_id)

    @staticmethod
    def download_filename(period: Any) -> str:
        return download_filename(period)
