from concurrent.futures import Future, ThreadPoolExecutor, wait
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from loguru import logger

from pydantic_models.data.actor_identity import ActorIdentity
from pydantic_models.data.company_profile import CompanyProfile
from pydantic_models.data.line_item import LineItem
from pydantic_models.data.monthly_total import MonthlyTotal
from pydantic_models.data.report_config import ReportConfig, ReportTemplate
from pydantic_models.data.report_model import ReportModel
from pydantic_models.data.work_record import WorkRecord
from shared_modules.errors import NotConfigured, NotFound, NoWorkRecords, PreconditionFailed
from shared_modules.month_period import parse_period, parse_report_date

from .identity_provider import IdentityProvider
from .record_repository import SqliteRecordRepository


class ReportAggregator:
    """
    Führt Arbeitseinträge, Stundensätze, Firmendaten, Berichtseinstellungen und
    die handelnde Person zu einem ReportModel zusammen.
    Hält keinen Zustand zwischen Aufrufen und ist damit parallel nutzbar.
    """

    LOOKUP_WORKERS = 4

    def __init__(self, repository: SqliteRecordRepository, identity: IdentityProvider):
        self.repository = repository
        self.identity = identity

    def build_report_model(
        self,
        company_id: str,
        period: Any,
        report_date: Any,
        actor_id: Optional[str] = None,
    ) -> ReportModel:
        """
        Baut das ReportModel für eine Firma und einen Abrechnungsmonat.

        Die vier Lookups laufen parallel. Ausgewertet wird erst, wenn alle
        abgeschlossen sind, und zwar in fester Reihenfolge (Konfiguration, Firma,
        Arbeitseinträge, Person), damit derselbe Fehler immer gleich gemeldet wird.

        Raises:
            AuthorizationDenied: Impersonation ohne Admin-Rechte.
            NotConfigured: Keine Berichtseinstellungen für die Firma.
            NotFound: Firma, Vorlage, Person oder eine Tätigkeit fehlt.
            NoWorkRecords: Keine Arbeitseinträge im Monat.
            PreconditionFailed: Monat oder Berichtsdatum nicht lesbar.
        """
        try:
            month = parse_period(period)
            report_day = parse_report_date(report_date)
        except ValueError as e:
            raise PreconditionFailed(str(e)) from e
        user_id = self.identity.resolve_actor_id(actor_id)
        logger.debug(f"Baue Bericht für Firma {company_id}, Monat {month:%Y-%m}, Person {user_id}.")

        with ThreadPoolExecutor(max_workers=self.LOOKUP_WORKERS) as pool:
            futures: List[Future] = [
                pool.submit(self._load_config, user_id, company_id),
                pool.submit(self._load_company, company_id),
                pool.submit(self.repository.list_work_records, user_id, company_id, month),
                pool.submit(self._load_actor, user_id),
            ]
            wait(futures)

        # .result() löst den Fehler des jeweiligen Lookups erneut aus
        config, template = futures[0].result()
        company: CompanyProfile = futures[1].result()
        records: List[WorkRecord] = futures[2].result()
        actor: ActorIdentity = futures[3].result()

        if not records:
            raise NoWorkRecords(company_id, f"{month:%Y-%m}")

        line_items = self.build_line_items(records)
        model = ReportModel(
            config=config,
            template=template,
            company=company,
            actor=actor,
            period=month,
            report_date=report_day,
            line_items=line_items,
        )
        logger.info(
            f"Bericht für {company.name} ({month:%Y-%m}): {len(line_items)} Positionen, "
            f"Summe {model.total_amount}."
        )
        return model

    @staticmethod
    def build_line_items(records: List[WorkRecord]) -> List[LineItem]:
        """
        Nummeriert die Einträge aufsteigend nach Erfassungszeitpunkt, bei
        Gleichstand nach ID. Ohne zwischenzeitliches Runden.
        """
        ordered = sorted(records, key=lambda r: (r.created_at, r.id))
        items: List[LineItem] = []
        for sequence, record in enumerate(ordered, start=1):
            if record.activity is None:
                raise NotFound("Tätigkeit", record.activity_id)
            items.append(
                LineItem(
                    sequence=sequence,
                    name=record.activity.name,
                    rate=record.activity.hourly_rate,
                    hours=record.hours,
                )
            )
        return items

    def monthly_total(self, company_id: str, period: Any, actor_id: Optional[str] = None) -> MonthlyTotal:
        """
        Stunden- und Betragssumme eines Monats. Ein leerer Monat ergibt Nullen.
        """
        user_id = self.identity.resolve_actor_id(actor_id, action="Arbeitseinträge ansehen")
        records = self.repository.list_work_records(user_id, company_id, period)
        if not records:
            return MonthlyTotal()
        items = self.build_line_items(records)
        return MonthlyTotal(
            total_hours=sum((item.hours for item in items), Decimal("0")),
            total_amount=sum((item.line_total for item in items), Decimal("0")),
            record_count=len(items),
        )

    def _load_config(self, user_id: str, company_id: str) -> Tuple[ReportConfig, ReportTemplate]:
        config = self.repository.get_report_config(user_id, company_id)
        if config is None:
            raise NotConfigured(company_id)
        template = self.repository.get_report_template(config.template_id)
        if template is None:
            raise NotFound("Vorlage", config.template_id)
        return config, template

    def _load_company(self, company_id: str) -> CompanyProfile:
        company = self.repository.get_company(company_id)
        if company is None:
            raise NotFound("Firma", company_id)
        return company

    def _load_actor(self, user_id: str) -> ActorIdentity:
        actor = self.repository.get_profile(user_id)
        if actor is None:
            raise NotFound("Profil", user_id)
        return actor
