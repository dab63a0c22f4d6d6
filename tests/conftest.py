import sqlite3
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest
from cryptography.fernet import Fernet

from pydantic_models.data.actor_identity import ActorRole
from pydantic_models.data.report_config import ReportConfig
from shared_modules.config import Config
from shared_modules.formatting import ValueFormatter
from work_reports.modules.artifact_delivery import ArtifactDeliveryOrchestrator
from work_reports.modules.identity_provider import IdentityProvider
from work_reports.modules.object_storage import LocalObjectStorage, StorageError
from work_reports.modules.pdf_renderer import PdfRenderer
from work_reports.modules.record_repository import SqliteRecordRepository
from work_reports.modules.report_service import ReportService

FREELANCER = "u1"
ADMIN = "admin1"
OTHER = "u2"
COMPANY = "c1"
PERIOD = date(2025, 3, 1)
REPORT_DATE = date(2025, 4, 2)

TEMPLATE_DEFINITION = {
    "info": {"title": "Work Report"},
    "content": [
        {"text": "{{workerName}}", "style": "header"},
        {"text": "{{companyName}} ({{taxNumber}}), {{city}}"},
        {"text": "{{location}}, {{reportDate}}"},
        {"text": "{{introText}}"},
        "{{activitiesTable}}",
        {"text": "Total amount: {{totalAmount}}", "bold": True},
        {"text": "{{outroText}}"},
    ],
    "styles": {"header": {"fontSize": 16, "bold": True}},
}


class BrokenMetadataRepository(SqliteRecordRepository):
    """Repository, dessen Tracking-Tabelle nicht beschreibbar ist."""

    def insert_generated_report(self, record):
        raise sqlite3.OperationalError("database is locked")


class BrokenStorage:
    """Objektspeicher, der jeden Upload ablehnt."""

    def upload(self, path, data, content_type="application/pdf", upsert=True):
        raise StorageError("disk full")


@pytest.fixture(autouse=True)
def reset_config():
    Config.reset()
    yield
    Config.reset()


@pytest.fixture
def repository(tmp_path: Path) -> SqliteRecordRepository:
    """SQLite-Datenbank mit einem Freelancer, einer Firma, zwei Tätigkeiten und einer Vorlage."""
    repo = SqliteRecordRepository(tmp_path / "data" / "test.sqlite3")
    repo.init_schema()
    repo.add_profile("Erika Muster", ActorRole.FREELANCER, user_id=FREELANCER)
    repo.add_profile("Ada Admin", ActorRole.ADMIN, user_id=ADMIN)
    repo.add_profile("Max Other", ActorRole.FREELANCER, user_id=OTHER)
    repo.add_company(FREELANCER, "Acme GmbH", tax_id="DE123", city="Berlin", company_id=COMPANY)
    repo.add_activity(FREELANCER, "ActivityA", Decimal("50"), activity_id="a1")
    repo.add_activity(FREELANCER, "ActivityB", Decimal("20"), activity_id="a2")
    repo.upsert_work_entry(
        FREELANCER, COMPANY, "a1", PERIOD, Decimal("10"), created_at=datetime(2025, 3, 3, 9, 0), entry_id="w1"
    )
    repo.upsert_work_entry(
        FREELANCER, COMPANY, "a2", PERIOD, Decimal("5"), created_at=datetime(2025, 3, 4, 9, 0), entry_id="w2"
    )
    template = repo.save_report_template("Standard", TEMPLATE_DEFINITION, {"header": {"fontSize": 18}})
    repo.upsert_report_config(
        ReportConfig(
            user_id=FREELANCER,
            company_id=COMPANY,
            template_id=template.id,
            location="Berlin",
            intro_text="Hello",
            outro_text="Thanks",
        )
    )
    return repo


@pytest.fixture
def identity(repository) -> IdentityProvider:
    return IdentityProvider(repository, FREELANCER)


@pytest.fixture
def formatter() -> ValueFormatter:
    return ValueFormatter()


@pytest.fixture
def storage(tmp_path: Path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path / "storage", signing_key=Fernet.generate_key().decode())


@pytest.fixture
def service_factory(repository, formatter, storage, tmp_path: Path):
    """Baut einen ReportService für eine angemeldete Person."""

    def _build(
        user_id: str = FREELANCER,
        repo: SqliteRecordRepository = None,
        store: LocalObjectStorage = None,
        download_dir: Path = None,
    ) -> ReportService:
        repo = repo or repository
        store = store or storage
        return ReportService(
            repository=repo,
            identity=IdentityProvider(repo, user_id),
            formatter=formatter,
            renderer=PdfRenderer(),
            storage=store,
            delivery=ArtifactDeliveryOrchestrator(store, repo, download_dir or tmp_path / "output"),
        )

    return _build


@pytest.fixture
def service(service_factory) -> ReportService:
    return service_factory()
