from datetime import date

import pytest

from conftest import COMPANY, FREELANCER, BrokenMetadataRepository, BrokenStorage
from shared_modules.errors import ErrorKind
from work_reports.modules.artifact_delivery import (
    ArtifactDeliveryOrchestrator,
    DeliveryRequest,
    DeliveryStatus,
    build_storage_path,
    download_filename,
)

ARTIFACT = b"%PDF-1.4 test"


def _request(persist: bool, company_id: str = COMPANY, actor_id: str = FREELANCER) -> DeliveryRequest:
    return DeliveryRequest(
        actor_id=actor_id, company_id=company_id, period="2025-03", report_date=date(2025, 4, 2), persist=persist
    )


def test_build_storage_path():
    assert build_storage_path("u1", "c1", "2025-03") == "u1/c1/2025-03.pdf"
    assert build_storage_path("u1", "c1", date(2025, 3, 17)) == "u1/c1/2025-03.pdf"


def test_download_filename():
    assert download_filename(date(2025, 3, 1)) == "work-report-2025-03.pdf"


def test_ephemeral_delivery_touches_no_storage(repository, storage, tmp_path):
    orchestrator = ArtifactDeliveryOrchestrator(storage, repository, tmp_path / "out")
    result = orchestrator.deliver(ARTIFACT, _request(persist=False))

    assert result.ok
    assert result.download_path == tmp_path / "out" / "u1" / "c1" / "work-report-2025-03.pdf"
    assert result.download_path.read_bytes() == ARTIFACT
    assert not storage.exists("u1/c1/2025-03.pdf")
    assert repository.list_generated_reports(FREELANCER) == []


def test_persistent_delivery(repository, storage, tmp_path):
    orchestrator = ArtifactDeliveryOrchestrator(storage, repository, tmp_path / "out")
    result = orchestrator.deliver(ARTIFACT, _request(persist=True))

    assert result.status == DeliveryStatus.DELIVERED
    assert result.storage_path == "u1/c1/2025-03.pdf"
    assert storage.download("u1/c1/2025-03.pdf") == ARTIFACT
    assert result.download_path.exists()

    records = repository.list_generated_reports(FREELANCER)
    assert len(records) == 1
    assert records[0].storage_path == "u1/c1/2025-03.pdf"
    assert records[0].persisted
    assert records[0].period == date(2025, 3, 1)
    assert records[0].company_name == "Acme GmbH"


def test_persisting_same_month_overwrites_object(repository, storage, tmp_path):
    orchestrator = ArtifactDeliveryOrchestrator(storage, repository, tmp_path / "out")
    orchestrator.deliver(ARTIFACT, _request(persist=True))
    orchestrator.deliver(b"%PDF-1.4 second", _request(persist=True))

    assert storage.download("u1/c1/2025-03.pdf") == b"%PDF-1.4 second"
    assert len(repository.list_generated_reports(FREELANCER)) == 2


def test_metadata_failure_leaves_orphan_and_skips_download(repository, storage, tmp_path):
    broken = BrokenMetadataRepository(repository.db_path)
    orchestrator = ArtifactDeliveryOrchestrator(storage, broken, tmp_path / "out")

    result = orchestrator.deliver(ARTIFACT, _request(persist=True))

    assert not result.ok
    assert result.error_kind == ErrorKind.METADATA_WRITE_FAILED
    assert result.orphaned_storage_path == "u1/c1/2025-03.pdf"
    assert storage.exists("u1/c1/2025-03.pdf")
    assert result.download_path is None
    assert not (tmp_path / "out" / "u1" / "c1" / "work-report-2025-03.pdf").exists()
    assert repository.list_generated_reports(FREELANCER) == []


def test_upload_failure_stops_pipeline(repository, tmp_path):
    orchestrator = ArtifactDeliveryOrchestrator(BrokenStorage(), repository, tmp_path / "out")

    result = orchestrator.deliver(ARTIFACT, _request(persist=True))

    assert result.error_kind == ErrorKind.STORAGE_UPLOAD_FAILED
    assert result.orphaned_storage_path is None
    assert result.download_path is None
    assert repository.list_generated_reports(FREELANCER) == []


def test_same_month_downloads_for_different_companies_and_actors_coexist(repository, storage, tmp_path):
    orchestrator = ArtifactDeliveryOrchestrator(storage, repository, tmp_path / "out")

    first = orchestrator.deliver(b"%PDF c1", _request(persist=False))
    second = orchestrator.deliver(b"%PDF c2", _request(persist=False, company_id="c2"))
    third = orchestrator.deliver(b"%PDF u2", _request(persist=False, actor_id="u2"))

    assert len({first.download_path, second.download_path, third.download_path}) == 3
    assert first.download_path.read_bytes() == b"%PDF c1"
    assert second.download_path.read_bytes() == b"%PDF c2"
    assert third.download_path.read_bytes() == b"%PDF u2"
    assert {p.name for p in (first.download_path, second.download_path)} == {"work-report-2025-03.pdf"}


def test_unwritable_download_dir_is_reported(repository, storage, tmp_path):
    blocker = tmp_path / "out"
    blocker.write_text("not a directory")
    orchestrator = ArtifactDeliveryOrchestrator(storage, repository, blocker)

    result = orchestrator.deliver(ARTIFACT, _request(persist=False))

    assert not result.ok
    assert result.error_kind == ErrorKind.DOWNLOAD_FAILED
    assert result.download_path is None


def test_download_failure_after_persist_keeps_object_and_record(repository, storage, tmp_path):
    blocker = tmp_path / "out"
    blocker.write_text("not a directory")
    orchestrator = ArtifactDeliveryOrchestrator(storage, repository, blocker)

    result = orchestrator.deliver(ARTIFACT, _request(persist=True))

    assert result.error_kind == ErrorKind.DOWNLOAD_FAILED
    assert result.storage_path == "u1/c1/2025-03.pdf"
    assert result.record is not None
    assert result.orphaned_storage_path is None
    assert storage.exists("u1/c1/2025-03.pdf")
    assert len(repository.list_generated_reports(FREELANCER)) == 1
