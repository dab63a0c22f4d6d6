import json
from datetime import date

import pytest

from conftest import (
    ADMIN,
    COMPANY,
    FREELANCER,
    OTHER,
    PERIOD,
    REPORT_DATE,
    BrokenMetadataRepository,
    BrokenStorage,
)
from shared_modules.errors import AuthorizationDenied, ErrorKind, NotFound, PreconditionFailed
from work_reports.modules.object_storage import StorageError


def test_generate_ephemeral_report(service, storage, repository):
    result = service.generate_report(COMPANY, "2025-03", REPORT_DATE)

    assert result.ok
    assert result.artifact_bytes.startswith(b"%PDF")
    assert result.delivery.download_path.name == "work-report-2025-03.pdf"
    assert result.delivery.storage_path is None
    assert repository.list_generated_reports(FREELANCER) == []


def test_generate_persistent_report(service, storage):
    result = service.generate_report(COMPANY, PERIOD, REPORT_DATE, persist=True)

    assert result.ok
    assert result.delivery.storage_path == "u1/c1/2025-03.pdf"
    assert storage.exists("u1/c1/2025-03.pdf")
    reports = service.list_generated_reports()
    assert [r.storage_path for r in reports] == ["u1/c1/2025-03.pdf"]


def test_generate_reports_errors_as_values(service):
    result = service.generate_report(COMPANY, "2025-06", REPORT_DATE)

    assert not result.ok
    assert result.artifact_bytes is None
    assert result.error.kind == ErrorKind.NO_WORK_RECORDS


def test_generate_impersonation_without_admin(service_factory):
    result = service_factory(OTHER).generate_report(COMPANY, PERIOD, REPORT_DATE, actor_id=FREELANCER)
    assert result.error.kind == ErrorKind.AUTHORIZATION_DENIED


def test_admin_generates_for_freelancer(service_factory, storage):
    result = service_factory(ADMIN).generate_report(
        COMPANY, PERIOD, REPORT_DATE, actor_id=FREELANCER, persist=True
    )
    assert result.ok
    assert result.delivery.storage_path == "u1/c1/2025-03.pdf"
    assert result.delivery.record.actor_id == FREELANCER


def test_render_failure_from_stored_template(service, repository):
    template = repository.list_report_templates()[0]
    repository.save_report_template(template.name, {"content": ["x"], "pageSize": "NOPE"})
    result = service.generate_report(COMPANY, PERIOD, REPORT_DATE)
    assert result.error.kind == ErrorKind.RENDER_FAILED
    assert result.artifact_bytes is None


def test_metadata_failure_reported_with_orphan(service_factory, repository, storage):
    broken = BrokenMetadataRepository(repository.db_path)
    result = service_factory(repo=broken).generate_report(COMPANY, PERIOD, REPORT_DATE, persist=True)

    assert result.error.kind == ErrorKind.METADATA_WRITE_FAILED
    assert result.artifact_bytes is None
    assert result.delivery.orphaned_storage_path == "u1/c1/2025-03.pdf"
    assert storage.exists("u1/c1/2025-03.pdf")


def test_upload_failure_discards_artifact(service_factory, repository):
    result = service_factory(store=BrokenStorage()).generate_report(COMPANY, PERIOD, REPORT_DATE, persist=True)

    assert not result.ok
    assert result.error.kind == ErrorKind.STORAGE_UPLOAD_FAILED
    assert result.artifact_bytes is None
    assert result.delivery.download_path is None
    assert repository.list_generated_reports(FREELANCER) == []


def test_unwritable_download_dir_returns_error_value(service_factory, tmp_path):
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory")

    result = service_factory(download_dir=blocker).generate_report(COMPANY, PERIOD, REPORT_DATE)

    assert result.error.kind == ErrorKind.DOWNLOAD_FAILED
    assert result.artifact_bytes is None


@pytest.mark.parametrize(
    "period, report_date", [("not-a-month", REPORT_DATE), (PERIOD, "someday"), (None, REPORT_DATE)]
)
def test_unparsable_dates_return_error_value(service, period, report_date):
    result = service.generate_report(COMPANY, period, report_date)

    assert result.error.kind == ErrorKind.PRECONDITION_FAILED
    assert result.artifact_bytes is None
    assert result.delivery is None


def test_delete_generated_report_keeps_object(service, storage):
    service.generate_report(COMPANY, PERIOD, REPORT_DATE, persist=True)
    report = service.list_generated_reports()[0]

    assert service.delete_generated_report(report.id)
    assert service.list_generated_reports() == []
    assert storage.exists(report.storage_path)
    assert not service.delete_generated_report(report.id)


def test_list_other_users_reports_requires_admin(service_factory):
    with pytest.raises(AuthorizationDenied):
        service_factory(OTHER).list_generated_reports(actor_id=FREELANCER)


def test_download_url(service, storage):
    result = service.generate_report(COMPANY, PERIOD, REPORT_DATE, persist=True)
    url = service.get_report_download_url("u1/c1/2025-03.pdf")

    assert storage.resolve_signed_url(url) == "u1/c1/2025-03.pdf"
    assert service.fetch_report(url) == result.artifact_bytes


def test_fetch_report_rejects_tampered_url(service):
    service.generate_report(COMPANY, PERIOD, REPORT_DATE, persist=True)
    url = service.get_report_download_url("u1/c1/2025-03.pdf")
    with pytest.raises(StorageError):
        service.fetch_report(url.replace("token=", "token=x"))


def test_save_report_config_upserts(service, repository):
    template_id = repository.list_report_templates()[0].id
    saved = service.save_report_config(COMPANY, template_id, location="Hamburg", intro_text="")

    assert saved.id == repository.get_report_config(FREELANCER, COMPANY).id
    stored = repository.get_report_config(FREELANCER, COMPANY)
    assert stored.location == "Hamburg"
    assert stored.intro_text is None


def test_save_report_config_requires_company_and_template(service, repository):
    with pytest.raises(PreconditionFailed):
        service.save_report_config(COMPANY, "")
    with pytest.raises(NotFound):
        service.save_report_config(COMPANY, "no-such-template")


def test_import_template(service, tmp_path):
    path = tmp_path / "monthly.json"
    path.write_text(json.dumps({"name": "Monthly", "template_definition": {"content": ["{{activitiesTable}}"]}}))

    template = service.import_template(path)

    assert template.name == "Monthly"
    assert "Monthly" in [t.name for t in service.list_report_templates()]


def test_import_template_rejects_missing_definition(service, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({"name": "Broken"}))
    with pytest.raises(ValueError):
        service.import_template(path)


def test_monthly_total_and_filename(service):
    total = service.monthly_total(COMPANY, PERIOD)
    assert total.record_count == 2
    assert service.download_filename(date(2025, 3, 1)) == "work-report-2025-03.pdf"
