from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import ADMIN, COMPANY, FREELANCER, OTHER, PERIOD, REPORT_DATE
from pydantic_models.data.activity_rate import ActivityRate
from pydantic_models.data.report_config import ReportConfig
from pydantic_models.data.work_record import WorkRecord
from shared_modules.errors import (
    AuthorizationDenied,
    ErrorKind,
    NoWorkRecords,
    NotConfigured,
    NotFound,
)
from work_reports.modules.identity_provider import IdentityProvider
from work_reports.modules.report_aggregator import ReportAggregator


@pytest.fixture
def aggregator(repository, identity):
    return ReportAggregator(repository, identity)


def _record(record_id, created_at, name="X", rate="10", hours="1"):
    return WorkRecord(
        id=record_id,
        user_id=FREELANCER,
        company_id=COMPANY,
        activity_id=f"act-{record_id}",
        period=PERIOD,
        hours=Decimal(hours),
        created_at=created_at,
        activity=ActivityRate(id=f"act-{record_id}", name=name, hourly_rate=Decimal(rate)),
    )


def test_build_report_model_line_items_and_total(aggregator):
    model = aggregator.build_report_model(COMPANY, "2025-03", REPORT_DATE)

    assert [item.sequence for item in model.line_items] == [1, 2]
    assert [item.name for item in model.line_items] == ["ActivityA", "ActivityB"]
    assert [item.line_total for item in model.line_items] == [Decimal("500"), Decimal("100")]
    assert model.total_amount == Decimal("600")
    assert model.total_hours == Decimal("15")
    assert model.company.name == "Acme GmbH"
    assert model.actor.display_name == "Erika Muster"
    assert model.period == date(2025, 3, 1)


def test_total_equals_sum_of_line_totals(aggregator):
    model = aggregator.build_report_model(COMPANY, PERIOD, REPORT_DATE)
    assert model.total_amount == sum(item.line_total for item in model.line_items)


def test_no_work_records_in_month(aggregator):
    with pytest.raises(NoWorkRecords) as exc:
        aggregator.build_report_model(COMPANY, "2025-04", REPORT_DATE)
    assert exc.value.kind == ErrorKind.NO_WORK_RECORDS


def test_missing_report_config(repository):
    repository.upsert_work_entry(OTHER, COMPANY, "a1", PERIOD, Decimal("2"))
    aggregator = ReportAggregator(repository, IdentityProvider(repository, OTHER))
    with pytest.raises(NotConfigured):
        aggregator.build_report_model(COMPANY, PERIOD, REPORT_DATE)


def test_config_error_is_reported_before_empty_month(repository):
    # Keine Konfiguration und keine Einträge: gemeldet wird immer die Konfiguration
    aggregator = ReportAggregator(repository, IdentityProvider(repository, OTHER))
    for _ in range(3):
        with pytest.raises(NotConfigured):
            aggregator.build_report_model(COMPANY, PERIOD, REPORT_DATE)


def test_unknown_company(repository, aggregator):
    template_id = repository.list_report_templates()[0].id
    repository.upsert_report_config(ReportConfig(user_id=FREELANCER, company_id="ghost", template_id=template_id))
    repository.upsert_work_entry(FREELANCER, "ghost", "a1", PERIOD, Decimal("1"))
    with pytest.raises(NotFound) as exc:
        aggregator.build_report_model("ghost", PERIOD, REPORT_DATE)
    assert "Firma" in exc.value.message


def test_work_entry_with_deleted_activity(repository, aggregator):
    repository.upsert_work_entry(FREELANCER, COMPANY, "gone", PERIOD, Decimal("1"))
    with pytest.raises(NotFound):
        aggregator.build_report_model(COMPANY, PERIOD, REPORT_DATE)


def test_line_items_ordered_by_created_at_then_id():
    same_time = datetime(2025, 3, 5, 12, 0)
    records = [
        _record("b", same_time, name="second"),
        _record("c", datetime(2025, 3, 1, 8, 0), name="first"),
        _record("d", same_time, name="third"),
    ]
    items = ReportAggregator.build_line_items(records)
    assert [item.name for item in items] == ["first", "second", "third"]
    assert [item.sequence for item in items] == [1, 2, 3]


def test_no_intermediate_rounding():
    records = [_record("a", datetime(2025, 3, 1), rate="33.335", hours="1.5")]
    items = ReportAggregator.build_line_items(records)
    assert items[0].line_total == Decimal("50.0025")


def test_impersonation_requires_admin(repository):
    aggregator = ReportAggregator(repository, IdentityProvider(repository, OTHER))
    with pytest.raises(AuthorizationDenied):
        aggregator.build_report_model(COMPANY, PERIOD, REPORT_DATE, actor_id=FREELANCER)


def test_admin_builds_report_as_target_actor(repository):
    aggregator = ReportAggregator(repository, IdentityProvider(repository, ADMIN))
    model = aggregator.build_report_model(COMPANY, PERIOD, REPORT_DATE, actor_id=FREELANCER)
    assert model.actor.id == FREELANCER
    assert model.actor.display_name == "Erika Muster"
    assert model.total_amount == Decimal("600")


def test_monthly_total(aggregator):
    total = aggregator.monthly_total(COMPANY, "2025-03")
    assert total.total_hours == Decimal("15")
    assert total.total_amount == Decimal("600")
    assert total.record_count == 2


def test_monthly_total_empty_month(aggregator):
    total = aggregator.monthly_total(COMPANY, "2025-05")
    assert total.record_count == 0
    assert total.total_amount == Decimal("0")
