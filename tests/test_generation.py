import re
import pytest
from sqlalchemy.exc import IntegrityError
from datetime import date, timedelta
from decimal import Decimal

from payroll_engine.core.exceptions import PayrollGenerationError, PayrollValidationError
from payroll_engine.models.audit_log import AuditLog
from payroll_engine.models.payroll import PayrollBatch, PayrollItem, PayrollStatus
from payroll_engine.schemas.payroll import ConflictResult, GenerationOptions, GenerationResult
from payroll_engine.services import payroll_service
from payroll_engine.services.audit import AuditService
from payroll_engine.services.directory import InMemoryEmployeeDirectory, SqlEmployeeDirectory
from payroll_engine.services.generation import (
    PayrollGenerator,
    aggregate_totals,
    default_cutoff_date,
    default_pay_date,
    validate_generation_request,
)
from payroll_engine.services.store import SqlPayrollStore, totals_from_row


def _seed(add_employee):
    add_employee("Amina Otieno", 100000, employee_id="emp-001")
    add_employee("Brian Kamau", 50000, employee_id="emp-002")
    add_employee("Cynthia Mwangi", 20000, employee_id="emp-003")


def _generator(db_session, directory=None, **kwargs):
    return PayrollGenerator(
        SqlPayrollStore(db_session),
        directory or SqlEmployeeDirectory(db_session),
        **kwargs
    )


def test_generate_persists_draft_batch(db_session, add_employee):
    _seed(add_employee)
    result = payroll_service.generate_payroll(db_session, 7, 2025)

    assert isinstance(result, GenerationResult)
    assert result.success is True
    assert result.message == "Payroll for July 2025 generated successfully"
    assert re.match(r"^PAYROLL-2025-07-[0-9A-F]{12}$", result.batch_id)
    assert result.summary.total_employees == 3
    assert result.summary.errors_count == 0

    batch = db_session.query(PayrollBatch).one()
    assert batch.id == result.batch_id
    assert batch.status == PayrollStatus.DRAFT.value
    assert batch.pay_period == "July 2025"
    assert batch.generated_by == "system"
    assert batch.pay_date == date(2025, 8, 1)
    assert batch.cutoff_date == date(2025, 7, 31)
    assert [item.employee_id for item in batch.items] == ["emp-001", "emp-002", "emp-003"]
    assert Decimal(str(batch.total_net_salary)) == result.summary.totals.total_net_salary


def test_generation_is_audited(db_session, add_employee):
    _seed(add_employee)
    result = payroll_service.generate_payroll(db_session, 7, 2025, GenerationOptions(generated_by="hr.ops"))

    entry = db_session.query(AuditLog).filter(AuditLog.action == "generate_payroll").one()
    assert entry.entity_id == result.batch_id
    assert entry.actor == "hr.ops"
    assert entry.details["employees"] == 3


def test_second_generation_returns_conflict(db_session, add_employee):
    _seed(add_employee)
    first = payroll_service.generate_payroll(db_session, 7, 2025)
    second = payroll_service.generate_payroll(db_session, 7, 2025)

    assert isinstance(second, ConflictResult)
    assert second.success is False
    assert second.batch_id == first.batch_id
    assert second.existing.status == "draft"
    assert second.existing.total_employees == 3
    assert db_session.query(PayrollBatch).count() == 1


def test_concurrent_generation_keeps_first_writer(db_session, add_employee, monkeypatch):
    _seed(add_employee)
    first = payroll_service.generate_payroll(db_session, 7, 2025)

    # Second caller read the period before the first one committed
    store = SqlPayrollStore(db_session)
    real_find = store.find_by_period
    calls = []

    def stale_find(month, year):
        calls.append((month, year))
        return None if len(calls) == 1 else real_find(month, year)

    monkeypatch.setattr(store, "find_by_period", stale_find)
    generator = PayrollGenerator(store, SqlEmployeeDirectory(db_session), audit=AuditService(db_session))
    second = generator.generate(7, 2025)

    assert isinstance(second, ConflictResult)
    assert second.batch_id == first.batch_id
    assert db_session.query(PayrollBatch).count() == 1
    # The losing attempt's audit entry was rolled back with it
    assert db_session.query(AuditLog).filter(AuditLog.action == "generate_payroll").count() == 1


def test_different_periods_coexist(db_session, add_employee):
    _seed(add_employee)
    payroll_service.generate_payroll(db_session, 7, 2025)
    payroll_service.generate_payroll(db_session, 8, 2025)
    assert db_session.query(PayrollBatch).count() == 2


def test_preview_matches_generate_and_persists_nothing(db_session, add_employee):
    _seed(add_employee)
    preview = payroll_service.preview_payroll(db_session, 7, 2025)
    assert db_session.query(PayrollBatch).count() == 0
    assert preview.summary.batch_id is None
    assert len(preview.items) == 3

    result = payroll_service.generate_payroll(db_session, 7, 2025)
    assert preview.summary.totals == result.summary.totals
    assert preview.summary.totals == totals_from_row(db_session.query(PayrollBatch).one())


def test_totals_are_sums_of_items(db_session, add_employee):
    _seed(add_employee)
    preview = payroll_service.preview_payroll(db_session, 7, 2025)
    totals = preview.summary.totals
    assert totals.total_employees == len(preview.items)
    assert totals.total_net_salary == sum(i.net_salary for i in preview.items)
    assert totals.total_tax == sum(i.tax_amount for i in preview.items)
    assert totals.total_pension == sum(i.pension_amount for i in preview.items)
    assert totals.total_benefits == sum(i.total_benefits for i in preview.items)
    assert aggregate_totals(preview.items) == totals


def test_one_bad_employee_does_not_abort_the_batch(db_session, make_record):
    directory = InMemoryEmployeeDirectory([
        make_record("emp-001", "Amina Otieno", 100000),
        make_record("emp-002", "Bad Salary", "abc"),
        make_record("emp-003", "Cynthia Mwangi", 20000),
    ])
    result = _generator(db_session, directory).generate(7, 2025)

    assert isinstance(result, GenerationResult)
    assert result.summary.total_employees == 2
    assert result.summary.errors_count == 1
    assert len(result.metadata.errors) == 1
    assert result.metadata.errors[0].startswith("Failed to calculate payroll for Bad Salary (emp-002)")
    assert result.metadata.warnings == ["Skipped Bad Salary due to calculation error"]

    batch = db_session.query(PayrollBatch).one()
    assert [item.employee_id for item in batch.items] == ["emp-001", "emp-003"]
    assert batch.generation_metadata["errors"] == result.metadata.errors


def test_empty_roster_is_fatal(db_session):
    with pytest.raises(PayrollGenerationError) as exc:
        payroll_service.generate_payroll(db_session, 7, 2025)
    assert "No active employees" in exc.value.message
    assert db_session.query(PayrollBatch).count() == 0


def test_all_employees_failing_is_fatal(db_session, make_record):
    directory = InMemoryEmployeeDirectory([
        make_record("emp-001", "First", "abc"),
        make_record("emp-002", "Second", None),
    ])
    with pytest.raises(PayrollGenerationError) as exc:
        _generator(db_session, directory).generate(7, 2025)
    assert len(exc.value.details["errors"]) == 2
    assert db_session.query(PayrollBatch).count() == 0


def test_inactive_and_unpaid_employees_are_skipped(db_session, add_employee):
    add_employee("Active", 30000, employee_id="emp-001")
    add_employee("Left", 30000, employee_id="emp-002", is_active=False)
    add_employee("Unpaid", 0, employee_id="emp-003")
    add_employee("Unknown Flag", 30000, employee_id="emp-004", is_active=None)

    preview = payroll_service.preview_payroll(db_session, 7, 2025)
    assert [item.employee_id for item in preview.items] == ["emp-001", "emp-004"]


def test_in_memory_directory_eligibility(make_record):
    directory = InMemoryEmployeeDirectory([
        make_record("emp-001", "Active", 30000),
        make_record("emp-002", "Left", 30000, is_active=False),
        make_record("emp-003", "Unpaid", 0),
        make_record("emp-004", "Garbled", "n/a"),
    ])
    assert [r.id for r in directory.list_active()] == ["emp-001", "emp-004"]


def test_items_follow_employee_id_order_with_threads(db_session, make_record):
    ids = ["emp-%03d" % n for n in (7, 2, 9, 1, 5, 3, 8, 4, 6)]
    directory = InMemoryEmployeeDirectory([make_record(i, f"Employee {i}", 30000 + n * 1000) for n, i in enumerate(ids)])

    threaded = _generator(db_session, directory, max_workers=4).preview(7, 2025)
    sequential = _generator(db_session, directory, max_workers=1).preview(7, 2025)

    assert [item.employee_id for item in threaded.items] == sorted(ids)
    assert threaded.items == sequential.items
    assert threaded.summary.totals == sequential.summary.totals


def test_per_employee_adjustments(db_session, add_employee):
    add_employee("Full Month", 22000, employee_id="emp-001")
    add_employee("Half Month", 22000, employee_id="emp-002")
    options = GenerationOptions(
        working_days=22,
        employee_options={"emp-002": {"days_worked": 11, "extra_advance": 500}},
    )
    preview = payroll_service.preview_payroll(db_session, 7, 2025, options)
    full, half = preview.items
    assert full.adjusted_gross == Decimal("22000.00")
    assert half.adjusted_gross == Decimal("11000.00")
    assert half.advances == Decimal("500.00")
    assert preview.summary.totals.total_advances == Decimal("500.00")


def test_validation_reports_every_violation(db_session, add_employee):
    _seed(add_employee)
    with pytest.raises(PayrollValidationError) as exc:
        payroll_service.generate_payroll(db_session, 13, 1999, GenerationOptions(working_days=0))
    assert exc.value.violations == [
        "Month must be between 1 and 12",
        "Year must be between 2020 and 2050",
        "Working days must be between 1 and 31",
    ]
    assert db_session.query(PayrollBatch).count() == 0


def test_pay_date_rules():
    today = date(2025, 7, 15)
    with pytest.raises(PayrollValidationError) as exc:
        validate_generation_request(7, 2025, GenerationOptions(pay_date=date(2025, 7, 1)), today=today)
    assert exc.value.violations == ["Pay date cannot be in the past"]

    with pytest.raises(PayrollValidationError) as exc:
        validate_generation_request(
            7, 2025,
            GenerationOptions(pay_date=date(2025, 8, 1), cutoff_date=date(2025, 8, 5)),
            today=today
        )
    assert exc.value.violations == ["Cutoff date cannot be after the pay date"]

    validate_generation_request(7, 2025, GenerationOptions(pay_date=date(2025, 8, 1), cutoff_date=date(2025, 7, 31)), today=today)


def test_explicit_dates_and_notes_are_stored(db_session, add_employee):
    _seed(add_employee)
    pay_date = date.today() + timedelta(days=10)
    cutoff = date.today() + timedelta(days=3)
    payroll_service.generate_payroll(
        db_session, 7, 2025,
        GenerationOptions(pay_date=pay_date, cutoff_date=cutoff, notes="Includes bonus adjustments")
    )
    batch = db_session.query(PayrollBatch).one()
    assert batch.pay_date == pay_date
    assert batch.cutoff_date == cutoff
    assert batch.notes == "Includes bonus adjustments"


def test_default_dates():
    assert default_pay_date(12, 2025) == date(2026, 1, 1)
    assert default_pay_date(6, 2025) == date(2025, 7, 1)
    assert default_cutoff_date(2, 2024) == date(2024, 2, 29)
    assert default_cutoff_date(2, 2025) == date(2025, 2, 28)


def test_unreadable_directory_row_fails_only_that_employee(db_session, add_employee):
    add_employee("Amina Otieno", 100000, employee_id="emp-001")
    add_employee("Negative Sacco", 50000, employee_id="emp-002", deductions=[{"type": "Sacco", "amount": Decimal("-10")}])
    add_employee("Cynthia Mwangi", 20000, employee_id="emp-003")

    result = payroll_service.generate_payroll(db_session, 7, 2025)

    assert isinstance(result, GenerationResult)
    assert result.summary.total_employees == 2
    assert len(result.metadata.errors) == 1
    assert result.metadata.errors[0].startswith("Failed to calculate payroll for Negative Sacco (emp-002): invalid employee record")
    assert result.metadata.warnings == ["Skipped Negative Sacco due to calculation error"]
    batch = db_session.query(PayrollBatch).one()
    assert [item.employee_id for item in batch.items] == ["emp-001", "emp-003"]


def test_unreadable_directory_row_is_kept_on_roster(db_session, add_employee):
    add_employee("Blank Deduction", 30000, employee_id="emp-001", deductions=[{"type": "", "amount": Decimal("100")}])
    records = SqlEmployeeDirectory(db_session).list_active()
    assert [r.id for r in records] == ["emp-001"]
    assert records[0].load_error.startswith("invalid employee record (deductions.0.type")


def test_non_integer_month_is_a_validation_error(db_session, add_employee):
    _seed(add_employee)
    with pytest.raises(PayrollValidationError) as exc:
        payroll_service.generate_payroll(db_session, "7", 2025)
    assert exc.value.violations == ["Month must be between 1 and 12"]

    with pytest.raises(PayrollValidationError):
        payroll_service.preview_payroll(db_session, 7, "2025")
    assert db_session.query(PayrollBatch).count() == 0


def test_other_integrity_errors_are_not_period_conflicts(db_session):
    store = SqlPayrollStore(db_session)
    batch = PayrollBatch(id="PAYROLL-2025-07-BROKEN", month=7, year=2025, pay_period="July 2025", pay_date=date(2025, 8, 1))
    batch.items.append(PayrollItem(
        position=0,
        employee_id="emp-001",
        employee_name=None,
        working_days=22,
        days_worked=Decimal("22"),
        basic_salary=Decimal("1000"),
        adjusted_gross=Decimal("1000"),
        taxable_income=Decimal("1000"),
        total_benefits=Decimal("0"),
        total_deductions=Decimal("0"),
        net_salary=Decimal("1000"),
    ))
    with pytest.raises(IntegrityError):
        store.create(batch)
    assert store.find_by_period(7, 2025) is None
