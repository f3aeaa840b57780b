import io
import zipfile
import pytest
from datetime import date
from decimal import Decimal

from hrms.core.exceptions import (
    ConflictError, InvalidTransitionError, NotFoundError, PayrollProcessingError, ValidationError
)
from hrms.core.tenant import TenantContext
from hrms.models.payroll import PayrollRun, Payslip, PayslipLineItem
from hrms.models.payroll_settings import PayrollSettings
from hrms.services import company_service, payroll_service, payslip_documents, salary_profile_service

APRIL = (date(2026, 4, 1), date(2026, 4, 30), date(2026, 4, 30))


@pytest.fixture
def second_employee(db_session, ctx):
    return company_service.create_employee(db_session, ctx, {
        "full_name": "Ravi Kumar",
        "email": "ravi@alphacorp.com",
        "department_name": "Operations",
        "category": "confirmed",
        "date_of_joining": date(2021, 7, 1),
    })


@pytest.fixture
def salaries(db_session, ctx, employee, second_employee):
    salary_profile_service.upsert_salary_profile(db_session, ctx, employee.id, {
        "component_values": {"BASIC": 20000, "PT": 200},
        "bank_name": "State Bank",
        "bank_account_number": "123456789012",
        "pan_number": "ABCDE1234F",
    })
    salary_profile_service.upsert_salary_profile(db_session, ctx, second_employee.id, {
        "component_values": {"BASIC": 10000},
    })
    return employee, second_employee


def run_april(db_session, ctx):
    return payroll_service.run_payroll(db_session, ctx, *APRIL)


def test_run_payroll_computes_payslips(db_session, ctx, salaries):
    run = run_april(db_session, ctx)

    assert run.status == "processed"
    assert run.employee_count == 2
    assert run.total_gross == Decimal("45000")
    assert run.total_deductions == Decimal("3433")
    assert run.total_net == Decimal("41567")
    assert run.total_employer_cost == Decimal("48608")

    asha, ravi = run.payslips
    # BASIC 20000 + HRA 40% + DA 10%; PF capped at the 15000 wage ceiling
    assert asha.gross_earnings == Decimal("30000")
    assert [item.component_code for item in asha.items] == ["BASIC", "HRA", "DA", "PF", "PT"]
    assert {i.component_code: i.amount for i in asha.items}["PF"] == Decimal("1800")
    assert asha.employer_esi == Decimal("0")
    assert asha.net_pay == Decimal("28000")

    # 15000 gross is under the ESI ceiling
    assert ravi.gross_earnings == Decimal("15000")
    assert {i.component_code: i.amount for i in ravi.items}["ESI"] == Decimal("113")
    assert ravi.employer_esi == Decimal("488")
    assert ravi.net_pay == Decimal("13567")


def test_payslip_line_items_balance(db_session, ctx, salaries):
    run = run_april(db_session, ctx)
    for payslip in run.payslips:
        earnings = sum(i.amount for i in payslip.items if i.type == "earning")
        deductions = sum(i.amount for i in payslip.items if i.type == "deduction")
        assert earnings == payslip.gross_earnings
        assert deductions == payslip.total_deductions
        assert payslip.net_pay == payslip.gross_earnings - payslip.total_deductions


def test_payslip_snapshot_keeps_identifiers_encrypted(db_session, ctx, salaries):
    run = run_april(db_session, ctx)
    asha = run.payslips[0]
    assert asha.bank_account_number != "123456789012"

    view = payroll_service.payslip_to_dict(asha)
    assert view["bank_account_number"] == "XXXXXXXX9012"
    assert view["pan_number"] == "XXXXXX234F"


def test_same_period_cannot_run_twice(db_session, ctx, salaries):
    run_april(db_session, ctx)
    with pytest.raises(ConflictError):
        run_april(db_session, ctx)
    assert db_session.query(PayrollRun).count() == 1


def test_overlapping_period_conflicts(db_session, ctx, salaries):
    run_april(db_session, ctx)
    with pytest.raises(ConflictError):
        payroll_service.run_payroll(db_session, ctx, date(2026, 4, 15), date(2026, 5, 14), date(2026, 5, 15))


def test_run_in_progress_blocks_second_run(db_session, ctx, salaries):
    with payroll_service._company_run_lock(ctx.company_id):
        with pytest.raises(ConflictError) as exc:
            run_april(db_session, ctx)
    assert "in progress" in exc.value.message
    assert db_session.query(PayrollRun).count() == 0

    # Released once the holder finishes
    assert run_april(db_session, ctx).status == "processed"


def test_run_lock_is_per_company(db_session, ctx, salaries):
    other = company_service.create_company(db_session, "Beta Corp")
    with payroll_service._company_run_lock(other.id):
        run = run_april(db_session, ctx)
    assert run.company_id == ctx.company_id


def test_run_lock_is_dropped_after_run(db_session, ctx, salaries):
    run_april(db_session, ctx)
    assert ctx.company_id not in payroll_service._company_locks


def test_cancelled_period_can_run_again(db_session, ctx, salaries):
    run = run_april(db_session, ctx)
    payroll_service.cancel_run(db_session, ctx, run.id)
    rerun = run_april(db_session, ctx)
    assert rerun.id != run.id
    assert db_session.query(Payslip).count() == 2


def test_failure_rolls_back_whole_run(db_session, ctx, salaries, monkeypatch):
    original = payroll_service.compute_statutory
    calls = []

    def flaky(*args, **kwargs):
        calls.append(1)
        if len(calls) == 2:
            raise RuntimeError("boom")
        return original(*args, **kwargs)

    monkeypatch.setattr(payroll_service, "compute_statutory", flaky)
    with pytest.raises(PayrollProcessingError) as exc:
        run_april(db_session, ctx)

    assert "Ravi Kumar" in exc.value.message
    assert db_session.query(PayrollRun).count() == 0
    assert db_session.query(Payslip).count() == 0
    assert db_session.query(PayslipLineItem).count() == 0


def test_run_without_profiles_is_rejected(db_session, ctx, employee):
    with pytest.raises(ValidationError):
        run_april(db_session, ctx)
    assert db_session.query(PayrollRun).count() == 0


def test_invalid_period_rejected(db_session, ctx, salaries):
    with pytest.raises(ValidationError):
        payroll_service.run_payroll(db_session, ctx, date(2026, 4, 30), date(2026, 4, 1), date(2026, 4, 30))


def test_missing_settings_skip_statutory_with_warning(db_session, ctx, salaries):
    db_session.query(PayrollSettings).delete()
    db_session.commit()

    run = run_april(db_session, ctx)
    assert run.warnings
    for payslip in run.payslips:
        assert {i.component_code for i in payslip.items}.isdisjoint({"PF", "ESI", "TDS"})
    assert run.total_gross == Decimal("45000")
    assert run.total_deductions == Decimal("200")


def test_high_earner_gets_tds(db_session, ctx, employee):
    salary_profile_service.upsert_salary_profile(db_session, ctx, employee.id, {
        "component_values": {"BASIC": 100000},
    })
    run = run_april(db_session, ctx)
    payslip = run.payslips[0]
    # 150000 gross, 1.8M a year under the default new-regime slabs
    assert payslip.taxable_income == Decimal("1800000")
    assert payslip.tds_amount == Decimal("19167")
    assert [i.component_code for i in payslip.items][-1] == "TDS"


def test_approve_then_pay(db_session, ctx, salaries):
    run = run_april(db_session, ctx)

    with pytest.raises(InvalidTransitionError):
        payroll_service.mark_run_paid(db_session, ctx, run.id)

    run = payroll_service.approve_run(db_session, ctx, run.id)
    assert run.status == "approved"
    assert run.approved_by == ctx.user_id
    assert run.approved_at is not None

    run = payroll_service.mark_run_paid(db_session, ctx, run.id)
    assert run.status == "paid"
    assert all(p.status == "paid" for p in run.payslips)

    with pytest.raises(InvalidTransitionError):
        payroll_service.cancel_run(db_session, ctx, run.id)


def test_cancel_discards_payslips(db_session, ctx, salaries):
    run = run_april(db_session, ctx)
    run = payroll_service.cancel_run(db_session, ctx, run.id)
    assert run.status == "cancelled"
    assert db_session.query(Payslip).count() == 0
    assert db_session.query(PayslipLineItem).count() == 0


def test_delete_only_processed_or_cancelled(db_session, ctx, salaries):
    run = run_april(db_session, ctx)
    payroll_service.approve_run(db_session, ctx, run.id)
    with pytest.raises(ConflictError):
        payroll_service.delete_run(db_session, ctx, run.id)

    other = payroll_service.run_payroll(db_session, ctx, date(2026, 5, 1), date(2026, 5, 31), date(2026, 5, 31))
    payroll_service.delete_run(db_session, ctx, other.id)
    assert db_session.query(PayrollRun).count() == 1


def test_run_report(db_session, ctx, salaries):
    report = payroll_service.build_run_report(run_april(db_session, ctx))
    departments = {row["department_name"]: row for row in report["departments"]}
    assert departments["Engineering"]["net"] == Decimal("28000")
    assert departments["Operations"]["employee_count"] == 1
    assert report["statutory"]["employee_pf"] == Decimal("3120")
    assert report["statutory"]["employer_pf"] == Decimal("3120")
    assert report["statutory"]["employee_esi"] == Decimal("113")
    assert report["statutory"]["employer_esi"] == Decimal("488")
    assert report["statutory"]["tds"] == Decimal("0")


def test_payslip_documents(db_session, ctx, salaries):
    run = run_april(db_session, ctx)
    html = payslip_documents.render_payslip_html(run.payslips[0]).decode("utf-8")
    assert "Asha Rao" in html
    assert "XXXXXXXX9012" in html
    assert "123456789012" not in html

    archive = zipfile.ZipFile(io.BytesIO(payslip_documents.export_run_payslips_zip(run)))
    names = archive.namelist()
    assert len(names) == 2
    assert all(name.startswith("Payslip_2026_04_") for name in names)


def test_runs_are_tenant_scoped(db_session, ctx, salaries):
    run = run_april(db_session, ctx)
    other = company_service.create_company(db_session, "Beta Corp")
    with pytest.raises(NotFoundError):
        payroll_service.get_run(db_session, TenantContext(company_id=other.id), run.id)
