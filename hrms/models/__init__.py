# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    company, employee,
    salary_component, salary_profile, payroll_settings, tax_slab, payroll,
    leave_type, leave_policy, leave_balance, leave_request,
    audit_log,
)

# Explicit class exports for cleaner imports
from .company import Company
from .employee import Employee, EmployeeCategory, EmployeeStatus
from .salary_component import SalaryComponent, ComponentKind, CalculationType
from .salary_profile import EmployeeSalaryProfile, EmployeeSalaryComponent
from .payroll_settings import PayrollSettings
from .tax_slab import TaxSlab
from .payroll import PayrollRun, PayrollRunStatus, Payslip, PayslipStatus, PayslipLineItem
from .leave_type import LeaveType
from .leave_policy import LeavePolicy
from .leave_balance import LeaveBalance
from .leave_request import LeaveRequest, LeaveStatus, RequestType
from .audit_log import AuditLog

__all__ = [
    "Company",
    "Employee", "EmployeeCategory", "EmployeeStatus",
    "SalaryComponent", "ComponentKind", "CalculationType",
    "EmployeeSalaryProfile", "EmployeeSalaryComponent",
    "PayrollSettings",
    "TaxSlab",
    "PayrollRun", "PayrollRunStatus", "Payslip", "PayslipStatus", "PayslipLineItem",
    "LeaveType",
    "LeavePolicy",
    "LeaveBalance",
    "LeaveRequest", "LeaveStatus", "RequestType",
    "AuditLog",
]
