"""Seed a demo company with two employees, salary profiles and leave balances."""
from datetime import date

from hrms.core.tenant import Role, TenantContext
from hrms.database import SessionLocal, init_db
from hrms.models.company import Company
from hrms.services import company_service, leave_service, salary_profile_service

DEMO_EMPLOYEES = [
    {
        "full_name": "Asha Rao",
        "email": "asha@demo.example.com",
        "department_name": "Engineering",
        "designation": "Engineer",
        "category": "confirmed",
        "date_of_joining": date(2020, 1, 6),
        "values": {"BASIC": 20000, "PT": 200},
    },
    {
        "full_name": "Ravi Kumar",
        "email": "ravi@demo.example.com",
        "department_name": "Finance",
        "designation": "Analyst",
        "category": "probation",
        "date_of_joining": date(2024, 6, 1),
        "values": {"BASIC": 10000},
    },
]


def seed():
    init_db()
    db = SessionLocal()
    try:
        company = db.query(Company).filter(Company.slug == "demo-company").first()
        if company:
            print(f"Demo company already exists (id={company.id})")
            return

        company = company_service.create_company(db, "Demo Company")
        print(f"Created company: {company.name} (id={company.id})")
        ctx = TenantContext(company_id=company.id, role=Role.HR_ADMIN)

        for row in DEMO_EMPLOYEES:
            data = dict(row)
            values = data.pop("values")
            employee = company_service.create_employee(db, ctx, data)
            salary_profile_service.upsert_salary_profile(db, ctx, employee.id, {
                "component_values": values,
                "effective_from": date(date.today().year, 1, 1),
            })
            print(f" - {employee.full_name}: {values}")

        count = leave_service.initialize_leave_balances(db, ctx, date.today().year)
        print(f"Initialized {count} leave balances")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
