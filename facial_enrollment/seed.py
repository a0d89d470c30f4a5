# facial_enrollment/seed.py
from sqlalchemy.orm import Session

from .db import SessionLocal, init_db
from .logging_utils import get_logger
from . import models

logger = get_logger(__name__)

DEV_EMPLOYEES = [
    ("E1001", "Alice Perera", "C001"),
    ("E1002", "Sumith Jayasuriya", "C001"),
    ("E1003", "Rushan Silva", "C002"),
]


def seed_employees(db: Session) -> int:
    """Insert development employees when the table is empty. Returns rows added."""
    if db.query(models.Employee).first():
        logger.info("Employees already exist, skipping insert")
        return 0
    db.add_all(
        models.Employee(employee_id=employee_id, name=name, company_id=company_id)
        for employee_id, name, company_id in DEV_EMPLOYEES
    )
    db.commit()
    logger.info("Inserted %d test employees", len(DEV_EMPLOYEES))
    return len(DEV_EMPLOYEES)


if __name__ == "__main__":
    init_db()
    session = SessionLocal()
    try:
        seed_employees(session)
    finally:
        session.close()
