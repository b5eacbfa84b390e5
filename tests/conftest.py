import pytest
import os
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["PAYROLL_MAX_WORKERS"] = "4"

from payroll_engine.database import Base, get_db
from payroll_engine.main import app
from payroll_engine.schemas.payroll import EmployeeRecord
from fastapi.testclient import TestClient

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def engine():
    """
    Fresh in-memory database per test.

    A period conflict rolls the session back, which would also discard an
    outer test transaction, so tests get their own database instead.
    """
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def add_employee(db_session):
    """Helper fixture to insert employees into the directory tables."""
    from payroll_engine.models.employee import Employee, EmployeeDeduction

    counter = {"n": 0}

    def _add_employee(name, gross_salary, employee_id=None, deductions=(), **fields):
        counter["n"] += 1
        employee = Employee(
            id=employee_id or f"emp-{counter['n']:03d}",
            name=name,
            employee_number=fields.pop("employee_number", f"E{counter['n']:04d}"),
            gross_salary=Decimal(str(gross_salary)),
            **fields
        )
        for d in deductions:
            employee.deductions.append(EmployeeDeduction(**d))
        db_session.add(employee)
        db_session.commit()
        return employee

    return _add_employee


@pytest.fixture(scope="function")
def make_record():
    """Helper fixture to build in-memory roster records."""
    def _make_record(employee_id, name, gross_salary, **fields):
        return EmployeeRecord(id=employee_id, name=name, gross_salary=gross_salary, **fields)
    return _make_record


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
