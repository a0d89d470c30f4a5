import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from facial_enrollment import crud
from facial_enrollment.errors import NoSample, PersistenceError, ProfileNotFound
from facial_enrollment.credentials import CredentialStore
from facial_enrollment.models import BiometricProfile, CredentialState, Employee, ProfileStatus
from facial_enrollment.profiles import ProfileStore
from facial_enrollment.seed import DEV_EMPLOYEES, seed_employees

from conftest import descriptor


def test_save_creates_active_profile(db, clock, employee):
    profile = ProfileStore(db, clock=clock).save("E1001", descriptor(0.3), company_id="C001")

    assert profile.status == ProfileStatus.ACTIVE
    assert profile.descriptor == list(descriptor(0.3))
    assert profile.platform == "Web"
    assert profile.company_id == "C001"


def test_reenrollment_overwrites_single_row(db, clock, employee):
    profiles = ProfileStore(db, clock=clock)
    profiles.save("E1001", descriptor(0.1), company_id="C001")
    profiles.disable("E1001")
    profiles.save("E1001", descriptor(0.2))

    rows = db.query(BiometricProfile).all()
    assert len(rows) == 1
    assert rows[0].status == ProfileStatus.ACTIVE
    assert rows[0].descriptor == list(descriptor(0.2))
    # company kept when the new write does not name one
    assert rows[0].company_id == "C001"


def test_save_rejects_empty_descriptor(db, clock, employee):
    with pytest.raises(NoSample):
        ProfileStore(db, clock=clock).save("E1001", [])


def test_disable_flips_status(db, clock, employee):
    profiles = ProfileStore(db, clock=clock)
    profiles.save("E1001", descriptor())
    profiles.disable("E1001")

    assert profiles.get_active("E1001") is None
    assert crud.get_profile(db, "E1001").status == ProfileStatus.INACTIVE


def test_disable_without_profile(db, clock, employee):
    with pytest.raises(ProfileNotFound):
        ProfileStore(db, clock=clock).disable("E1001")


def test_failed_commit_surfaces_persistence_error(db, clock, employee, monkeypatch):
    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(PersistenceError):
        ProfileStore(db, clock=clock).save("E1001", descriptor())


def test_list_employees_filters_by_company(db):
    seed_employees(db)
    assert len(crud.list_employees(db)) == len(DEV_EMPLOYEES)
    assert [e.employee_id for e in crud.list_employees(db, company_id="C002")] == ["E1003"]


def test_seed_is_skipped_when_employees_exist(db):
    assert seed_employees(db) == len(DEV_EMPLOYEES)
    assert seed_employees(db) == 0
    assert db.query(Employee).count() == len(DEV_EMPLOYEES)


def test_credential_state_without_row_is_not_issued(db, clock, employee):
    assert crud.get_credential_state(db, "E1001") == CredentialState.NOT_ISSUED
    CredentialStore(db, clock=clock).issue("E1001")
    assert crud.get_credential_state(db, "E1001") == CredentialState.ISSUED


def test_save_with_token_consumes_credential(db, clock, employee):
    token = CredentialStore(db, clock=clock).issue("E1001")
    ProfileStore(db, clock=clock).save("E1001", descriptor(), token=token)

    assert crud.get_credential_state(db, "E1001") == CredentialState.CONSUMED
    assert crud.get_active_profile(db, "E1001") is not None


def test_failed_consume_rolls_back_profile(db, clock, employee, monkeypatch):
    token = CredentialStore(db, clock=clock).issue("E1001")
    monkeypatch.setattr(crud, "_consume_stmt", lambda employee_id, token: text("UPDATE no_such_table SET x = 1"))

    with pytest.raises(PersistenceError):
        ProfileStore(db, clock=clock).save("E1001", descriptor(), token=token)

    assert crud.get_profile(db, "E1001") is None
    assert crud.get_credential_state(db, "E1001") == CredentialState.ISSUED
