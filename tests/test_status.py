from datetime import timedelta

import pytest

from facial_enrollment.credentials import CredentialStore
from facial_enrollment.profiles import ProfileStore
from facial_enrollment.status import (
    BiometricStatus,
    employee_status,
    normalize_biometric_status,
    summarize_statuses,
)

from conftest import descriptor


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, BiometricStatus.NOT_ENROLLED),
        ([], BiometricStatus.NOT_ENROLLED),
        ({"status": "Ativo"}, BiometricStatus.ACTIVE),
        ({"status": "Inativo"}, BiometricStatus.INACTIVE),
        ({"status": "link_enviado"}, BiometricStatus.LINK_SENT),
        ({"status": "pendente_validacao"}, BiometricStatus.PENDING),
        ({"status": None}, BiometricStatus.NOT_ENROLLED),
        ("sem_cadastro", BiometricStatus.NOT_ENROLLED),
        ("Active", BiometricStatus.ACTIVE),
    ],
)
def test_single_record_shapes(raw, expected):
    assert normalize_biometric_status(raw) is expected


def test_list_prefers_active_record():
    raw = [{"status": "Inativo"}, {"status": "link_enviado"}, {"status": "Ativo"}]
    assert normalize_biometric_status(raw) is BiometricStatus.ACTIVE


def test_list_without_active_uses_first_record():
    raw = [{"status": "link_enviado"}, {"status": "Inativo"}]
    assert normalize_biometric_status(raw) is BiometricStatus.LINK_SENT


def test_unknown_label_counts_as_not_enrolled():
    assert normalize_biometric_status({"status": "???"}) is BiometricStatus.NOT_ENROLLED


def test_summary_has_every_status():
    counts = summarize_statuses([BiometricStatus.ACTIVE, BiometricStatus.ACTIVE, BiometricStatus.INACTIVE])
    assert counts[BiometricStatus.ACTIVE] == 2
    assert counts[BiometricStatus.INACTIVE] == 1
    assert counts[BiometricStatus.PENDING] == 0
    assert set(counts) == set(BiometricStatus)


def test_employee_status_follows_lifecycle(db, clock, employee):
    credentials = CredentialStore(db, clock=clock)
    profiles = ProfileStore(db, clock=clock)
    assert employee_status(db, "E1001", now=clock()) is BiometricStatus.NOT_ENROLLED

    token = credentials.issue("E1001")
    assert employee_status(db, "E1001", now=clock()) is BiometricStatus.LINK_SENT
    assert employee_status(db, "E1001", now=clock() + timedelta(hours=25)) is BiometricStatus.NOT_ENROLLED

    profiles.save("E1001", descriptor())
    credentials.consume("E1001", token)
    assert employee_status(db, "E1001", now=clock()) is BiometricStatus.ACTIVE

    profiles.disable("E1001")
    assert employee_status(db, "E1001", now=clock()) is BiometricStatus.INACTIVE
