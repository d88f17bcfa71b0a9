import logging

import pytest

from conftest import FixedGenerator, make_transcript
from services import transcript_service, verification_service
from services.errors import SecretMismatch


@pytest.fixture
def approved(people):
    req = make_transcript(first_name="Neha", last_name="Patil")
    transcript_service.approve_transcript(
        people["hod"], req.id, generator=FixedGenerator(("8841", "a1b2c3"))
    )
    return req


def test_preview_returns_only_name(approved):
    assert verification_service.preview("a1b2c3") == {"name": "Neha Patil"}


def test_matching_secret_returns_full_record(approved, people):
    record = verification_service.verify("a1b2c3", "8841")

    assert record["name"] == "Neha Patil"
    assert record["prn"] == "PRN2020001"
    assert record["status"] == "approved"
    assert record["approved_by"] == "Dr. Hod"
    assert record["transcript_url"]
    assert [s["semester"] for s in record["semesters"]] == [1, 2, 3]
    assert "verification_code" not in record
    assert "8841" not in str(record)


@pytest.mark.parametrize("candidate", [None, "", "9999", "8841 ", " 8841", "88410", "884"])
def test_wrong_or_missing_secret_is_rejected(approved, candidate):
    with pytest.raises(SecretMismatch) as exc:
        verification_service.verify("a1b2c3", candidate)
    assert exc.value.message == "Invalid verification code."


def test_unknown_code_looks_like_wrong_secret(approved):
    with pytest.raises(SecretMismatch) as missing:
        verification_service.verify("zzzzzz", "8841")
    with pytest.raises(SecretMismatch) as wrong:
        verification_service.verify("a1b2c3", "0000")

    assert missing.value.to_dict() == wrong.value.to_dict()
    assert missing.value.status_code == wrong.value.status_code

    with pytest.raises(SecretMismatch):
        verification_service.preview("zzzzzz")


def test_pending_request_is_not_reachable(people):
    make_transcript()
    with pytest.raises(SecretMismatch):
        verification_service.preview("")
    with pytest.raises(SecretMismatch):
        verification_service.verify(None, None)


def test_failed_attempt_is_logged(approved, caplog):
    with caplog.at_level(logging.WARNING, logger="services.verification_service"):
        with pytest.raises(SecretMismatch):
            verification_service.verify("a1b2c3", "9999")
    assert "verification failed" in caplog.text


def test_secrets_match_is_exact():
    assert verification_service.secrets_match("AbC1", "AbC1")
    assert not verification_service.secrets_match("AbC1", "abc1")
    assert not verification_service.secrets_match(None, "x")
    assert not verification_service.secrets_match("x", None)
