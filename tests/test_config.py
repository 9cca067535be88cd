import pytest
from pydantic import ValidationError

from archiflow.config import Settings


def test_default_costs() -> None:
    settings = Settings(_env_file=None)

    assert settings.cost_for("transcribe") == 1
    assert settings.cost_for("generate_report") == 2
    assert settings.cost_for("refine_report") == 1
    assert settings.cost_for("convert_pdf") == 1


def test_unknown_operation() -> None:
    with pytest.raises(KeyError):
        Settings(_env_file=None).cost_for("teleport")


def test_costs_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, cost_transcribe=0)


def test_costs_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("COST_GENERATE_REPORT", "5")
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "10")

    settings = Settings(_env_file=None)

    assert settings.cost_for("generate_report") == 5
    assert settings.rate_limit_max_requests == 10


def test_firebase_configured() -> None:
    assert Settings(_env_file=None).firebase_configured is False
    assert Settings(_env_file=None, firebase_cert_path="/tmp/cred.json").firebase_configured is True
