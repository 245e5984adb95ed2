# tests/test_settings.py
import pytest
from pydantic import ValidationError

from duet_chat.core.settings import Settings


def test_secret_key_is_required(monkeypatch) -> None:
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(ValidationError) as excinfo:
        Settings(_env_file=None)
    assert "SECRET_KEY" in str(excinfo.value)


def test_secret_key_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", "from-env")
    assert Settings(_env_file=None).secret_key == "from-env"
