"""Unit tests for environment-driven configuration."""

from pathlib import Path

import pytest

from backend.src.services import config as config_module


@pytest.fixture(autouse=True)
def restore_config_cache():
    """
    Ensure configuration cache is cleared between tests.
    """
    config_module.reload_config()
    yield
    config_module.reload_config()


def test_get_config_allows_missing_jwt_secret(monkeypatch, tmp_path: Path) -> None:
    """Config loads without a JWT secret and creates the data directory."""
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "data" / "workspace.db"))

    cfg = config_module.reload_config()

    assert cfg.jwt_secret_key is None
    assert cfg.database_path == (tmp_path / "data" / "workspace.db").resolve()
    assert cfg.database_path.parent.is_dir()


def test_get_config_rejects_short_jwt_secret(monkeypatch, tmp_path: Path) -> None:
    """Secrets shorter than the minimum are rejected."""
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "workspace.db"))
    monkeypatch.setenv("JWT_SECRET_KEY", "short")

    with pytest.raises(ValueError):
        config_module.reload_config()


def test_llm_key_falls_back_to_openrouter_variable(monkeypatch, tmp_path: Path) -> None:
    """OPENROUTER_API_KEY is used when LLM_API_KEY is unset."""
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "workspace.db"))
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    monkeypatch.setenv("OPENROUTER_API_KEY", "  or-key  ")

    cfg = config_module.reload_config()

    assert cfg.llm_api_key == "or-key"


def test_flags_and_limits_from_environment(monkeypatch, tmp_path: Path) -> None:
    """Boolean flags and integer limits are parsed from the environment."""
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "workspace.db"))
    monkeypatch.setenv("SEED_DEMO_DATA", "false")
    monkeypatch.setenv("ENABLE_LOCAL_MODE", "0")
    monkeypatch.setenv("SEARCH_RESULT_LIMIT", "25")
    monkeypatch.setenv("LOCAL_DEV_USER_ID", "7")

    cfg = config_module.reload_config()

    assert cfg.seed_demo_data is False
    assert cfg.enable_local_mode is False
    assert cfg.search_result_limit == 25
    assert cfg.local_dev_user_id == 7


def test_search_limit_out_of_range_is_rejected(monkeypatch, tmp_path: Path) -> None:
    """A zero search limit is invalid."""
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "workspace.db"))
    monkeypatch.setenv("SEARCH_RESULT_LIMIT", "0")

    with pytest.raises(ValueError):
        config_module.reload_config()
