"""Unit tests for AuthService JWT signing and the local dev token."""

from datetime import timedelta
from pathlib import Path

import pytest

from backend.src.models.auth import JWTPayload
from backend.src.services import config as config_module
from backend.src.services.auth import AuthError, AuthService


@pytest.fixture(autouse=True)
def restore_config_cache():
    """Clear the config cache around each test."""
    config_module.reload_config()
    yield
    config_module.reload_config()


@pytest.fixture
def db_env(monkeypatch, tmp_path: Path) -> None:
    """Point the database at tmp_path and clear ENVIRONMENT."""
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "workspace.db"))
    monkeypatch.delenv("ENVIRONMENT", raising=False)


def test_auth_service_requires_secret(monkeypatch, db_env) -> None:
    """Signing without JWT_SECRET_KEY fails with missing_jwt_secret."""
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)

    cfg = config_module.reload_config()
    service = AuthService(config=cfg)

    with pytest.raises(AuthError) as excinfo:
        service.create_jwt(123)

    assert excinfo.value.error == "missing_jwt_secret"


def test_auth_service_signs_and_validates_with_secret(monkeypatch, db_env) -> None:
    """A signed token validates back to its user id."""
    monkeypatch.setenv("JWT_SECRET_KEY", "a-secure-secret-value-123")

    cfg = config_module.reload_config()
    service = AuthService(config=cfg)

    token = service.create_jwt(123)
    payload = service.validate_jwt(token)

    assert payload.sub == "123"
    assert service.user_id_from_payload(payload) == 123


def test_expired_token_is_rejected(monkeypatch, db_env) -> None:
    """Expired tokens raise token_expired."""
    monkeypatch.setenv("JWT_SECRET_KEY", "a-secure-secret-value-123")

    service = AuthService(config=config_module.reload_config())
    token = service.create_jwt(5, expires_in=timedelta(seconds=-30))

    with pytest.raises(AuthError) as excinfo:
        service.validate_jwt(token)

    assert excinfo.value.error == "token_expired"


def test_local_dev_token_maps_to_configured_user(monkeypatch, db_env) -> None:
    """The local dev token resolves to LOCAL_DEV_USER_ID."""
    monkeypatch.setenv("ENABLE_LOCAL_MODE", "true")
    monkeypatch.setenv("LOCAL_DEV_TOKEN", "dev-token")
    monkeypatch.setenv("LOCAL_DEV_USER_ID", "4")
    monkeypatch.setenv("JWT_SECRET_KEY", "a-secure-secret-value-123")

    service = AuthService(config=config_module.reload_config())
    payload = service.validate_jwt("dev-token")

    assert service.user_id_from_payload(payload) == 4


def test_local_dev_token_ignored_outside_local_mode(monkeypatch, db_env) -> None:
    """Without local mode the dev token is just an invalid JWT."""
    monkeypatch.setenv("ENABLE_LOCAL_MODE", "false")
    monkeypatch.setenv("LOCAL_DEV_TOKEN", "dev-token")
    monkeypatch.setenv("JWT_SECRET_KEY", "a-secure-secret-value-123")

    service = AuthService(config=config_module.reload_config())

    with pytest.raises(AuthError) as excinfo:
        service.validate_jwt("dev-token")

    assert excinfo.value.error == "invalid_token"


@pytest.mark.parametrize("sub", ["local-dev", "0", "-3"])
def test_non_numeric_subject_is_rejected(sub: str) -> None:
    """Subjects must be positive integers."""
    payload = JWTPayload(sub=sub, iat=0, exp=0)

    with pytest.raises(AuthError):
        AuthService.user_id_from_payload(payload)
