import pytest
from fastapi import Depends, FastAPI, HTTPException
from fastapi.testclient import TestClient
from rental.config import get_settings
from rental.deps import get_current_user_id, get_page_params
from rental.utils.pagination import PageParams


@pytest.mark.asyncio
async def test_get_current_user_id_accepts_numeric_header() -> None:
    assert await get_current_user_id(x_user_id="123") == 123


@pytest.mark.asyncio
async def test_get_current_user_id_rejects_missing_header() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user_id(x_user_id=None)
    assert excinfo.value.status_code == 401


@pytest.mark.parametrize("value", ["abc", "0", "-4", "1.5"])
@pytest.mark.asyncio
async def test_get_current_user_id_rejects_invalid_header(value: str) -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user_id(x_user_id=value)
    assert excinfo.value.status_code == 400


def test_protected_route_reads_header() -> None:
    app = FastAPI()

    @app.get("/protected")
    async def protected(user_id: int = Depends(get_current_user_id)) -> dict[str, int]:
        return {"user_id": user_id}

    client = TestClient(app)
    assert client.get("/protected", headers={"X-User-Id": "7"}).json() == {"user_id": 7}
    assert client.get("/protected").status_code == 401


def test_page_params_follow_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEFAULT_PER_PAGE", "5")
    monkeypatch.setenv("MAX_PER_PAGE", "20")
    get_settings.cache_clear()
    try:
        assert get_page_params(page=None, per_page=None) == PageParams(page=1, per_page=5)
        assert get_page_params(page=2, per_page=50) == PageParams(page=2, per_page=20)
    finally:
        get_settings.cache_clear()


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ECHO_SQL", "true")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("DOCS_URL", "")
    get_settings.cache_clear()
    try:
        settings = get_settings()
    finally:
        get_settings.cache_clear()
    assert settings.echo_sql is True
    assert settings.log_level == "DEBUG"
    assert settings.docs_url is None
