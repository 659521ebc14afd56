import json
from pathlib import Path

from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient
import pytest

from branch_helper.api.deps import get_config_snapshot
from branch_helper.core.errors import _collect_endpoints, register_exception_handlers
from branch_helper.main import app
from branch_helper.services.config_service import ConfigService
from conftest import requires_git


@pytest.fixture
def client():
    app.dependency_overrides[get_config_snapshot] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


def _use_config(tmp_path: Path, payload: dict) -> ConfigService:
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(payload), encoding="utf-8")
    service = ConfigService(config_file)
    app.dependency_overrides[get_config_snapshot] = service.try_load
    return service


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["version"]


@requires_git
def test_create_branch_then_duplicate(client: TestClient, repo: Path) -> None:
    first = client.post(
        "/create-branch",
        json={"branch_name": "feat/login", "project_path": str(repo)},
    )
    second = client.post(
        "/create-branch",
        json={"branch_name": "feat/login", "project_path": str(repo)},
    )

    assert first.status_code == 200
    assert first.json()["previous_branch"] == "main"
    assert first.json()["current_branch"] == "feat/login"
    assert first.json()["checked_out"] is True

    assert second.status_code == 409
    assert second.json()["error"]["code"] == "BRANCH_ALREADY_EXISTS"

    branches = client.post("/list-branches", json={"project_path": str(repo)}).json()
    assert branches["current"] == "feat/login"
    assert set(branches["local"]) == {"feat/login", "main"}
    assert branches["count"] == 2


@requires_git
def test_git_status_route(client: TestClient, repo: Path) -> None:
    response = client.post("/git-status", json={"project_path": str(repo)})

    assert response.status_code == 200
    body = response.json()
    assert body["current_branch"] == "main"
    assert body["is_clean"] is True
    assert body["has_changes"] is False


@requires_git
def test_validate_repo_route(client: TestClient, repo: Path) -> None:
    response = client.post("/validate-repo", json={"project_path": str(repo)})

    assert response.status_code == 200
    assert response.json()["valid"] is True
    assert response.json()["git_version"].startswith("git version")


def test_validate_missing_path(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/validate-repo", json={"project_path": str(tmp_path / "nope")})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "PATH_NOT_FOUND"


def test_validate_plain_directory(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/validate-repo", json={"project_path": str(tmp_path)})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "NOT_A_GIT_REPOSITORY"


def test_project_path_is_required_without_config(client: TestClient) -> None:
    response = client.post("/git-status", json={})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "PROJECT_PATH_REQUIRED"


def test_empty_branch_name_fails_validation(client: TestClient, tmp_path: Path) -> None:
    response = client.post(
        "/create-branch",
        json={"branch_name": "", "project_path": str(tmp_path)},
    )

    assert response.status_code == 422


@requires_git
def test_configured_project_path_is_used(client: TestClient, repo: Path, tmp_path: Path) -> None:
    _use_config(tmp_path, {"projectPath": str(repo)})

    response = client.post("/create-branch", json={"branch_name": "feat/from-config"})

    assert response.status_code == 200
    assert response.json()["path"] == str(repo)
    assert response.json()["current_branch"] == "feat/from-config"


@requires_git
def test_strict_branch_names_from_config(client: TestClient, repo: Path, tmp_path: Path) -> None:
    _use_config(tmp_path, {"projectPath": str(repo), "settings": {"strictBranchNames": True}})

    response = client.post("/create-branch", json={"branch_name": "Random Name"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_BRANCH_NAME"


def test_load_config_hides_secret_by_default(
    client: TestClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    service = _use_config(tmp_path, {"geminiApiKey": "secret-key", "projectPath": "/work/p"})
    monkeypatch.setattr("branch_helper.api.routes.config_service", service)

    hidden = client.get("/load-config").json()
    shown = client.get("/load-config", params={"include_secrets": "true"}).json()

    assert hidden["has_api_key"] is True
    assert hidden["api_key"] is None
    assert hidden["project_path"] == "/work/p"
    assert shown["api_key"] == "secret-key"


def test_load_config_missing_file(
    client: TestClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        "branch_helper.api.routes.config_service",
        ConfigService(tmp_path / "config.json"),
    )

    response = client.get("/load-config")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "CONFIG_NOT_FOUND"


def test_unknown_route_lists_endpoints(client: TestClient) -> None:
    response = client.get("/does-not-exist")

    assert response.status_code == 404
    error = response.json()["error"]
    assert error["code"] == "NOT_FOUND"
    assert "POST /create-branch" in error["details"]["available_endpoints"]
    assert "GET /health" in error["details"]["available_endpoints"]


def test_system_info(client: TestClient) -> None:
    response = client.get("/system-info")

    assert response.status_code == 200
    body = response.json()
    assert body["platform"]
    assert isinstance(body["git_installed"], bool)
    assert body["git_message"]


def test_unknown_route_lists_endpoints_of_nested_routers() -> None:
    inner = APIRouter()

    @inner.post("/inner-action")
    def inner_action() -> dict:
        return {}

    outer = APIRouter()
    outer.include_router(inner)
    nested_app = FastAPI()
    nested_app.include_router(outer)
    register_exception_handlers(nested_app)

    response = TestClient(nested_app).get("/missing")

    assert response.status_code == 404
    assert response.json()["error"]["details"]["available_endpoints"] == ["POST /inner-action"]


def test_endpoint_listing_walks_router_containers() -> None:
    class _Route:
        def __init__(self, methods: set, path: str) -> None:
            self.methods = methods
            self.path = path

    class _Container:
        def __init__(self, routes: list) -> None:
            self.routes = routes

    routes = [
        _Route({"GET", "HEAD"}, "/health"),
        _Container([_Route({"POST"}, "/create-branch"), _Container([_Route({"GET"}, "/deep")])]),
    ]
    endpoints: list[str] = []

    _collect_endpoints(routes, endpoints)

    assert endpoints == ["GET /health", "POST /create-branch", "GET /deep"]
