import io
import subprocess
import zipfile

import pytest
from fastapi.testclient import TestClient

from app import app, get_orchestrator
from config import SafetyLimits
from conftest import typescript_project
from services.ingestion_orchestrator import IngestionOrchestrator


def _zip_bytes(files: dict) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def workspaces(tmp_path):
    return tmp_path / "workspaces"


@pytest.fixture
def make_client(workspaces):
    def _make(limits=None):
        orchestrator = IngestionOrchestrator(limits or SafetyLimits(), workspaces)
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def _upload(client, data: bytes, filename="project.zip"):
    return client.post(
        "/api/analyze/zip",
        files={"project_zip": (filename, data, "application/zip")},
    )


def test_health(make_client):
    response = make_client().get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_zip_analysis(make_client, workspaces):
    response = _upload(make_client(), _zip_bytes(typescript_project()))

    assert response.status_code == 200
    body = response.json()
    assert body["stats"]["totalFiles"] == 6
    assert body["stats"]["skippedFiles"] == 0
    assert {"type": "file", "path": "package.json"} in body["structure"]
    assert all("content" not in f for f in body["files"])
    assert list(workspaces.iterdir()) == []


def test_zip_only(make_client):
    response = _upload(make_client(), b"hello", filename="project.tar.gz")

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_FILE_TYPE"


def test_zip_bomb_status(make_client, workspaces):
    client = make_client(SafetyLimits(max_file_count=3))
    files = {f"f{i}.js": "1;\n" for i in range(5)}

    response = _upload(client, _zip_bytes(files))

    assert response.status_code == 413
    body = response.json()
    assert body["code"] == "ZIP_BOMB_DETECTED"
    assert "zip bomb" in body["details"].lower()
    assert list(workspaces.iterdir()) == []


def test_corrupt_zip_status(make_client):
    response = _upload(make_client(), b"not a zip at all")

    assert response.status_code == 400
    assert response.json()["code"] == "EXTRACTION_FAILED"


def test_upload_size_cap(make_client, workspaces, monkeypatch):
    monkeypatch.setattr("app.MAX_UPLOAD_BYTES", 10)

    response = _upload(make_client(), _zip_bytes(typescript_project()))

    assert response.status_code == 413
    assert response.json()["detail"]["code"] == "UPLOAD_TOO_LARGE"
    assert list(workspaces.iterdir()) == []


def test_github_missing_url(make_client):
    response = make_client().post("/api/analyze/github", json={})

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "MISSING_REPO_URL"


def test_github_invalid_url(make_client):
    response = make_client().post(
        "/api/analyze/github", json={"repoUrl": "https://gitlab.com/octocat/Hello-World"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_URL"


def test_github_analysis(make_client, fake_git, workspaces):
    response = make_client().post(
        "/api/analyze/github", json={"repoUrl": "https://github.com/octocat/Hello-World"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["repository"]["name"] == "Hello-World"
    assert body["repository"]["url"] == "https://github.com/octocat/Hello-World"
    assert body["repository"]["size"] > 0
    assert body["stats"]["totalFiles"] == 2
    assert list(workspaces.iterdir()) == []


@pytest.mark.parametrize(
    "error, status, code",
    [
        (subprocess.TimeoutExpired(cmd="git", timeout=60), 408, "CLONE_TIMEOUT"),
        (subprocess.CalledProcessError(128, "git", stderr="remote: Repository not found."), 404, "REPO_NOT_FOUND"),
        (subprocess.CalledProcessError(128, "git", stderr="fatal: early EOF"), 502, "CLONE_FAILED"),
    ],
)
def test_github_clone_errors(make_client, fake_git, error, status, code):
    fake_git.error = error

    response = make_client().post(
        "/api/analyze/github", json={"repoUrl": "https://github.com/octocat/Hello-World"}
    )

    assert response.status_code == status
    assert response.json()["code"] == code


def test_github_too_large(make_client, fake_git):
    fake_git.files["big.js"] = "x" * 5000
    client = make_client(SafetyLimits(max_repo_size_bytes=1000))

    response = client.post(
        "/api/analyze/github", json={"repoUrl": "https://github.com/octocat/Hello-World"}
    )

    assert response.status_code == 413
    assert response.json()["code"] == "REPO_TOO_LARGE"
