"""
Shared fixtures: tree/zip builders and a stand-in for the git subprocess.
"""
import subprocess
import zipfile
from pathlib import Path

import pytest

from config import SafetyLimits

PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x02\x00\x00\x00\x90wS\xde"
)

PACKAGE_JSON = '{\n  "name": "demo",\n  "version": "1.0.0"\n}\n'


def write_tree(root: Path, files: dict):
    for rel_path, content in files.items():
        target = root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
    return root


def build_zip(path: Path, files: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for rel_path, content in files.items():
            zf.writestr(rel_path, content)
    return path


def typescript_project() -> dict:
    files = {"package.json": PACKAGE_JSON}
    for i in range(5):
        files[f"src/module{i}.ts"] = f"export const value{i} = {i};\n"
    return files


class FakeGit:
    """Replaces subprocess.run: writes a small checkout, then fails if told to."""

    def __init__(self):
        self.calls = []
        self.files = {
            "index.js": "console.log('hello');\n",
            "package.json": PACKAGE_JSON,
        }
        self.error = None

    def __call__(self, cmd, **kwargs):
        self.calls.append((cmd, kwargs))
        dest = Path(cmd[-1])
        dest.mkdir(parents=True, exist_ok=True)
        write_tree(dest, self.files)
        write_tree(dest, {".git/HEAD": "ref: refs/heads/main\n"})

        if self.error is not None:
            raise self.error

        return subprocess.CompletedProcess(cmd, 0, stdout=None, stderr="")


@pytest.fixture
def limits():
    return SafetyLimits()


@pytest.fixture
def fake_git(monkeypatch):
    fake = FakeGit()
    monkeypatch.setattr("services.repo_input_service.subprocess.run", fake)
    return fake
