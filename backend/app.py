import asyncio
import logging
import uuid
from functools import lru_cache
from pathlib import Path

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from config import LOG_LEVEL, MAX_UPLOAD_BYTES, WORKSPACES_DIR, load_safety_limits
from services.ingestion_orchestrator import IngestionOrchestrator, IngestionResult
from utils.errors import ErrorKind, IngestionError
from utils.log_config import configure_logging

configure_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 1024 * 1024

app = FastAPI(
    title="Safe Project Ingestion",
    version="1.0.0"
)

# kind -> (status, error, code)
ERROR_RESPONSES = {
    ErrorKind.SAFETY_VIOLATION: (413, "ZIP file exceeds safety limits", "ZIP_BOMB_DETECTED"),
    ErrorKind.EXTRACTION_FAILURE: (400, "ZIP extraction failed", "EXTRACTION_FAILED"),
    ErrorKind.INVALID_URL: (400, "Invalid GitHub URL", "INVALID_URL"),
    ErrorKind.REPO_TOO_LARGE: (413, "Repository too large", "REPO_TOO_LARGE"),
    ErrorKind.CLONE_TIMEOUT: (408, "Clone operation timed out", "CLONE_TIMEOUT"),
    ErrorKind.REPO_NOT_FOUND_OR_PRIVATE: (404, "Repository not found or is private", "REPO_NOT_FOUND"),
    ErrorKind.CLONE_FAILURE: (502, "GitHub analysis failed", "CLONE_FAILED"),
}


# ---------- Models ----------

class GitHubAnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repo_url: str = Field("", alias="repoUrl")


# ---------- Dependencies ----------

@lru_cache
def get_orchestrator() -> IngestionOrchestrator:
    return IngestionOrchestrator(load_safety_limits(), WORKSPACES_DIR)


@app.exception_handler(IngestionError)
async def ingestion_error_handler(request: Request, exc: IngestionError):
    status_code, error, code = ERROR_RESPONSES[exc.kind]
    logger.warning("%s %s failed [%s]: %s", request.method, request.url.path, exc.kind.value, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "details": exc.message, "code": code},
    )


def _analysis_payload(result: IngestionResult) -> dict:
    payload = result.inventory.to_dict()

    if result.clone is not None:
        payload["repository"] = {
            "url": result.clone.source_url,
            "name": result.clone.repository_name,
            "size": result.clone.size_bytes,
        }

    return payload


async def _store_upload(upload: UploadFile, target: Path):
    target.parent.mkdir(parents=True, exist_ok=True)
    received = 0

    with open(target, "wb") as out:
        while chunk := await upload.read(UPLOAD_CHUNK_SIZE):
            received += len(chunk)
            if received > MAX_UPLOAD_BYTES:
                raise HTTPException(
                    status_code=413,
                    detail={"error": "Uploaded file exceeds maximum allowed size", "code": "UPLOAD_TOO_LARGE"},
                )
            await asyncio.to_thread(out.write, chunk)


# ---------- Endpoints ----------

@app.get("/api/health")
async def health():
    return {"status": "ok"}


@app.post("/api/analyze/zip")
async def analyze_zip_project(
    project_zip: UploadFile = File(...),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
):
    """
    ZIP upload -> bounded inventory.
    """

    if not (project_zip.filename or "").lower().endswith(".zip"):
        raise HTTPException(
            status_code=400,
            detail={"error": "Only ZIP files are allowed", "code": "INVALID_FILE_TYPE"},
        )

    archive_path = orchestrator.workspaces_dir / f"upload-{uuid.uuid4().hex}.zip"

    try:
        await _store_upload(project_zip, archive_path)
    except Exception:
        await asyncio.to_thread(orchestrator.cleanup.cleanup_path, archive_path)
        raise

    result = await orchestrator.ingest_archive(archive_path)
    return _analysis_payload(result)


@app.post("/api/analyze/github")
async def analyze_github_project(
    payload: GitHubAnalysisRequest,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
):
    """
    GitHub shallow clone -> bounded inventory.
    """

    if not payload.repo_url.strip():
        raise HTTPException(
            status_code=400,
            detail={"error": "Repository URL is required", "code": "MISSING_REPO_URL"},
        )

    result = await orchestrator.ingest_repository(payload.repo_url)
    return _analysis_payload(result)


# Swagger UI
# http://127.0.0.1:8000/docs
