import logging
import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import AsyncIterator

import httpx
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse

from viewer_service import __version__
from viewer_service.aps import AuthFailure, BackendFailure, PlatformError, PlatformService, TransportFailure, base64_encode
from viewer_service.aps.adapters import PLATFORM_BASE_URL, HttpAuthenticationClient, HttpModelDerivativeClient, HttpOssClient
from viewer_service.logging_config import configure_logging

logger = logging.getLogger(__name__)

# Global configuration defaults
APS_CLIENT_ID = os.getenv("APS_CLIENT_ID", "")
APS_CLIENT_SECRET = os.getenv("APS_CLIENT_SECRET", "")
APS_BUCKET = os.getenv("APS_BUCKET") or None
APS_BASE_URL = os.getenv("APS_BASE_URL", PLATFORM_BASE_URL).rstrip("/")
HTTP_TIMEOUT_SEC = float(os.getenv("APS_HTTP_TIMEOUT_SEC", "60"))
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "300"))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    if not APS_CLIENT_ID or not APS_CLIENT_SECRET:
        raise RuntimeError("Missing APS_CLIENT_ID or APS_CLIENT_SECRET environment variables.")
    async with httpx.AsyncClient(base_url=APS_BASE_URL, timeout=HTTP_TIMEOUT_SEC) as http:
        app.state.platform = PlatformService(
            APS_CLIENT_ID,
            APS_CLIENT_SECRET,
            APS_BUCKET,
            auth=HttpAuthenticationClient(http),
            storage=HttpOssClient(http),
            derivatives=HttpModelDerivativeClient(http),
        )
        logger.info("Viewer service started (bucket=%s)", app.state.platform.bucket)
        yield


app = FastAPI(
    title="Model Viewer Service",
    version=os.getenv("VIEWER_SERVICE_VERSION", __version__),
    description=(
        "RESTful API issuing viewer tokens, uploading design files to cloud "
        "storage and tracking their translation into viewable formats."
    ),
    lifespan=lifespan,
)


def get_platform(request: Request) -> PlatformService:
    return request.app.state.platform


def _error_response(status_code: int, exc: PlatformError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": exc.error_code, "message": exc.message})


@app.exception_handler(AuthFailure)
async def _auth_failure(request: Request, exc: AuthFailure) -> JSONResponse:
    logger.error("Token issuance failed: %s", exc.message)
    return _error_response(502, exc)


@app.exception_handler(TransportFailure)
async def _transport_failure(request: Request, exc: TransportFailure) -> JSONResponse:
    logger.error("Platform unreachable: %s", exc.message)
    return _error_response(504, exc)


@app.exception_handler(BackendFailure)
async def _backend_failure(request: Request, exc: BackendFailure) -> JSONResponse:
    logger.warning("Platform call failed: %s", exc.message)
    # client errors are passed through, server errors become a bad gateway
    status_code = exc.status_code if 400 <= exc.status_code < 500 else 502
    return _error_response(status_code, exc)


@app.get("/health")
def health() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/api/auth/health")
def auth_health() -> dict[str, int]:
    return {"health": 1}


@app.get("/api/auth/token")
async def get_access_token(platform: PlatformService = Depends(get_platform)) -> dict[str, object]:
    """Public viewer token, valid for `expires_in` more seconds."""
    token = await platform.get_public_token()
    return {"access_token": token.access_token, "expires_in": token.expires_in(platform.now())}


@app.get("/api/models")
async def get_models(platform: PlatformService = Depends(get_platform)) -> list[dict[str, str]]:
    objects = await platform.list_objects()
    return [{"name": o.object_key, "urn": base64_encode(o.object_id)} for o in objects]


@app.get("/api/models/{urn:path}/status")
async def get_model_status(urn: str, platform: PlatformService = Depends(get_platform)) -> dict[str, object]:
    status = await platform.get_translation_status(urn)
    return asdict(status)


@app.post("/api/models")
async def upload_and_translate_model(
    model_file: UploadFile = File(..., alias="model-file"),
    model_zip_entry: str | None = Form(None, alias="model-zip-entry"),
    platform: PlatformService = Depends(get_platform),
) -> dict[str, str]:
    """Upload a design file and start its translation.

    Accepts multipart/form-data with a required part "model-file" and, for zip
    archives, an optional "model-zip-entry" naming the root design file.
    """
    if not model_file.filename:
        raise HTTPException(status_code=400, detail={"code": "bad_request", "message": "missing file name"})
    if model_file.size is not None and model_file.size > MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail={"code": "payload_too_large", "message": f"upload exceeds {MAX_UPLOAD_MB} MB"},
        )
    obj = await platform.upload_model(model_file.filename, model_file.file)
    await platform.translate_model(obj.object_id, model_zip_entry or None)
    return {"name": obj.object_key, "urn": base64_encode(obj.object_id)}


def run() -> None:
    """Run a development ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:8080). Set PORT env var to override.
    """
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8080"))
    # Enable reload in dev unless explicitly disabled
    reload = os.getenv("RELOAD", "true").lower() in {"1", "true", "yes", "on"}

    uvicorn.run("viewer_service.webapi:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run()
