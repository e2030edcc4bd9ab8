import io
import logging
from typing import Dict, Optional

import uvicorn
from fastapi import APIRouter, FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from dicom_service import __version__
from dicom_service.config import Settings
from dicom_service.dicom_ops import extract_first_frame_png, resolve_tag
from dicom_service.errors import ClientInputError, DicomServiceError
from dicom_service.logging_config import setup_logging
from dicom_service.models import ErrorResponse, UploadResponse
from dicom_service.storage import BlobStore

logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def build_router(store: BlobStore) -> APIRouter:
    """Builds the request router bound to one blob store."""
    router = APIRouter()

    @router.get("/healthz")
    async def health() -> Dict[str, str]:
        return {"status": "OK"}

    @router.post("/upload", response_model=UploadResponse, responses=_ERROR_RESPONSES)
    def upload(
        dicom: Optional[UploadFile] = File(None, description="DICOM file to store"),
    ):
        """Stores an uploaded DICOM file and returns its storage key"""
        if dicom is None:
            raise ClientInputError("must include form-field 'dicom'")

        try:
            key = store.store(dicom.file, dicom.filename or "")
        finally:
            dicom.file.close()

        return UploadResponse(file=key)

    @router.get("/header", response_class=PlainTextResponse, responses=_ERROR_RESPONSES)
    def header(
        file: Optional[str] = Query(None, description="Storage key returned by /upload"),
        tag: Optional[str] = Query(
            None,
            description="DICOM tag as 8 hex chars, group then element (e.g. '00100010' for Patient Name)",
        ),
    ):
        """Returns the value of one header tag of a stored DICOM file"""
        if not file or not tag:
            raise ClientInputError("need both 'file' and 'tag' query params")

        tag_string, value = resolve_tag(store, file, tag)
        return PlainTextResponse(f"Tag {tag_string} → {value}")

    @router.get(
        "/image",
        response_class=StreamingResponse,
        responses={**_ERROR_RESPONSES, 200: {"content": {"image/png": {}}}},
    )
    def image(
        file: Optional[str] = Query(None, description="Storage key returned by /upload"),
    ):
        """Renders the first image frame of a stored DICOM file as PNG"""
        png_data = extract_first_frame_png(store, file)

        return StreamingResponse(io.BytesIO(png_data), media_type="image/png")

    return router


async def handle_service_error(request: Request, exc: DicomServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc
        )
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)

    body = ErrorResponse(detail=exc.message, error=exc.kind)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return await handle_service_error(request, ClientInputError(str(exc.errors())))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Builds the application and its blob store from `settings`."""
    if settings is None:
        settings = Settings.from_env()

    store = BlobStore(settings.upload_dir)
    store.ensure_root()

    app = FastAPI(
        title="DICOM Intake Service",
        description="A service for storing DICOM files, reading header tags, and rendering the first frame as PNG.",
        version=__version__,
    )
    app.state.settings = settings
    app.state.store = store
    app.include_router(build_router(store))
    app.add_exception_handler(DicomServiceError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    return app


def run() -> None:
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)

    app = create_app(settings)
    logger.info("Listening on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
