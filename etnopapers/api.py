"""FastAPI interface for metadata extraction and record management"""
import logging
import os
import tempfile
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from . import __version__
from .config import ConfigStore
from .duplicate_detector import DuplicateDetector
from .errors import (
    CancelledError,
    CapacityError,
    ConfigurationError,
    ConversionError,
    EtnoPapersError,
    InvalidInputError,
    NetworkUnavailableError,
    ParseError,
    ProviderError,
    ValidationError,
)
from .extractor import ExtractionPipeline, NeedsManualEdit
from .models import ArticleRecord
from .storage import RecordStore
from .validator import RecordValidator

logger = logging.getLogger(__name__)

app = FastAPI(title="EtnoPapers Extractor API", version=__version__)

# Domain error -> HTTP status
ERROR_STATUS = [
    (InvalidInputError, 400),
    (ValidationError, 422),
    (ConversionError, 422),
    (ParseError, 502),
    (ProviderError, 502),
    (NetworkUnavailableError, 503),
    (ConfigurationError, 503),
    (CapacityError, 409),
    (CancelledError, 409),
]

_config_store: Optional[ConfigStore] = None
_pipeline: Optional[ExtractionPipeline] = None


def get_pipeline() -> ExtractionPipeline:
    """Pipeline built from the user's configuration on first use"""
    global _config_store, _pipeline
    if _pipeline is None:
        _config_store = ConfigStore()
        _pipeline = ExtractionPipeline.from_config(_config_store)
    return _pipeline


def get_store(pipeline: ExtractionPipeline = Depends(get_pipeline)) -> RecordStore:
    if pipeline.store is None:
        raise HTTPException(status_code=500, detail="Record store not configured")
    return pipeline.store


def get_detector() -> DuplicateDetector:
    return DuplicateDetector()


@app.exception_handler(EtnoPapersError)
def etnopapers_error_handler(request: Request, exc: EtnoPapersError):
    status_code = 500
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    content: Dict[str, Any] = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    logger.warning("%s %s -> %d: %s", request.method, request.url.path, status_code, exc)
    return JSONResponse(status_code=status_code, content=content)


def _parse_record(data: Dict[str, Any], record_id: Optional[str] = None) -> ArticleRecord:
    if record_id is not None:
        data = {**data, "id": record_id}
    try:
        return ArticleRecord.model_validate(data)
    except PydanticValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid record: {e.error_count()} error(s)")


def _duplicates_payload(detector: DuplicateDetector,
                        record: ArticleRecord,
                        store: RecordStore) -> List[Dict[str, Any]]:
    return [
        {"record": existing.to_json_dict(), "score": round(score, 4)}
        for existing, score in detector.score_duplicates(record, store)
    ]


@app.post("/extract-upload")
def extract_from_upload(pdf_file: UploadFile = File(...),
                        pipeline: ExtractionPipeline = Depends(get_pipeline),
                        detector: DuplicateDetector = Depends(get_detector)):
    """
    Extract metadata from an uploaded PDF.

    Returns the outcome state, the (possibly partial) record, validation
    errors for partial records, and stored records that look like duplicates.
    """
    fd, tmp_path = tempfile.mkstemp(suffix=".pdf")
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(pdf_file.file.read())

        outcome = pipeline.extract_from_file(tmp_path)
    finally:
        os.unlink(tmp_path)

    duplicates: List[Dict[str, Any]] = []
    if pipeline.store is not None:
        duplicates = _duplicates_payload(detector, outcome.record, pipeline.store)

    return {
        "filename": pdf_file.filename,
        "state": outcome.state.value,
        "record": outcome.record.to_json_dict(),
        "errors": outcome.errors if isinstance(outcome, NeedsManualEdit) else [],
        "duplicates": duplicates,
    }


@app.get("/records")
def list_records(store: RecordStore = Depends(get_store)):
    return [record.to_json_dict() for record in store.load_all()]


@app.get("/records/{record_id}")
def get_record(record_id: str, store: RecordStore = Depends(get_store)):
    record = store.get_by_id(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Record not found: {record_id}")
    return record.to_json_dict()


def _require_saveable(record: ArticleRecord):
    validator = RecordValidator()
    if not validator.is_valid_for_saving(record):
        raise ValidationError(
            "Título, autores e ano são obrigatórios para salvar o registro.",
            errors=validator.get_validation_errors(record),
        )


@app.post("/records", status_code=201)
def create_record(data: Dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    """Store a (manually completed) record"""
    record = _parse_record(data)
    _require_saveable(record)
    try:
        stored = store.create(record)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return stored.to_json_dict()


@app.put("/records/{record_id}")
def update_record(record_id: str,
                  data: Dict[str, Any] = Body(...),
                  store: RecordStore = Depends(get_store)):
    record = _parse_record(data, record_id)
    _require_saveable(record)
    if not store.update(record):
        raise HTTPException(status_code=404, detail=f"Record not found: {record_id}")
    return store.get_by_id(record_id).to_json_dict()


@app.delete("/records/{record_id}")
def delete_record(record_id: str, store: RecordStore = Depends(get_store)):
    if not store.delete(record_id):
        raise HTTPException(status_code=404, detail=f"Record not found: {record_id}")
    return {"deleted": record_id}


@app.post("/records/duplicates")
def find_duplicates(data: Dict[str, Any] = Body(...),
                    store: RecordStore = Depends(get_store),
                    detector: DuplicateDetector = Depends(get_detector)):
    """Stored records that look like the given candidate"""
    return _duplicates_payload(detector, _parse_record(data), store)


@app.get("/health")
def health_check(pipeline: ExtractionPipeline = Depends(get_pipeline)):
    """Health check endpoint"""
    settings = pipeline.settings
    return {
        "status": "healthy",
        "version": __version__,
        "provider": settings.provider,
        "ai_configured": settings.ai_configured,
        "records": pipeline.store.count() if pipeline.store is not None else None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
