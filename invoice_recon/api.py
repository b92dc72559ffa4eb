"""
FastAPI application for the Invoice Reconciliation Service.

Provides REST API endpoints for:
- Health check
- Single-invoice extraction
- Reconciliation of two already extracted records
- Two-upload sessions that produce the three 1C templates and the report
"""

from typing import Callable, Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .config import (
    ALLOWED_EXTENSIONS,
    API_HOST,
    API_PORT,
    FLATTEN_STYLE,
    MAX_UPLOAD_SIZE_MB,
    ArtifactKind,
    ExtractionMode,
    logger,
)
from .exceptions import (
    EmptySheetError,
    ExtractionError,
    InvoiceReconError,
    MappingError,
    ModelConfigurationError,
)
from .extractor import extract_invoice_from_bytes
from .llm import ModelClient, get_model_client
from .pipeline import process_session
from .reconciler import format_report_text, reconcile
from .schemas import (
    ArtifactInfo,
    ExtractResponse,
    ReconcileRequest,
    ReconcileResponse,
    SessionResponse,
)
from .session import InMemorySessionStore, SessionContext, SessionStage, UploadedFile

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

STAGE_MESSAGES = {
    SessionStage.WAITING_SUPPLIER_INVOICE: "Upload the supplier invoice (.xlsx or .xls)",
    SessionStage.WAITING_CLIENT_INVOICE: "Supplier invoice received. Now upload the client invoice.",
    SessionStage.GENERATING_FILES: "Both invoices received. Processing...",
    SessionStage.COMPLETED: "Processing complete. All files and results are ready.",
    SessionStage.FAILED: "Processing failed. Start a new session to retry.",
}


# ============================================================================
# FastAPI App Configuration
# ============================================================================

app = FastAPI(
    title="Invoice Reconciliation Service API",
    description="""
    Invoice Extraction & Reconciliation Service API.

    Extracts line items from supplier and client invoice spreadsheets,
    reconciles their totals and generates the Items, Inv and Sales Invoice
    templates for 1C import.

    ## Features

    - **Extract**: Turn one invoice spreadsheet into a structured record
    - **Reconcile**: Check declared totals of two records against their items
    - **Sessions**: Upload supplier then client invoice, download the generated files
    """,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

session_store = InMemorySessionStore()


# ============================================================================
# Dependencies
# ============================================================================

ModelProvider = Callable[[], ModelClient]


def get_model_provider() -> ModelProvider:
    """Model clients are only built when a request actually needs one."""
    return get_model_client


def get_session_store() -> InMemorySessionStore:
    return session_store


# ============================================================================
# Request/Response Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


# ============================================================================
# Helpers
# ============================================================================

async def read_upload(file: UploadFile) -> bytes:
    """Apply the file gate (extension and size) and return the upload's bytes."""
    filename = file.filename or ""
    if not filename.lower().endswith(ALLOWED_EXTENSIONS):
        raise HTTPException(
            status_code=400,
            detail=f"{filename or 'file'}: Upload an Excel file (.xlsx or .xls)",
        )

    content = await file.read()
    if len(content) > MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail=f"{filename}: File too large (max {MAX_UPLOAD_SIZE_MB}MB)",
        )
    return content


def status_code_for(error: InvoiceReconError) -> int:
    if isinstance(error, EmptySheetError):
        return 422
    if isinstance(error, ModelConfigurationError):
        return 503
    if isinstance(error, ExtractionError):
        return 502
    return 500


def session_response(session: SessionContext, message: Optional[str] = None) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        stage=session.stage.value,
        message=message or STAGE_MESSAGES[session.stage],
        supplier=session.supplier,
        client=session.client,
        report=session.report,
        report_text=format_report_text(session.report) if session.report else None,
        artifacts=[
            ArtifactInfo(kind=a.kind, filename=a.filename, row_count=a.row_count)
            for a in session.artifacts
        ],
        failed_stage=session.failed_stage,
        error=session.error,
    )


def require_session(session_id: str, store: InMemorySessionStore) -> SessionContext:
    session = store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found or expired. Start a new one.")
    return session


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check() -> HealthResponse:
    """Return the service status and version information."""
    from . import __version__
    return HealthResponse(status="ok", version=__version__)


@app.post(
    "/extract",
    response_model=ExtractResponse,
    tags=["Extraction"],
    summary="Extract one invoice spreadsheet",
)
async def extract(
    file: UploadFile = File(..., description="Invoice spreadsheet"),
    mode: ExtractionMode = ExtractionMode.GENERIC,
    model_provider: ModelProvider = Depends(get_model_provider),
) -> ExtractResponse:
    """
    Extract a structured invoice record from an uploaded spreadsheet.

    **Processing Steps:**
    1. Read the first worksheet
    2. Flatten it to text
    3. Ask the model for the invoice JSON (generic or supplier prompt)
    4. Normalize the reply to the invoice schema
    """
    content = await read_upload(file)
    model = model_provider()
    record = await run_in_threadpool(
        extract_invoice_from_bytes, content, mode, model, file.filename, FLATTEN_STYLE
    )
    return ExtractResponse(filename=file.filename, mode=mode, record=record)


@app.post(
    "/reconcile",
    response_model=ReconcileResponse,
    tags=["Reconciliation"],
    summary="Reconcile two invoice records",
)
async def reconcile_records(request: ReconcileRequest) -> ReconcileResponse:
    """
    Compare declared totals of both records with their items and with each other.

    Mismatches are part of the report; this endpoint does not fail on them.
    """
    report = reconcile(request.supplier, request.client)
    return ReconcileResponse(
        report=report,
        all_passed=report.all_passed,
        report_text=format_report_text(report),
    )


@app.post("/sessions", response_model=SessionResponse, tags=["Sessions"])
async def start_session(
    store: InMemorySessionStore = Depends(get_session_store),
) -> SessionResponse:
    """Start a new session; the next upload is taken as the supplier invoice."""
    return session_response(store.create())


@app.get("/sessions/{session_id}", response_model=SessionResponse, tags=["Sessions"])
async def get_session(
    session_id: str,
    store: InMemorySessionStore = Depends(get_session_store),
) -> SessionResponse:
    return session_response(require_session(session_id, store))


@app.post(
    "/sessions/{session_id}/documents",
    response_model=SessionResponse,
    tags=["Sessions"],
    summary="Upload the next invoice of a session",
)
async def upload_document(
    session_id: str,
    file: UploadFile = File(..., description="Supplier invoice first, then client invoice"),
    store: InMemorySessionStore = Depends(get_session_store),
    model_provider: ModelProvider = Depends(get_model_provider),
):
    """
    Attach an invoice to the session.

    The first upload is the supplier invoice. The second is the client
    invoice and starts processing: both invoices are extracted, reconciled
    and turned into the three 1C templates. If a stage fails, the response
    carries the failing stage together with whatever was produced before it.
    """
    session = require_session(session_id, store)
    content = await read_upload(file)

    try:
        ready = session.attach(UploadedFile(filename=file.filename, content=content))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    store.save(session)

    if not ready:
        return session_response(session)

    try:
        model = model_provider()
        await run_in_threadpool(process_session, session, model)
    except InvoiceReconError as e:
        if session.stage != SessionStage.FAILED:
            session.stage = SessionStage.FAILED
            session.failed_stage = e.stage
            session.error = str(e)
        store.save(session)
        return JSONResponse(
            status_code=status_code_for(e),
            content=session_response(session).model_dump(mode="json"),
        )
    except Exception as e:
        logger.exception(f"Unexpected error in session {session_id}: {e}")
        if session.stage != SessionStage.FAILED:
            session.stage = SessionStage.FAILED
            session.error = str(e)
        store.save(session)
        return JSONResponse(
            status_code=500,
            content=session_response(session).model_dump(mode="json"),
        )

    store.save(session)
    return session_response(session)


@app.get(
    "/sessions/{session_id}/artifacts/{kind}",
    tags=["Sessions"],
    summary="Download a generated template",
)
async def download_artifact(
    session_id: str,
    kind: ArtifactKind,
    store: InMemorySessionStore = Depends(get_session_store),
) -> Response:
    session = require_session(session_id, store)
    artifact = session.artifact(kind)
    if artifact is None:
        raise HTTPException(status_code=404, detail=f"No {kind.value} file in this session")

    return Response(
        content=artifact.content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(artifact.filename)}"},
    )


@app.delete("/sessions/{session_id}", tags=["Sessions"])
async def delete_session(
    session_id: str,
    store: InMemorySessionStore = Depends(get_session_store),
):
    if not store.delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found or expired")
    return {"deleted": session_id}


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(InvoiceReconError)
async def invoice_recon_exception_handler(request, exc: InvoiceReconError):
    """Report pipeline failures with the stage that failed."""
    logger.error(f"Request failed at stage {exc.stage}: {exc}")
    content = {"detail": str(exc), "stage": exc.stage}
    if isinstance(exc, ExtractionError):
        content["raw_response"] = exc.raw_response
    if isinstance(exc, MappingError):
        content["payload"] = exc.payload
    return JSONResponse(status_code=status_code_for(exc), content=content)


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# ============================================================================
# Startup/Shutdown Events
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Log startup information."""
    logger.info(f"Invoice Reconciliation Service API starting on {API_HOST}:{API_PORT}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Invoice Reconciliation Service API shutting down")


# ============================================================================
# Main Entry Point
# ============================================================================

def run_server():
    """Run the API server using uvicorn."""
    import uvicorn
    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    run_server()
