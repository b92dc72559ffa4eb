"""
Session pipeline: flatten -> extract -> reconcile -> map.

Steps run strictly in order because each one needs the previous output.
The reconciliation report is stored on the session before any template is
generated, so it is available even if a mapper fails. Artifacts are
appended to the session as soon as they are written; a later failure does
not take back earlier ones.
"""

from typing import Callable, Optional

from .config import (
    CLIENT_EXTRACTION_MODE,
    FLATTEN_STYLE,
    SUPPLIER_EXTRACTION_MODE,
    PipelineStage,
    logger,
)
from .exceptions import InvoiceReconError
from .extractor import extract_invoice_from_bytes
from .llm import ModelClient
from .mappers import SCHEMAS, MappingContext
from .normalizers import normalize_date
from .reconciler import reconcile
from .schemas import GeneratedArtifact
from .session import SessionContext, SessionStage

ArtifactCallback = Callable[[GeneratedArtifact], None]


def process_session(
    session: SessionContext,
    model: ModelClient,
    on_artifact: Optional[ArtifactCallback] = None,
    style: str = FLATTEN_STYLE,
) -> SessionContext:
    """
    Run the whole pipeline for a session holding both uploads.

    Args:
        session: Session with supplier_file and client_file set
        model: Model client used for extraction and date normalization
        on_artifact: Called with each artifact right after it is generated
        style: Flatten style passed to the extractor

    Returns:
        The same session, with records, report and artifacts filled in

    Raises:
        ValueError: If either upload is missing
        InvoiceReconError: Any stage failure; the session records the
            failing stage before the error propagates
    """
    if session.supplier_file is None or session.client_file is None:
        raise ValueError("Both supplier and client invoices are required")

    session.stage = SessionStage.GENERATING_FILES
    session.failed_stage = None
    session.error = None

    stage = PipelineStage.EXTRACT_SUPPLIER.value
    try:
        logger.info(f"[{session.session_id}] Parsing supplier invoice")
        session.supplier = extract_invoice_from_bytes(
            session.supplier_file.content,
            SUPPLIER_EXTRACTION_MODE,
            model,
            filename=session.supplier_file.filename,
            style=style,
            stage=PipelineStage.EXTRACT_SUPPLIER.value,
        )

        stage = PipelineStage.EXTRACT_CLIENT.value
        logger.info(f"[{session.session_id}] Parsing client invoice")
        session.client = extract_invoice_from_bytes(
            session.client_file.content,
            CLIENT_EXTRACTION_MODE,
            model,
            filename=session.client_file.filename,
            style=style,
            stage=PipelineStage.EXTRACT_CLIENT.value,
        )

        stage = PipelineStage.RECONCILE.value
        session.report = reconcile(session.supplier, session.client)

        context = MappingContext(
            supplier=session.supplier,
            client=session.client,
            supplier_date=normalize_date(session.supplier.invoice_date, model),
        )
        for schema in SCHEMAS:
            stage = schema.stage.value
            logger.info(f"[{session.session_id}] Generating {schema.kind.value} file")
            artifact = schema.render(context)
            session.artifacts.append(artifact)
            if on_artifact is not None:
                on_artifact(artifact)

    except InvoiceReconError as e:
        session.stage = SessionStage.FAILED
        session.failed_stage = e.stage
        session.error = str(e)
        logger.error(f"[{session.session_id}] Stage {e.stage} failed: {e}")
        raise
    except Exception as e:
        session.stage = SessionStage.FAILED
        session.failed_stage = stage
        session.error = str(e)
        logger.exception(f"[{session.session_id}] Unexpected failure at stage {stage}")
        raise

    session.stage = SessionStage.COMPLETED
    logger.info(f"[{session.session_id}] Processing complete")
    return session
