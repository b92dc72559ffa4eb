"""
Per-user reconciliation sessions and the transient store that holds them.

A session collects two uploads (supplier invoice first, then client
invoice) and, once processed, the extracted records, the reconciliation
report and the generated artifacts. Nothing is persisted: sessions live in
memory and expire after a fixed time-to-live.
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .config import SESSION_TTL_SECONDS, ArtifactKind, logger
from .schemas import GeneratedArtifact, InvoiceRecord, ReconciliationReport


class SessionStage(str, Enum):
    WAITING_SUPPLIER_INVOICE = "waiting_supplier_invoice"
    WAITING_CLIENT_INVOICE = "waiting_client_invoice"
    GENERATING_FILES = "generating_files"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class UploadedFile:
    filename: str
    content: bytes = field(repr=False)


@dataclass
class SessionContext:
    """State of one supplier/client processing session."""
    session_id: str
    stage: SessionStage = SessionStage.WAITING_SUPPLIER_INVOICE
    supplier_file: Optional[UploadedFile] = None
    client_file: Optional[UploadedFile] = None
    supplier: Optional[InvoiceRecord] = None
    client: Optional[InvoiceRecord] = None
    report: Optional[ReconciliationReport] = None
    artifacts: list[GeneratedArtifact] = field(default_factory=list)
    failed_stage: Optional[str] = None
    error: Optional[str] = None

    def attach(self, upload: UploadedFile) -> bool:
        """
        Store an uploaded invoice in the next free slot.

        Returns:
            True once both invoices are present and the session can be processed

        Raises:
            ValueError: If the session is not waiting for a document
        """
        if self.stage == SessionStage.WAITING_SUPPLIER_INVOICE:
            self.supplier_file = upload
            self.stage = SessionStage.WAITING_CLIENT_INVOICE
            return False
        if self.stage == SessionStage.WAITING_CLIENT_INVOICE:
            self.client_file = upload
            self.stage = SessionStage.GENERATING_FILES
            return True
        raise ValueError(f"Session {self.session_id} is not waiting for documents ({self.stage.value})")

    def artifact(self, kind: ArtifactKind) -> Optional[GeneratedArtifact]:
        kind = ArtifactKind(kind)
        return next((a for a in self.artifacts if a.kind == kind), None)


class InMemorySessionStore:
    """
    Thread-safe map of session id to SessionContext with TTL eviction.

    Expired sessions are dropped lazily on access.
    """

    def __init__(
        self,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, tuple[float, SessionContext]] = {}
        self._lock = threading.Lock()

    def create(self) -> SessionContext:
        session = SessionContext(session_id=uuid.uuid4().hex)
        self.save(session)
        logger.info(f"Started session {session.session_id}")
        return session

    def save(self, session: SessionContext) -> None:
        with self._lock:
            self._sessions[session.session_id] = (self._clock(), session)

    def get(self, session_id: str) -> Optional[SessionContext]:
        with self._lock:
            self._evict_expired()
            entry = self._sessions.get(session_id)
        return entry[1] if entry else None

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def evict_expired(self) -> int:
        with self._lock:
            return self._evict_expired()

    def _evict_expired(self) -> int:
        now = self._clock()
        expired = [
            sid for sid, (touched, _) in self._sessions.items()
            if now - touched > self.ttl_seconds
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired sessions")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
