"""Best-effort sync of completed sessions to the remote history store."""

from __future__ import annotations

import logging
import threading

import httpx

from wisperflow.config import SyncConfig
from wisperflow.types import Session, SyncRecord

logger = logging.getLogger(__name__)

ENTITY_NAME = "Transcription"
SYNC_TIMEOUT_SECONDS = 10.0


def build_record(session: Session) -> SyncRecord:
    return SyncRecord(
        raw_text=session.raw_text,
        formatted_text=session.formatted_text,
        language=session.language,
        duration_ms=session.duration_ms,
        word_count=session.word_count,
        destination=session.destination,
        stt_provider=session.stt_provider,
        context_type=session.context_type.value,
    )


class SyncReporter:
    """Fire-and-forget upload of session records. Never raises."""

    def __init__(self, config: SyncConfig, client: httpx.Client | None = None) -> None:
        self._config = config
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def report(self, session: Session) -> threading.Thread | None:
        """
        Upload the session in the background.

        Returns the worker thread, or None when sync is not configured.
        """
        if not self.enabled:
            return None

        record = build_record(session)
        thread = threading.Thread(
            target=self._send, args=(record,), name="wisperflow-sync", daemon=True
        )
        thread.start()
        return thread

    def _send(self, record: SyncRecord) -> None:
        url = (
            f"{self._config.base_url.rstrip('/')}/api/apps/"
            f"{self._config.app_id}/entities/{ENTITY_NAME}"
        )
        try:
            client = self._client or httpx.Client(timeout=SYNC_TIMEOUT_SECONDS)
            try:
                response = client.post(
                    url,
                    headers={"Authorization": f"Bearer {self._config.token}"},
                    json=dict(record),
                )
                response.raise_for_status()
            finally:
                if self._client is None:
                    client.close()
        except Exception as e:
            logger.error("Sync error: %s", e)
            return
        logger.info("Synced session (%d words)", record["word_count"])
