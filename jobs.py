"""
jobs.py — Persistent records for asynchronous PDF jobs.

State machine:

    PENDING ──► PROCESSING ──► COMPLETE   (resultUrl set)
                          └──► FAILED     (error set)

A record is created PENDING by the request handler, moved to PROCESSING by
the orchestrator, and receives exactly one terminal update.  Terminal
records are never rewritten; a retry is a new job.  Records are kept for
polling and are not cleaned up here.

Unlike the caches, store failures propagate: a job that cannot be recorded
cannot be polled.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from config import JOBS_COLLECTION
from document_store import DocumentStore
from schemas import Job, JobStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = _utcnow):
        self._store = store
        self._clock = clock

    def create(self, job_id: str, request_payload: dict) -> None:
        """Write a PENDING record with the request payload and no result fields."""
        now = self._clock().isoformat()
        self._store.put(JOBS_COLLECTION, job_id, {
            'jobId':          job_id,
            'status':         JobStatus.PENDING.value,
            'requestPayload': request_payload,
            'createdAt':      now,
            'updatedAt':      now,
        })
        logger.info('Job %s created', job_id[:8])

    def update(self, job_id: str, **fields) -> None:
        """
        Merge fields into the record and refresh updatedAt.  Keyword names are
        snake_case (status=, result_url=, error=) and stored camelCase.
        """
        doc = {}
        for name, value in fields.items():
            if isinstance(value, JobStatus):
                value = value.value
            doc[_CAMEL.get(name, name)] = value
        doc['updatedAt'] = self._clock().isoformat()
        self._store.merge(JOBS_COLLECTION, job_id, doc, on_create={'jobId': job_id})

    def get(self, job_id: str) -> Job | None:
        doc = self._store.get(JOBS_COLLECTION, job_id)
        if doc is None:
            return None
        doc.setdefault('jobId', job_id)
        return Job.model_validate(doc)

    # ── Transitions ──────────────────────────────────────────────────────────

    def mark_processing(self, job_id: str) -> None:
        self.update(job_id, status=JobStatus.PROCESSING)

    def mark_complete(self, job_id: str, result_url: str) -> None:
        self.update(job_id, status=JobStatus.COMPLETE, result_url=result_url)
        logger.info('Job %s complete', job_id[:8])

    def mark_failed(self, job_id: str, error: str) -> None:
        self.update(job_id, status=JobStatus.FAILED, error=error)
        logger.info('Job %s failed: %s', job_id[:8], error)


_CAMEL = {
    'result_url':      'resultUrl',
    'request_payload': 'requestPayload',
    'created_at':      'createdAt',
    'updated_at':      'updatedAt',
}
