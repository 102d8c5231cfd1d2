"""
storage.py — Artifact object store.

Finished PDFs are written under ARTIFACT_DIR and handed out through
time-limited URLs of the form

    {PUBLIC_BASE_URL}/artifacts/<path>?token=<jwt>

The token is an HS256 JWT carrying the artifact path and an expiry; the
/artifacts route refuses anything whose token does not verify for exactly
that path.
"""

import logging
import os
import time
from urllib.parse import quote

import jwt
from starlette.concurrency import run_in_threadpool

from config import (
    ARTIFACT_DIR,
    ARTIFACT_SIGNING_KEY,
    ARTIFACT_URL_TTL_SECONDS,
    PUBLIC_BASE_URL,
)
from errors import StorageError

logger = logging.getLogger(__name__)

_TOKEN_TYPE = 'artifact'


class ObjectStore:
    """Interface: store bytes under a path and return a URL a client can fetch."""

    async def save(self, data: bytes, path: str, content_type: str = 'application/pdf') -> str:
        raise NotImplementedError


class LocalObjectStore(ObjectStore):
    def __init__(self, root_dir: str = ARTIFACT_DIR,
                 base_url: str = PUBLIC_BASE_URL,
                 signing_key: str = ARTIFACT_SIGNING_KEY,
                 url_ttl: int = ARTIFACT_URL_TTL_SECONDS):
        self.root_dir    = os.path.abspath(root_dir)
        self.base_url    = base_url.rstrip('/')
        self.signing_key = signing_key
        self.url_ttl     = url_ttl

    # ── paths ────────────────────────────────────────────────────────────────

    def resolve(self, path: str) -> str:
        """Absolute file path for ``path``; refuses anything outside root_dir."""
        candidate = os.path.abspath(os.path.join(self.root_dir, path.lstrip('/')))
        if os.path.commonpath([candidate, self.root_dir]) != self.root_dir or candidate == self.root_dir:
            raise StorageError(f'Artifact path escapes the store: {path[:80]!r}')
        return candidate

    # ── tokens ───────────────────────────────────────────────────────────────

    def sign(self, path: str, now: float | None = None) -> str:
        issued = int(now if now is not None else time.time())
        payload = {
            'path': path,
            'type': _TOKEN_TYPE,
            'iat':  issued,
            'exp':  issued + self.url_ttl,
        }
        return jwt.encode(payload, self.signing_key, algorithm='HS256')

    def verify(self, token: str, path: str) -> bool:
        try:
            payload = jwt.decode(token, self.signing_key, algorithms=['HS256'])
        except jwt.ExpiredSignatureError:
            logger.info('Artifact token expired for %s', path[:80])
            return False
        except jwt.PyJWTError:
            return False
        return payload.get('type') == _TOKEN_TYPE and payload.get('path') == path

    def signed_url(self, path: str) -> str:
        return f'{self.base_url}/artifacts/{quote(path)}?token={self.sign(path)}'

    # ── writes ───────────────────────────────────────────────────────────────

    def _write(self, data: bytes, path: str) -> None:
        target = self.resolve(path)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        tmp = f'{target}.part'
        with open(tmp, 'wb') as fh:
            fh.write(data)
        os.replace(tmp, target)

    async def save(self, data, path, content_type='application/pdf'):
        try:
            await run_in_threadpool(self._write, data, path)
        except OSError as exc:
            raise StorageError(f'Could not write artifact {path!r}: {exc}') from exc
        logger.info('Stored artifact %s (%d bytes, %s)', path, len(data), content_type)
        return self.signed_url(path)
