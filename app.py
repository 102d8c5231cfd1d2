#!/usr/bin/env python3
"""
CityBreaker — Backend API (FastAPI, async)

- POST /itineraries       shared-cache read-through, generated on a miss
- POST /jobs, GET /jobs   asynchronous PDF guide jobs, polled by the client
- GET  /artifacts/...     signed, time-limited artifact downloads
- GET  /photo             Places photo proxy (keeps the API key server-side)
- GET  /health

Collaborators live on app.state.services; create_app() accepts a ready-made
Services so tests can run the whole app against fakes.
"""

import logging
import os

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response

from config import CORS_ORIGINS, PHOTO_MAX_WIDTH_PX
from errors import PlaceLookupError, StorageError, UpstreamError
from itineraries import itineraries_router
from pdf_jobs import jobs_router
from places import is_valid_photo_name
from redis_client import get_redis
from services import Services, build_services

# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
)
logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return 'Invalid request'
    first = errors[0]
    loc   = '.'.join(str(part) for part in first.get('loc', ()) if part != 'body')
    msg   = first.get('msg', 'invalid value')
    return f'{loc}: {msg}' if loc else msg


def create_app(services: Services | None = None) -> FastAPI:
    app = FastAPI(title='CityBreaker API', docs_url=None, redoc_url=None)
    app.state.services    = services
    app.state.http_client = None

    # ── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    # ── Security headers ──────────────────────────────────────────────────────
    @app.middleware('http')
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options']        = 'DENY'
        response.headers['Referrer-Policy']        = 'strict-origin-when-cross-origin'
        if os.getenv('APP_ENV') == 'production':
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    # ── Errors → { "error": "..." } ───────────────────────────────────────────
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={'error': exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={'error': _validation_message(exc)})

    @app.exception_handler(UpstreamError)
    async def upstream_exception_handler(request: Request, exc: UpstreamError):
        logger.error('Upstream failure on %s: %s', request.url.path, exc)
        return JSONResponse(status_code=502, content={'error': str(exc)})

    # ── Startup / shutdown ────────────────────────────────────────────────────
    @app.on_event('startup')
    async def startup():
        if app.state.services is None:
            app.state.http_client = httpx.AsyncClient(
                timeout=10,
                headers={'User-Agent': 'CityBreaker/1.0'},
            )
            app.state.services = build_services(app.state.http_client)

        if get_redis() is not None:
            logger.warning('Redis connected and ready (rate limiter shared across workers)')
        else:
            logger.warning('Redis unavailable — using in-memory rate limiter (set REDIS_URL to enable)')

    @app.on_event('shutdown')
    async def shutdown():
        if app.state.http_client is not None:
            await app.state.http_client.aclose()
            app.state.http_client = None

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(itineraries_router)
    app.include_router(jobs_router)

    # ── Routes ────────────────────────────────────────────────────────────────
    @app.get('/health')
    async def health():
        return {'status': 'ok'}

    @app.get('/artifacts/{path:path}')
    async def get_artifact(path: str, token: str = Query(default='')):
        """Serve a stored artifact when ``token`` was signed for exactly this path."""
        store = app.state.services.object_store
        if not token or not hasattr(store, 'verify') or not store.verify(token, path):
            raise HTTPException(status_code=403, detail='Invalid or expired link')
        try:
            file_path = store.resolve(path)
        except StorageError:
            raise HTTPException(status_code=403, detail='Invalid or expired link')
        if not os.path.isfile(file_path):
            raise HTTPException(status_code=404, detail='Artifact not found')
        return FileResponse(
            file_path,
            media_type='application/pdf' if file_path.endswith('.pdf') else 'application/octet-stream',
            filename=os.path.basename(file_path),
        )

    @app.get('/photo')
    async def photo_proxy(
        name: str = Query(..., min_length=1),
        max_width_px: int = Query(default=PHOTO_MAX_WIDTH_PX, alias='maxWidthPx', ge=16, le=4800),
    ):
        """Stream a Places photo without exposing the API key to the browser."""
        places = app.state.services.places
        if not places.enabled:
            raise HTTPException(status_code=404, detail='Photo proxy is disabled')
        if not is_valid_photo_name(name):
            raise HTTPException(status_code=400, detail='Invalid photo reference')
        try:
            content, content_type = await places.fetch_photo(name, max_width_px)
        except PlaceLookupError as exc:
            logger.warning('Photo proxy failed for %s: %s', name[:80], exc)
            raise HTTPException(status_code=502, detail='Photo unavailable')
        return Response(
            content=content,
            media_type=content_type,
            headers={'Cache-Control': 'public, max-age=86400'},
        )

    return app


app = create_app()
