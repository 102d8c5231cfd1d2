"""
orchestrator.py — Background pipeline for a PDF guide job.

    PENDING (written by POST /jobs)
       │
       ▼
    PROCESSING ─► itinerary + guide (read-through) ─► render ─► store ─► signed URL
       │
       ├─► COMPLETE  resultUrl
       └─► FAILED    error message

The job runs as a fire-and-forget asyncio task on the server's event loop.
Whatever happens inside the pipeline, exactly one terminal update is
attempted.
"""

import asyncio
import logging
import re

from starlette.concurrency import run_in_threadpool

from planner import VARIANT_PRO, get_or_create_itinerary
from schemas import TripRequest

logger = logging.getLogger(__name__)

# Strong references to running jobs; the event loop only keeps weak ones.
_background_tasks: set[asyncio.Task] = set()


def create_filename(city: str, days: int) -> str:
    safe_city = re.sub(r'[^A-Za-z0-9]+', '_', (city or '').strip()).strip('_') or 'City'
    return f'{safe_city}_{int(days)}d_Guide.pdf'


def artifact_path(job_id: str, city: str, days: int) -> str:
    return f'jobs/{job_id}/{create_filename(city, days)}'


def start_pdf_job(job_id: str, request: TripRequest, services) -> asyncio.Task:
    """Schedule run_pdf_job on the running loop and return the task."""
    task = asyncio.create_task(run_pdf_job(job_id, request, services), name=f'pdf-job-{job_id[:8]}')
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def _build_pdf(job_id: str, request: TripRequest, services) -> str:
    entry = await get_or_create_itinerary(request, services, variant=VARIANT_PRO, with_guide=True)
    pdf   = await run_in_threadpool(services.renderer.render, entry, request.city_name)
    path  = artifact_path(job_id, request.city_name, request.trip_length)
    return await services.object_store.save(pdf, path, 'application/pdf')


async def run_pdf_job(job_id: str, request: TripRequest, services) -> None:
    jobs = services.job_store
    logger.info('Job %s: %s, %d day(s), %d place(s)',
                job_id[:8], request.city_name, request.trip_length, len(request.places))

    result_url = None
    error      = None
    try:
        await run_in_threadpool(jobs.mark_processing, job_id)
        result_url = await _build_pdf(job_id, request, services)
    except asyncio.CancelledError:
        error = 'Job was cancelled'
        raise
    except Exception as exc:
        logger.error('Job %s failed: %s', job_id[:8], exc, exc_info=True)
        error = str(exc) or exc.__class__.__name__
    finally:
        try:
            if error is None:
                await run_in_threadpool(jobs.mark_complete, job_id, result_url)
            else:
                await run_in_threadpool(jobs.mark_failed, job_id, error)
        except Exception as exc:
            logger.error('Job %s: could not record terminal state: %s', job_id[:8], exc, exc_info=True)
