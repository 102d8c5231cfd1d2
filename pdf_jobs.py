"""
pdf_jobs.py — PDF guide job router

Routes:
  POST /jobs            — validate, record a PENDING job, start it, return 202 {jobId}
  GET  /jobs?jobId=...  — current job record

The POST handler never waits for the pipeline; clients poll GET /jobs until
the status is COMPLETE or FAILED.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from orchestrator import start_pdf_job
from rate_limit import check_rate_limit
from schemas import JobCreated, TripRequest
from services import Services, get_services

logger = logging.getLogger(__name__)

jobs_router = APIRouter(prefix='/jobs', tags=['jobs'])


def client_address(request: Request) -> str:
    forwarded = request.headers.get('x-forwarded-for', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.client.host if request.client else 'unknown'


@jobs_router.post('', status_code=202)
async def create_job(
    body: TripRequest,
    request: Request,
    services: Services = Depends(get_services),
):
    """Enqueue a PDF guide job and return its id immediately."""
    client = client_address(request)
    allowed, retry_after = check_rate_limit(client, 'jobs')
    if not allowed:
        logger.warning('Rate limit hit: client=%s /jobs retry_after=%ds', client, retry_after)
        raise HTTPException(
            status_code=429,
            detail=f'Too many requests. Please wait {retry_after} seconds before trying again.',
        )

    job_id = str(uuid.uuid4())
    try:
        await run_in_threadpool(services.job_store.create, job_id, body.dump())
    except Exception as exc:
        logger.error('Could not record job %s: %s', job_id[:8], exc, exc_info=True)
        raise HTTPException(status_code=500, detail='Could not start the job. Please try again.')

    start_pdf_job(job_id, body, services)
    logger.info('Job %s queued for %s %d day(s)', job_id[:8], body.city_name, body.trip_length)
    return JSONResponse(status_code=202, content=JobCreated(job_id=job_id).dump())


@jobs_router.get('')
async def get_job(
    request: Request,
    services: Services = Depends(get_services),
):
    """Poll a job.  Returns {jobId, status, resultUrl?, error?, ...}."""
    job_id = (request.query_params.get('jobId') or '').strip()
    if not job_id:
        raise HTTPException(status_code=400, detail='Missing jobId')

    try:
        job = await run_in_threadpool(services.job_store.get, job_id)
    except Exception as exc:
        logger.error('Could not read job %s: %s', job_id[:8], exc, exc_info=True)
        raise HTTPException(status_code=500, detail='An unexpected error occurred. Please try again.')

    if job is None:
        raise HTTPException(status_code=404, detail='Job not found')
    return job.dump()
