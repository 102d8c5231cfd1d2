"""
poller.py — Client side of the PDF job protocol.

    job_id = await poller.submit(payload)      POST /jobs      → 202 {jobId}
    job    = await poller.wait(job_id)         GET  /jobs?jobId= every interval
                                               until COMPLETE or FAILED

Used by manage.py; any other Python client can use it the same way.
"""

import asyncio
import logging

import httpx

from config import POLL_INTERVAL_SECONDS, PUBLIC_BASE_URL
from schemas import Job

logger = logging.getLogger(__name__)


class JobPollError(Exception):
    """The server refused a submit or poll request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PollTimeout(JobPollError):
    """The job did not reach a terminal status within max_polls."""


def _error_message(resp: httpx.Response) -> str:
    try:
        return resp.json().get('error') or resp.text
    except ValueError:
        return resp.text


class JobPoller:
    def __init__(self, client: httpx.AsyncClient | None = None,
                 base_url: str = PUBLIC_BASE_URL,
                 interval: float = POLL_INTERVAL_SECONDS,
                 max_polls: int | None = None,
                 sleep=asyncio.sleep):
        self._client    = client or httpx.AsyncClient(base_url=base_url, timeout=15)
        self._owns      = client is None
        self.interval   = interval
        self.max_polls  = max_polls
        self._sleep     = sleep

    async def aclose(self) -> None:
        if self._owns:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def submit(self, payload: dict) -> str:
        resp = await self._client.post('/jobs', json=payload)
        if resp.status_code != 202:
            raise JobPollError(f'Submit failed: {_error_message(resp)}', resp.status_code)
        job_id = resp.json()['jobId']
        logger.info('Submitted job %s', job_id[:8])
        return job_id

    async def poll(self, job_id: str) -> Job:
        resp = await self._client.get('/jobs', params={'jobId': job_id})
        if resp.status_code != 200:
            raise JobPollError(f'Poll failed: {_error_message(resp)}', resp.status_code)
        return Job.model_validate(resp.json())

    async def wait(self, job_id: str, on_update=None) -> Job:
        """
        Poll until the job is COMPLETE or FAILED and return the final record.
        Raises PollTimeout after max_polls non-terminal polls (if set).
        """
        polls = 0
        while True:
            job = await self.poll(job_id)
            polls += 1
            if on_update is not None:
                on_update(job)
            if job.status.is_terminal:
                logger.info('Job %s finished: %s', job_id[:8], job.status.value)
                return job
            if self.max_polls is not None and polls >= self.max_polls:
                raise PollTimeout(f'Job {job_id} still {job.status.value} after {polls} polls')
            await self._sleep(self.interval)

    async def run(self, payload: dict, on_update=None) -> Job:
        return await self.wait(await self.submit(payload), on_update=on_update)
