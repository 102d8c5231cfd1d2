"""
manage.py — CLI admin commands for CityBreaker.

Usage:
    python manage.py init-db
    python manage.py cache-key --city "Lisbon" --days 3 -p "Belém Tower" -p "LX Factory"
    python manage.py show-job <job id>
    python manage.py submit-pdf --city "Lisbon" --days 3 -p "Belém Tower" --base-url http://localhost:8000
"""

import asyncio
import json

import click

from config import POLL_INTERVAL_SECONDS, PUBLIC_BASE_URL
from database import init_db
from document_store import build_document_store
from jobs import JobStore
from poller import JobPoller, JobPollError
from signature import build_itinerary_key, compute_signature, hash_signature


@click.group()
def cli():
    """CityBreaker admin commands."""


@cli.command('init-db')
def init_db_command():
    """Create the documents table in DATABASE_URL."""
    init_db()
    click.echo('✓ Document tables ready')


@cli.command('cache-key')
@click.option('--city', required=True, help='City name as the UI sends it')
@click.option('--days', required=True, type=int, help='Trip length in days')
@click.option('--place', '-p', 'places', multiple=True, required=True, help='Place name (repeatable)')
@click.option('--variant', default='basic', show_default=True, type=click.Choice(['basic', 'pro']))
def cache_key(city: str, days: int, places: tuple, variant: str):
    """Print the itinerary cache key a request would use."""
    sig = compute_signature(list(places))
    click.echo(f'signature: {sig}')
    click.echo(f'hash:      {hash_signature(sig)}')
    click.echo(f'key:       {build_itinerary_key(city, days, hash_signature(sig), variant)}')


@cli.command('show-job')
@click.argument('job_id')
def show_job(job_id: str):
    """Print a job record from the configured document store."""
    job = JobStore(build_document_store()).get(job_id)
    if job is None:
        click.echo(f'✗ No job with id {job_id!r}', err=True)
        raise SystemExit(1)
    click.echo(json.dumps(job.dump(), indent=2))


@cli.command('submit-pdf')
@click.option('--city', required=True, help='City name')
@click.option('--days', required=True, type=int, help='Trip length in days')
@click.option('--place', '-p', 'places', multiple=True, required=True, help='Place name (repeatable)')
@click.option('--base-url', default=PUBLIC_BASE_URL, show_default=True, help='API base URL')
@click.option('--interval', default=POLL_INTERVAL_SECONDS, show_default=True, type=float,
              help='Seconds between polls')
def submit_pdf(city: str, days: int, places: tuple, base_url: str, interval: float):
    """Submit a PDF guide job and poll until it finishes."""
    payload = {
        'places':     [{'name': p} for p in places],
        'tripLength': days,
        'cityName':   city,
    }

    async def _run():
        async with JobPoller(base_url=base_url, interval=interval) as poller:
            return await poller.run(
                payload,
                on_update=lambda job: click.echo(f'… {job.status.value}'),
            )

    try:
        job = asyncio.run(_run())
    except JobPollError as exc:
        click.echo(f'✗ {exc}', err=True)
        raise SystemExit(1)

    if job.result_url:
        click.echo(f'✓ PDF ready: {job.result_url}')
    else:
        click.echo(f'✗ Job failed: {job.error}', err=True)
        raise SystemExit(1)


if __name__ == '__main__':
    cli()
