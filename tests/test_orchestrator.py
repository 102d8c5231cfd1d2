import pytest

from conftest import PARIS_REQUEST, FakeGenerator, FakeObjectStore, FakeRenderer
from errors import StoreError
from jobs import JobStore
from orchestrator import artifact_path, create_filename, run_pdf_job
from planner import VARIANT_PRO
from schemas import JobStatus, TripRequest
from signature import compute_signature, hash_signature


class RecordingJobStore(JobStore):
    def __init__(self, store, fail_on_complete=False):
        super().__init__(store)
        self.terminal_updates = []
        self.fail_on_complete = fail_on_complete

    def mark_complete(self, job_id, result_url):
        self.terminal_updates.append(('COMPLETE', result_url))
        if self.fail_on_complete:
            raise StoreError('write failed')
        super().mark_complete(job_id, result_url)

    def mark_failed(self, job_id, error):
        self.terminal_updates.append(('FAILED', error))
        super().mark_failed(job_id, error)


@pytest.fixture
def pipeline(services, store):
    services.job_store    = RecordingJobStore(store)
    services.renderer     = FakeRenderer()
    services.object_store = FakeObjectStore()
    services.job_store.create('job-1', PARIS_REQUEST)
    return services


REQUEST = TripRequest.model_validate(PARIS_REQUEST)


def test_filenames():
    assert create_filename('Paris', 3) == 'Paris_3d_Guide.pdf'
    assert create_filename('  São Paulo / Centro ', 2) == 'S_o_Paulo_Centro_2d_Guide.pdf'
    assert artifact_path('abc', 'New York', 1) == 'jobs/abc/New_York_1d_Guide.pdf'


async def test_successful_job_completes_once(pipeline):
    await run_pdf_job('job-1', REQUEST, pipeline)

    job = pipeline.job_store.get('job-1')
    assert job.status is JobStatus.COMPLETE
    assert job.result_url == 'https://files.example/jobs/job-1/Paris_3d_Guide.pdf'
    assert pipeline.object_store.saved['jobs/job-1/Paris_3d_Guide.pdf'] == b'%PDF-fake'
    assert pipeline.job_store.terminal_updates == [('COMPLETE', job.result_url)]


async def test_generator_failure_fails_job_once(pipeline):
    pipeline.generator = FakeGenerator(fail=True)
    await run_pdf_job('job-1', REQUEST, pipeline)

    job = pipeline.job_store.get('job-1')
    assert job.status is JobStatus.FAILED
    assert 'model unavailable' in job.error
    assert job.result_url is None
    assert [kind for kind, _ in pipeline.job_store.terminal_updates] == ['FAILED']
    assert pipeline.object_store.saved == {}


async def test_terminal_write_failure_is_not_retried(pipeline, store):
    pipeline.job_store = RecordingJobStore(store, fail_on_complete=True)
    await run_pdf_job('job-1', REQUEST, pipeline)
    assert [kind for kind, _ in pipeline.job_store.terminal_updates] == ['COMPLETE']
    assert pipeline.job_store.get('job-1').status is JobStatus.PROCESSING


async def test_pdf_job_uses_pro_variant_with_guide(pipeline, generator):
    await run_pdf_job('job-1', REQUEST, pipeline)
    assert generator.guide_calls == 1
    sig_hash = hash_signature(compute_signature(REQUEST.places))
    entry = pipeline.itinerary_cache.get('Paris', 3, sig_hash, VARIANT_PRO)
    assert entry is not None
    assert entry.guide.tagline == 'Paris at its best'
