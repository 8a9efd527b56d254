"""In-process job dispatcher that records jobs instead of running them."""

import structlog

from ordering.jobs.port import Job, JobDispatcher

logger = structlog.get_logger(__name__)


class InMemoryJobDispatcher(JobDispatcher):
    def __init__(self) -> None:
        self.jobs: list[Job] = []

    def dispatch(self, job: Job) -> None:
        self.jobs.append(job)
        logger.info("Job dispatched", job=job.name, **job.payload)

    def jobs_named(self, name: str) -> list[Job]:
        return [job for job in self.jobs if job.name == name]

    def clear(self) -> None:
        self.jobs.clear()
