"""
RQ-backed job queue. Jobs are addressed by name; the worker side lives in
`explorer_api.jobs`.
"""
import logging
from typing import Any, Dict, List, Protocol

from redis import Redis
from rq import Queue

logger = logging.getLogger(__name__)

JOBS = {
    "updateExplorerSyncingProcess": "explorer_api.jobs.sync.update_explorer_syncing_process",
}


class JobQueue(Protocol):
    def enqueue(self, queue_name: str, job_name: str, data: Dict[str, Any]) -> None:
        ...

    def bulk_enqueue(self, queue_name: str, jobs: List[Dict[str, Any]]) -> None:
        """Enqueue `jobs` ({"name", "data"}) without waiting for any of them."""
        ...


class RQJobQueue:
    def __init__(self, redis_url: str):
        self.connection = Redis.from_url(redis_url)

    def _queue(self, queue_name: str) -> Queue:
        if queue_name not in JOBS:
            raise ValueError(f"Unknown job: {queue_name}")
        return Queue(queue_name, connection=self.connection)

    def enqueue(self, queue_name: str, job_name: str, data: Dict[str, Any]) -> None:
        self._queue(queue_name).enqueue(JOBS[queue_name], data, job_id=job_name)

    def bulk_enqueue(self, queue_name: str, jobs: List[Dict[str, Any]]) -> None:
        queue = self._queue(queue_name)
        queue.enqueue_many([
            Queue.prepare_data(JOBS[queue_name], args=(job["data"],), job_id=job["name"])
            for job in jobs
        ])
        logger.info(f"Enqueued {len(jobs)} {queue_name} jobs")
