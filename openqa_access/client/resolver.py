"""
Job Resolver.

Fetches jobs from the openQA REST API and resolves them:
- Follows clone chains (a restarted job points to its replacement).
- Reduces a job listing to the latest job per job group.
- Resolves chained, directly chained and parallel children.

Every call goes through the transport; nothing is cached.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlencode

from loguru import logger

from openqa_access.errors import (
    ChildResolutionError,
    DecodeError,
    MaxRecursionDepthError,
    OpenQAError,
)
from openqa_access.models import Children, Job, JobState, reject_constant
from openqa_access.transport import SigningTransport

DEFAULT_MAX_RECURSIONS = 10

RELATION_ALL = "all"


def decode_json(buf: bytes) -> Any:
    """Parse a response body, raising DecodeError on malformed JSON."""
    try:
        return json.loads(buf, parse_constant=reject_constant)
    except ValueError as e:
        raise DecodeError(f"invalid JSON response: {e}") from e


def unwrap(data: Any, key: str) -> Any:
    """Return ``data[key]`` of an envelope object."""
    if not isinstance(data, dict) or key not in data:
        raise DecodeError(f"unexpected response, missing '{key}' envelope")
    return data[key]


class ResourceResolver:
    """
    Resolves openQA jobs via a SigningTransport.

    Attributes:
        base_url: Base URL of the instance, without trailing slash.
        max_recursions: Maximum clone hops when following clones (0 = unbounded).
    """

    def __init__(
        self,
        transport: SigningTransport,
        base_url: str,
        max_recursions: int = DEFAULT_MAX_RECURSIONS,
    ) -> None:
        self.transport = transport
        self.base_url = base_url.rstrip("/")
        self.max_recursions = max_recursions

    def api_url(self, resource: str, params: Optional[Iterable] = None) -> str:
        """Build ``<base>/api/v1/<resource>[?query]``."""
        url = f"{self.base_url}/api/v1/{resource}"
        if params:
            query = urlencode(list(params.items()) if isinstance(params, Mapping) else list(params))
            if query:
                url += "?" + query
        return url

    def _apply_instance(self, job: Job) -> Job:
        job.remote = self.base_url
        job.link = f"{self.base_url}/tests/{job.id}"
        return job

    def _get_json(self, url: str) -> Any:
        return decode_json(self.transport.send("GET", url))

    def _decode_jobs(self, items: Any) -> List[Job]:
        if not isinstance(items, list):
            raise DecodeError("unexpected response, expected a list of jobs")
        return [self._apply_instance(Job.from_dict(item)) for item in items]

    # ------------------------------------------------------------------
    # Single jobs
    # ------------------------------------------------------------------

    def fetch_job(self, job_id: int) -> Job:
        """
        Fetch a job by its identifier.

        Raises:
            DecodeError: If the response is not a ``{"job": ...}`` envelope.
        """
        data = unwrap(self._get_json(self.api_url(f"jobs/{job_id}")), "job")
        if not isinstance(data, dict):
            raise DecodeError(f"unexpected job payload for job {job_id}")
        return self._apply_instance(Job.from_dict(data))

    def fetch_job_following_clones(self, job_id: int) -> Job:
        """
        Fetch a job, following its clones to the most recent one.

        A clone pointing back to the job itself ends the chain.

        Raises:
            MaxRecursionDepthError: If more than ``max_recursions`` hops are needed.
        """
        hops = 0
        job = self.fetch_job(job_id)
        while job.is_cloned:
            hops += 1
            if self.max_recursions != 0 and hops >= self.max_recursions:
                logger.warning(
                    f"Clone chain of job {job_id} exceeds {self.max_recursions} hops"
                )
                raise MaxRecursionDepthError(job_id, hops)
            logger.debug(f"Job {job.id} was cloned as {job.clone_id}")
            job = self.fetch_job(job.clone_id)
        return job

    def fetch_job_state(self, job_id: int) -> JobState:
        """Fetch only state, result and blocker of a job."""
        data = unwrap(self._get_json(self.api_url(f"jobs/{job_id}")), "job")
        if not isinstance(data, dict):
            raise DecodeError(f"unexpected job payload for job {job_id}")
        return JobState.from_dict(data)

    # ------------------------------------------------------------------
    # Job listings
    # ------------------------------------------------------------------

    def fetch_jobs(self, job_ids: Iterable[int]) -> List[Job]:
        """Fetch several jobs in one request."""
        ids = list(job_ids)
        if not ids:
            return []
        data = self._get_json(self.api_url("jobs", [("ids", i) for i in ids]))
        return self._decode_jobs(unwrap(data, "jobs"))

    def fetch_jobs_following_clones(self, job_ids: Iterable[int]) -> List[Job]:
        """Fetch several jobs, each following its clones."""
        return [self.fetch_job_following_clones(i) for i in job_ids]

    def fetch_overview(
        self, testsuite: str = "", params: Optional[Mapping[str, str]] = None
    ) -> List[Job]:
        """
        Query the job overview.

        The overview only carries id and name of each job. ``params`` may
        hold any filter the service understands (arch, distri, flavor, ...).
        """
        query = dict(params or {})
        if testsuite:
            query["test"] = testsuite
        return self._decode_jobs(self._get_json(self.api_url("jobs/overview", query)))

    def fetch_latest_per_group(
        self, testsuite: str, params: Optional[Mapping[str, str]] = None
    ) -> List[Job]:
        """
        Fetch the latest job of ``testsuite`` in every job group.

        For each group the job with the highest id wins. The order of the
        returned list is unspecified.
        """
        query = dict(params or {})
        if testsuite:
            query["test"] = testsuite
        data = self._get_json(self.api_url("jobs", query))
        jobs = self._decode_jobs(unwrap(data, "jobs"))
        return latest_per_group(jobs)

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    def fetch_children(
        self, job: Job, relations: str = RELATION_ALL, follow: bool = False
    ) -> List[Job]:
        """
        Resolve the children of ``job`` to full job records.

        Args:
            job: Parent job.
            relations: "chained", "directly_chained", "parallel" or "all".
            follow: Return the clones of the children instead of the originals.

        Raises:
            ValueError: On an unknown relation name.
            ChildResolutionError: On the first child that cannot be fetched;
                the children fetched so far are attached.
        """
        ids = select_relations(job.children, relations)
        fetch = self.fetch_job_following_clones if follow else self.fetch_job
        resolved: List[Job] = []
        for child_id in ids:
            try:
                resolved.append(fetch(child_id))
            except OpenQAError as e:
                logger.error(f"Failed to fetch child {child_id} of job {job.id}: {e}")
                raise ChildResolutionError(child_id, resolved) from e
        return resolved


def select_relations(children: Children, relations: str) -> List[int]:
    """Pick the id list for one relation, or the union for "all"."""
    if relations == RELATION_ALL:
        return children.all()
    if relations not in Children.RELATIONS:
        raise ValueError(
            f"Unknown relation '{relations}'. "
            f"Supported: {list(Children.RELATIONS) + [RELATION_ALL]}"
        )
    return list(getattr(children, relations))


def latest_per_group(jobs: Iterable[Job]) -> List[Job]:
    """Keep the job with the highest id per group id. First one wins on ties."""
    latest: Dict[int, Job] = {}
    for job in jobs:
        current = latest.get(job.group_id)
        if current is None or job.id > current.id:
            latest[job.group_id] = job
    return list(latest.values())
