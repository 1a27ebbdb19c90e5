"""
openQA Instance.

Facade over one openQA instance: job resolution (see ResourceResolver)
plus the plain CRUD endpoints for jobs, comments, job groups, workers and
machines. Mutating calls require API credentials and fail before any
request is sent when they are missing.
"""

from __future__ import annotations

import dataclasses
from typing import Any, List, Optional, TYPE_CHECKING

from loguru import logger

from openqa_access.client.resolver import (
    DEFAULT_MAX_RECURSIONS,
    ResourceResolver,
    decode_json,
    unwrap,
)
from openqa_access.errors import AuthenticationRequiredError, DecodeError, NotFoundError
from openqa_access.models import Comment, JobGroup, Machine, Worker, as_int
from openqa_access.transport import Credentials, DEFAULT_USER_AGENT, SigningTransport

if TYPE_CHECKING:
    from openqa_access.config.loader import ClientConfig

O3_URL = "https://openqa.opensuse.org"


class Instance(ResourceResolver):
    """
    Client for a single openQA instance.

    Usage::

        instance = create_instance("https://openqa.opensuse.org")
        job = instance.fetch_job_following_clones(4242)
        for child in instance.fetch_children(job, follow=True):
            print(child)
    """

    @classmethod
    def from_config(cls, config: "ClientConfig") -> "Instance":
        """Create an instance from a loaded client configuration."""
        transport = SigningTransport(
            credentials=Credentials(config.api_key, config.api_secret),
            allow_parallel=config.allow_parallel,
            user_agent=config.user_agent,
            timeout_sec=config.timeout_sec,
        )
        return cls(transport, config.remote, max_recursions=config.max_recursions)

    def _require_credentials(self, operation: str) -> None:
        if not self.transport.has_credentials:
            raise AuthenticationRequiredError(
                f"API key or secret not set, required for {operation}"
            )

    def _list(self, url: str, key: Optional[str]) -> List[Any]:
        data = decode_json(self.transport.send("GET", url))
        if key is not None:
            data = unwrap(data, key)
        if not isinstance(data, list):
            raise DecodeError(f"unexpected response from {url}, expected a list")
        return data

    # ------------------------------------------------------------------
    # Jobs & comments
    # ------------------------------------------------------------------

    def delete_job(self, job_id: int) -> None:
        self._require_credentials("deleting jobs")
        self.transport.send("DELETE", self.api_url(f"jobs/{job_id}"))
        logger.info(f"Deleted job {job_id}")

    def get_comments(self, job_id: int) -> List[Comment]:
        """Fetch the comments of a job."""
        return [Comment.from_dict(c) for c in self._list(self.api_url(f"jobs/{job_id}/comments"), None)]

    # ------------------------------------------------------------------
    # Job groups
    # ------------------------------------------------------------------

    @staticmethod
    def _groups_resource(parent: bool) -> str:
        return "parent_groups" if parent else "job_groups"

    def get_job_groups(self, parent: bool = False) -> List[JobGroup]:
        """Fetch all job groups, or all parent job groups."""
        url = self.api_url(self._groups_resource(parent))
        return [JobGroup.from_dict(g) for g in self._list(url, None)]

    def get_job_group(self, group_id: int, parent: bool = False) -> JobGroup:
        url = self.api_url(f"{self._groups_resource(parent)}/{group_id}")
        groups = self._list(url, None)
        if not groups:
            raise NotFoundError(f"job group {group_id} not found")
        return JobGroup.from_dict(groups[0])

    def post_job_group(self, group: JobGroup, parent: bool = False) -> JobGroup:
        """
        Create a job group.

        Returns:
            A copy of ``group`` carrying the id assigned by the service.
        """
        self._require_credentials("creating job groups")
        url = self.api_url(self._groups_resource(parent))
        data = decode_json(self.transport.send("POST", url, group.form_params()))
        created = dataclasses.replace(group, id=_assigned_id(data, group.id))
        logger.info(f"Created job group '{group.name}' (id={created.id})")
        return created

    def delete_job_group(self, group_id: int) -> None:
        self._require_credentials("deleting job groups")
        self.transport.send("DELETE", self.api_url(f"job_groups/{group_id}"))
        logger.info(f"Deleted job group {group_id}")

    def get_job_group_jobs(self, group_id: int) -> List[int]:
        """Fetch the ids of all jobs in a job group."""
        data = decode_json(self.transport.send("GET", self.api_url(f"job_groups/{group_id}/jobs")))
        ids = unwrap(data, "ids")
        if not isinstance(ids, list):
            raise DecodeError(f"invalid response for jobs of group {group_id}")
        try:
            return [int(i) for i in ids]
        except (TypeError, ValueError, OverflowError) as e:
            raise DecodeError(f"invalid job id in group {group_id}: {e}") from e

    def delete_job_group_jobs(self, group_id: int) -> None:
        """Delete every job of a job group, stopping at the first failure."""
        self._require_credentials("deleting jobs")
        for job_id in self.get_job_group_jobs(group_id):
            self.delete_job(job_id)

    # ------------------------------------------------------------------
    # Workers & machines
    # ------------------------------------------------------------------

    def get_workers(self) -> List[Worker]:
        return [Worker.from_dict(w) for w in self._list(self.api_url("workers"), "workers")]

    def get_machines(self) -> List[Machine]:
        return [Machine.from_dict(m) for m in self._list(self.api_url("machines"), "Machines")]

    def get_machine(self, machine_id: int) -> Machine:
        machines = self._list(self.api_url(f"machines/{machine_id}"), "Machines")
        if not machines:
            raise NotFoundError(f"machine {machine_id} not found")
        return Machine.from_dict(machines[0])

    def post_machine(self, machine: Machine) -> Machine:
        """
        Create a machine, or update it if it already has an id.

        Returns:
            A copy of ``machine`` carrying the id assigned by the service.
        """
        self._require_credentials("creating machines")
        if machine.id:
            method, url = "PUT", self.api_url(f"machines/{machine.id}")
        else:
            method, url = "POST", self.api_url("machines")
        data = decode_json(self.transport.send(method, url, machine.form_params()))
        saved = dataclasses.replace(
            machine, id=_assigned_id(data, machine.id), settings=dict(machine.settings)
        )
        logger.info(f"Saved machine '{machine.name}' (id={saved.id})")
        return saved

    def delete_machine(self, machine_id: int) -> None:
        self._require_credentials("deleting machines")
        self.transport.send("DELETE", self.api_url(f"machines/{machine_id}"))
        logger.info(f"Deleted machine {machine_id}")

    def close(self) -> None:
        self.transport.close()


def _assigned_id(data: Any, current: int) -> int:
    """Id from a create/update response, ``current`` if absent or not a number."""
    if not isinstance(data, dict):
        return current
    return as_int(data.get("id"), current)


def create_instance(
    url: str,
    api_key: str = "",
    api_secret: str = "",
    max_recursions: int = DEFAULT_MAX_RECURSIONS,
    allow_parallel: bool = False,
    user_agent: str = DEFAULT_USER_AGENT,
) -> Instance:
    """Create an Instance for the openQA server at ``url``."""
    transport = SigningTransport(
        credentials=Credentials(api_key, api_secret),
        allow_parallel=allow_parallel,
        user_agent=user_agent,
    )
    logger.info(f"openQA instance created — url={url}, parallel={allow_parallel}")
    return Instance(transport, url, max_recursions=max_recursions)


def create_o3_instance(**kwargs: Any) -> Instance:
    """Create an Instance for openqa.opensuse.org."""
    return create_instance(O3_URL, **kwargs)
