"""
openQA Data Records.

Plain records for the resources returned by the openQA REST API:
- Job (with its chained/directly chained/parallel relations and settings).
- JobState, the slim polling projection of a job.
- Comment, JobGroup, Machine and Worker.

Decoding is tolerant: missing keys fall back to defaults and integer
fields that the service occasionally sends as strings are converted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


def as_int(value: Any, default: int = 0) -> int:
    """Convert an integer-ish JSON value, falling back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def reject_constant(token: str) -> Any:
    """``parse_constant`` hook for json.loads: NaN and Infinity are not valid JSON."""
    raise ValueError(f"non-finite number {token} in payload")


def as_str(value: Any) -> str:
    return "" if value is None else str(value)


def as_id_list(values: Any) -> List[int]:
    if not values:
        return []
    return [as_int(v) for v in values]


def settings_from_pairs(pairs: Any) -> Dict[str, str]:
    """
    Convert the service's ``[{"key": .., "value": ..}]`` settings list.

    Entries missing either key are skipped. A plain mapping is accepted too.
    """
    if isinstance(pairs, Mapping):
        return {str(k): as_str(v) for k, v in pairs.items()}
    result: Dict[str, str] = {}
    for pair in pairs or []:
        if not isinstance(pair, Mapping):
            continue
        if "key" not in pair or "value" not in pair:
            continue
        result[str(pair["key"])] = as_str(pair["value"])
    return result


@dataclass
class Children:
    """
    Chained, directly chained and parallel relations of a job.

    Used for both the ``children`` and the ``parents`` of a job.
    """

    chained: List[int] = field(default_factory=list)
    directly_chained: List[int] = field(default_factory=list)
    parallel: List[int] = field(default_factory=list)

    RELATIONS = ("chained", "directly_chained", "parallel")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Children":
        data = data or {}
        return cls(
            chained=as_id_list(data.get("Chained")),
            directly_chained=as_id_list(data.get("Directly chained")),
            parallel=as_id_list(data.get("Parallel")),
        )

    def to_dict(self) -> Dict[str, List[int]]:
        return {
            "Chained": list(self.chained),
            "Directly chained": list(self.directly_chained),
            "Parallel": list(self.parallel),
        }

    def all(self) -> List[int]:
        """Union of all relations, in chained/directly chained/parallel order."""
        return [*self.chained, *self.directly_chained, *self.parallel]


@dataclass
class JobSettings:
    """The subset of job settings the client cares about."""

    arch: str = ""
    backend: str = ""
    machine: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "JobSettings":
        data = data or {}
        return cls(
            arch=as_str(data.get("ARCH")),
            backend=as_str(data.get("BACKEND")),
            machine=as_str(data.get("MACHINE")),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"ARCH": self.arch, "BACKEND": self.backend, "MACHINE": self.machine}


@dataclass
class Job:
    """
    A single openQA job.

    ``link`` and ``remote`` are filled in by the client, they are not part
    of the fetched JSON.
    """

    id: int = 0
    group_id: int = 0
    test: str = ""
    name: str = ""
    state: str = ""
    result: str = ""
    clone_id: int = 0
    priority: int = 0
    assigned_worker_id: int = 0
    blocked_by_id: int = 0
    t_started: str = ""
    t_finished: str = ""
    children: Children = field(default_factory=Children)
    parents: Children = field(default_factory=Children)
    settings: JobSettings = field(default_factory=JobSettings)
    link: str = ""
    remote: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Job":
        return cls(
            id=as_int(data.get("id")),
            group_id=as_int(data.get("group_id")),
            test=as_str(data.get("test")),
            name=as_str(data.get("name")),
            state=as_str(data.get("state")),
            result=as_str(data.get("result")),
            clone_id=as_int(data.get("clone_id")),
            priority=as_int(data.get("priority")),
            assigned_worker_id=as_int(data.get("assigned_worker_id")),
            blocked_by_id=as_int(data.get("blocked_by_id")),
            t_started=as_str(data.get("t_started")),
            t_finished=as_str(data.get("t_finished")),
            children=Children.from_dict(data.get("children")),
            parents=Children.from_dict(data.get("parents")),
            settings=JobSettings.from_dict(data.get("settings")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the service's field names."""
        return {
            "id": self.id,
            "group_id": self.group_id,
            "test": self.test,
            "name": self.name,
            "state": self.state,
            "result": self.result,
            "clone_id": self.clone_id,
            "priority": self.priority,
            "assigned_worker_id": self.assigned_worker_id,
            "blocked_by_id": self.blocked_by_id,
            "t_started": self.t_started,
            "t_finished": self.t_finished,
            "children": self.children.to_dict(),
            "parents": self.parents.to_dict(),
            "settings": self.settings.to_dict(),
        }

    @property
    def is_cloned(self) -> bool:
        """True if the job was superseded by another job.

        A clone id pointing at the job itself does not count.
        """
        return self.clone_id != 0 and self.clone_id != self.id

    @property
    def job_state(self) -> str:
        """The result for finished jobs, the state otherwise."""
        if self.state == "done":
            return self.result
        return self.state

    def __str__(self) -> str:
        return f"{self.id} {self.name} ({self.job_state}) {self.link}".rstrip()


@dataclass
class JobState:
    """State, result and blocker of a job, as returned for polling."""

    state: str = ""
    result: str = ""
    blocked_by: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JobState":
        return cls(
            state=as_str(data.get("state")),
            result=as_str(data.get("result")),
            blocked_by=as_int(data.get("blocked_by_id")),
        )


@dataclass
class Comment:
    """A comment attached to a job."""

    id: int = 0
    text: str = ""
    rendered_markdown: str = ""
    bugrefs: List[str] = field(default_factory=list)
    created: str = ""
    updated: str = ""
    user: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Comment":
        return cls(
            id=as_int(data.get("id")),
            text=as_str(data.get("text")),
            rendered_markdown=as_str(data.get("renderedMarkdown")),
            bugrefs=[str(b) for b in data.get("bugrefs") or []],
            created=as_str(data.get("created")),
            updated=as_str(data.get("updated")),
            user=as_str(data.get("userName")),
        )


@dataclass
class JobGroup:
    """A job group (or parent job group)."""

    id: int = 0
    name: str = ""
    parent_id: int = 0
    description: str = ""
    build_version_sort: int = 0
    carry_over_bugrefs: int = 0
    default_priority: int = 0
    keep_important_logs_in_days: int = 0
    keep_important_results_in_days: int = 0
    keep_logs_in_days: int = 0
    keep_results_in_days: int = 0
    size_limit_gb: int = 0
    sort_order: int = 0
    template: str = ""

    _INT_FIELDS = (
        "parent_id",
        "build_version_sort",
        "carry_over_bugrefs",
        "default_priority",
        "keep_important_logs_in_days",
        "keep_important_results_in_days",
        "keep_logs_in_days",
        "keep_results_in_days",
        "size_limit_gb",
        "sort_order",
    )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JobGroup":
        # size_limit_gb is sometimes sent as a string
        kwargs: Dict[str, Any] = {name: as_int(data.get(name)) for name in cls._INT_FIELDS}
        return cls(
            id=as_int(data.get("id")),
            name=as_str(data.get("name")),
            description=as_str(data.get("description")),
            template=as_str(data.get("template")),
            **kwargs,
        )

    def form_params(self) -> Dict[str, str]:
        """Form parameters for creating the group."""
        params = {"name": self.name}
        if self.parent_id:
            params["parent_id"] = str(self.parent_id)
        if self.description:
            params["description"] = self.description
        for name in self._INT_FIELDS:
            if name == "parent_id":
                continue
            value = getattr(self, name)
            if value:
                params[name] = str(value)
        return params


@dataclass
class Machine:
    """A machine definition. Settings are a plain key/value mapping."""

    id: int = 0
    name: str = ""
    backend: str = ""
    settings: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Machine":
        return cls(
            id=as_int(data.get("id")),
            name=as_str(data.get("name")),
            backend=as_str(data.get("backend")),
            settings=settings_from_pairs(data.get("settings")),
        )

    def form_params(self) -> Dict[str, str]:
        params = {"name": self.name, "backend": self.backend}
        for key, value in self.settings.items():
            params[f"settings[{key}]"] = value
        return params


@dataclass
class Worker:
    """A worker instance as reported by the service."""

    id: int = 0
    host: str = ""
    instance: int = 0
    status: str = ""
    alive: int = 0
    connected: int = 0
    websocket: int = 0
    error: str = ""
    properties: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Worker":
        return cls(
            id=as_int(data.get("id")),
            host=as_str(data.get("host")),
            instance=as_int(data.get("instance")),
            status=as_str(data.get("status")),
            alive=as_int(data.get("alive")),
            connected=as_int(data.get("connected")),
            websocket=as_int(data.get("websocket")),
            error=as_str(data.get("error")),
            properties={str(k): as_str(v) for k, v in (data.get("properties") or {}).items()},
        )
