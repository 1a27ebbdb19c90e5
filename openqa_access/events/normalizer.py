"""
Event Normalizer.

Decodes raw message-bus deliveries into typed events:
- Job snapshots (full job payload) -> Job.
- Job status updates (job.done / job.restarted) -> JobStatus.
- Comments -> CommentEvent.

The ``id`` field of status updates arrives as string, integer or float
depending on the producer, so payloads are decoded loosely first and the
identifier is coerced afterwards. The event kind is derived from the
routing key, it is not part of the payload.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Union

from loguru import logger

from openqa_access.errors import DecodeError, InvalidIdentifierError
from openqa_access.models import Job, as_int, as_str, reject_constant

KIND_JOB_DONE = "job.done"
KIND_JOB_RESTARTED = "job.restarted"
KIND_COMMENT = "comment"

_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1
_DECIMAL_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class RawMessage:
    """A single non-empty delivery from the bus."""

    routing_key: str
    body: bytes
    exchange: str = ""


@dataclass
class JobStatus:
    """
    Job status update from the bus.

    ``result`` is passed through untyped, its shape differs between
    producers. ``type`` is derived from the routing key.
    """

    type: str = ""
    id: int = 0
    arch: str = ""
    build: str = ""
    flavor: str = ""
    machine: str = ""
    test: str = ""
    bugref: str = ""
    group_id: int = 0
    newbuild: str = ""
    reason: str = ""
    remaining: int = 0
    result: Any = None

    @property
    def kind(self) -> str:
        return self.type


@dataclass
class CommentEvent:
    """Comment notification from the bus."""

    id: int = 0
    created: str = ""
    updated: str = ""
    text: str = ""
    user: str = ""

    @property
    def kind(self) -> str:
        return KIND_COMMENT


JobEvent = Union[Job, JobStatus, CommentEvent]


def event_kind(routing_key: str) -> str:
    """Map a routing key to a status kind; empty if unrecognized."""
    if routing_key.endswith(".job.done"):
        return KIND_JOB_DONE
    if routing_key.endswith(".job.restart"):
        return KIND_JOB_RESTARTED
    return ""


def is_comment_key(routing_key: str) -> bool:
    return "comment" in routing_key.split(".")


def coerce_identifier(value: Any, strict: bool = False) -> int:
    """
    Coerce a loosely typed identifier to an int.

    Strings are parsed as base-10 integers; unparseable strings become 0
    (or raise DecodeError when ``strict``). Integers pass through, floats
    are truncated toward zero.

    Raises:
        InvalidIdentifierError: For any other type (including bool and None).
    """
    if isinstance(value, bool):
        raise InvalidIdentifierError(f"invalid ID type: {type(value).__name__}")
    if isinstance(value, str):
        if _DECIMAL_RE.fullmatch(value):
            parsed = int(value, 10)
            if _INT64_MIN <= parsed <= _INT64_MAX:
                return parsed
        if strict:
            raise DecodeError(f"invalid ID: {value!r}")
        logger.warning(f"Unparseable ID {value!r} in bus message, using 0")
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (OverflowError, ValueError) as e:
            raise InvalidIdentifierError(f"invalid ID: {value!r}") from e
    raise InvalidIdentifierError(f"invalid ID type: {type(value).__name__}")


def load_payload(message: RawMessage) -> Dict[str, Any]:
    """Decode the message body into a loosely typed JSON object."""
    try:
        data = json.loads(message.body, parse_constant=reject_constant)
    except ValueError as e:
        raise DecodeError(
            f"malformed message on '{message.routing_key}': {e}"
        ) from e
    if not isinstance(data, dict):
        raise DecodeError(
            f"unexpected message on '{message.routing_key}', expected a JSON object"
        )
    return data


class EventNormalizer:
    """
    Turns raw bus messages into JobStatus, Job or CommentEvent records.

    Args:
        strict_ids: Raise DecodeError on unparseable identifier strings
            instead of coercing them to 0.
    """

    def __init__(self, strict_ids: bool = False) -> None:
        self.strict_ids = strict_ids

    def decode_job_status(self, message: RawMessage) -> JobStatus:
        data = load_payload(message)
        return JobStatus(
            type=event_kind(message.routing_key),
            id=coerce_identifier(data.get("id"), strict=self.strict_ids),
            arch=as_str(data.get("ARCH")),
            build=as_str(data.get("BUILD")),
            flavor=as_str(data.get("FLAVOR")),
            machine=as_str(data.get("MACHINE")),
            test=as_str(data.get("TEST")),
            bugref=as_str(data.get("bugref")),
            group_id=as_int(data.get("group_id")),
            newbuild=as_str(data.get("newbuild")),
            reason=as_str(data.get("reason")),
            remaining=as_int(data.get("remaining")),
            result=data.get("result"),
        )

    def decode_job(self, message: RawMessage) -> Job:
        """Decode a full job snapshot."""
        job = Job.from_dict(load_payload(message))
        # job.done topics omit the state by convention
        if not job.state and message.routing_key.endswith(".job.done"):
            job.state = "done"
        return job

    def decode_comment(self, message: RawMessage) -> CommentEvent:
        data = load_payload(message)
        return CommentEvent(
            id=as_int(data.get("id")),
            created=as_str(data.get("created")),
            updated=as_str(data.get("updated")),
            text=as_str(data.get("text")),
            user=as_str(data.get("user")),
        )

    def decode(self, message: RawMessage) -> JobEvent:
        """Decode by routing key: comments as CommentEvent, all else as JobStatus."""
        if is_comment_key(message.routing_key):
            return self.decode_comment(message)
        return self.decode_job_status(message)
