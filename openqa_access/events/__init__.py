"""
Message Bus Module.

Consumes openQA job-lifecycle events from the AMQP bus:
- SubscriptionSession / Subscription: broker connection and per-topic channels.
- EventNormalizer: decodes deliveries into Job, JobStatus and CommentEvent.
"""

from openqa_access.events.normalizer import (
    CommentEvent,
    EventNormalizer,
    JobEvent,
    JobStatus,
    KIND_COMMENT,
    KIND_JOB_DONE,
    KIND_JOB_RESTARTED,
    RawMessage,
    coerce_identifier,
    event_kind,
)
from openqa_access.events.session import (
    DEFAULT_EXCHANGE,
    SessionState,
    Subscription,
    SubscriptionSession,
)

__all__ = [
    "CommentEvent",
    "DEFAULT_EXCHANGE",
    "EventNormalizer",
    "JobEvent",
    "JobStatus",
    "KIND_COMMENT",
    "KIND_JOB_DONE",
    "KIND_JOB_RESTARTED",
    "RawMessage",
    "SessionState",
    "Subscription",
    "SubscriptionSession",
    "coerce_identifier",
    "event_kind",
]
