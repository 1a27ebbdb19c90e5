"""
Root conftest.py — Shared Pytest fixtures.

Provides fixtures for:
- A fake openQA REST endpoint plugged into a mocked requests.Session.
- Unsigned and signed Instance objects talking to that endpoint.
- Fake AMQP connections and channels for the subscription layer.

No test touches the network.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Dict, Iterable, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from openqa_access.client.instance import Instance
from openqa_access.transport import Credentials, SigningTransport, url_path

BASE_URL = "https://openqa.example.com"
FIXED_TIME = 1617024969


# ---------------------------------------------------------------------------
# REST Fakes
# ---------------------------------------------------------------------------


class FakeOpenQA:
    """
    In-memory openQA endpoint.

    Routes are keyed by method and path (query string ignored); every
    request is recorded in ``calls``.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Tuple[int, bytes]] = {}
        self.calls: List[SimpleNamespace] = []

    def add(
        self,
        method: str,
        path: str,
        payload: Any = None,
        status: int = 200,
        raw: Optional[bytes] = None,
    ) -> None:
        body = raw if raw is not None else json.dumps(payload).encode("utf-8")
        self.routes[(method, path)] = (status, body)

    def add_job(self, job_id: int, clone_id: int = 0, group_id: int = 1, **fields: Any) -> None:
        job = {"id": job_id, "clone_id": clone_id, "group_id": group_id, "name": f"job-{job_id}"}
        job.update(fields)
        self.add("GET", f"/api/v1/jobs/{job_id}", {"job": job})

    def add_clone_chain(self, ids: Iterable[int]) -> None:
        """Register jobs where each one is cloned as the next; the last is not cloned."""
        ids = list(ids)
        for current, following in zip(ids, ids[1:] + [0]):
            self.add_job(current, clone_id=following)

    def request(
        self,
        method: str,
        url: str,
        data: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> MagicMock:
        path, _, query = url_path(url).partition("?")
        self.calls.append(SimpleNamespace(
            method=method, url=url, path=path, query=query, data=data, headers=headers or {},
        ))
        status, body = self.routes.get((method, path), (404, b'{"error": "no such route"}'))
        response = MagicMock()
        response.status_code = status
        response.content = body
        return response

    def paths(self) -> List[str]:
        return [call.path for call in self.calls]


@pytest.fixture
def fake_openqa() -> FakeOpenQA:
    return FakeOpenQA()


@pytest.fixture
def http_session(fake_openqa: FakeOpenQA) -> MagicMock:
    """A mocked requests.Session routed to the fake endpoint."""
    session = MagicMock()
    session.request.side_effect = fake_openqa.request
    return session


@pytest.fixture
def instance(http_session: MagicMock) -> Instance:
    """Anonymous (unsigned) instance."""
    transport = SigningTransport(session=http_session, clock=lambda: FIXED_TIME)
    return Instance(transport, BASE_URL)


@pytest.fixture
def signed_instance(http_session: MagicMock) -> Instance:
    """Instance with API credentials."""
    transport = SigningTransport(
        credentials=Credentials("KEY", "SECRET"),
        session=http_session,
        clock=lambda: FIXED_TIME,
    )
    return Instance(transport, BASE_URL)


# ---------------------------------------------------------------------------
# Message Bus Fakes
# ---------------------------------------------------------------------------


def delivery(routing_key: str, body: bytes) -> Tuple[Any, Any, bytes]:
    """Build a (method, properties, body) triple as yielded by pika's consume()."""
    method = SimpleNamespace(routing_key=routing_key, exchange="pubsub")
    return method, None, body


def make_bus_connection(deliveries: Iterable[Any] = ()) -> MagicMock:
    """
    A fake pika connection whose channel yields ``deliveries``.

    ``deliveries`` may also be a generator that raises to simulate a
    broken channel.
    """
    connection = MagicMock()
    connection.is_closed = False

    def _close() -> None:
        connection.is_closed = True

    connection.close.side_effect = _close

    channel = MagicMock()
    channel.is_open = True
    channel.queue_declare.return_value.method.queue = "amq.gen-test"
    channel.consume.return_value = iter(deliveries)
    connection.channel.return_value = channel
    return connection


@pytest.fixture
def bus_connection() -> MagicMock:
    return make_bus_connection()
