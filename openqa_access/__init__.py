"""
openQA Access Layer - Core Package.

This package contains the client-side logic for:
- Transport: HMAC-signed, optionally serialized REST requests.
- Client: job resolution (clone following, latest per group, children)
  and the CRUD endpoints of an openQA instance.
- Events: AMQP subscriptions and normalization of job/comment events.
- Configuration: client configuration loading and validation.
"""

__version__ = "0.1.0"
