"""
openQA REST Client Module.

Provides:
- ResourceResolver: job fetching, clone following, latest job per group
  and child resolution.
- Instance: resolver plus the CRUD endpoints of one openQA instance.
"""

from openqa_access.client.instance import (
    Instance,
    O3_URL,
    create_instance,
    create_o3_instance,
)
from openqa_access.client.resolver import (
    DEFAULT_MAX_RECURSIONS,
    ResourceResolver,
    latest_per_group,
)

__all__ = [
    "DEFAULT_MAX_RECURSIONS",
    "Instance",
    "O3_URL",
    "ResourceResolver",
    "create_instance",
    "create_o3_instance",
    "latest_per_group",
]
