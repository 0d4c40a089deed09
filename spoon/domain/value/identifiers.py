"""Strongly typed identifiers for Spoonjoy identity entities.

Using NewType keeps account ids and identity ids from being mixed up
while staying plain UUIDs at runtime.
"""

from typing import NewType
from uuid import UUID

AccountId = NewType("AccountId", UUID)
ExternalIdentityId = NewType("ExternalIdentityId", UUID)
