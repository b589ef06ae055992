"""Identifiers and descriptive data of businesses and their offerings."""

from __future__ import annotations

from dataclasses import dataclass, field

from .community_types import CommunityIdentifier

OfferingIdentifier = int


@dataclass(frozen=True)
class BusinessIdentifier:
    """A business within a community, identified by its controlling account."""

    community_identifier: CommunityIdentifier = field(default_factory=CommunityIdentifier)
    controller: bytes = b""


@dataclass(frozen=True)
class BusinessData:
    """A business's url and the identifier of its most recent offering."""

    url: str = ""
    last_oid: int = 0


@dataclass(frozen=True)
class OfferingData:
    """The url describing an offering."""

    url: str = ""