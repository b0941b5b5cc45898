"""Domain model for the listings read model: pure dataclass."""

from dataclasses import dataclass

from src.tk_common.enums import ListingKind


@dataclass(frozen=True)
class Listing:
    """The slice of a listing that bid pricing needs. Owned by the listings service."""

    id: str
    kind: ListingKind
    verified: bool
