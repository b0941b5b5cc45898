"""Proposal ranking: the ordering every listing view must agree on.

Higher tokens_spent ranks first; on a tie the earlier submission wins.
Proposal id is the last key only to make the order total.
"""

from collections.abc import Iterable

from src.tk_bidding.domain.models import Proposal


def priority_key(proposal: Proposal) -> tuple[int, object, str]:
    return (-proposal.tokens_spent, proposal.created_at, proposal.id)


def rank_proposals(proposals: Iterable[Proposal]) -> list[Proposal]:
    return sorted(proposals, key=priority_key)


def highest_committed(proposals: Iterable[Proposal]) -> int:
    """Largest tokens_spent among the proposals, 0 when there are none."""
    return max((p.tokens_spent for p in proposals), default=0)
