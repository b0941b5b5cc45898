"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class ListingKind(str, Enum):
    BUYER = "BUYER"
    SELLER = "SELLER"


class ProposalStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class LedgerEntryType(str, Enum):
    TOKEN_PURCHASE = "TOKEN_PURCHASE"
    BID_DEBIT = "BID_DEBIT"
    # Compensating credit written only by the admission rollback path
    BID_REFUND = "BID_REFUND"


class LedgerReferenceType(str, Enum):
    PURCHASE = "PURCHASE"
    PROPOSAL = "PROPOSAL"
