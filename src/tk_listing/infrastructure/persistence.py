"""ListingRepository: read-only queries against the shared listings table."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_common.enums import ListingKind
from src.tk_listing.domain.models import Listing

_GET_LISTING_SQL = text("""
    SELECT id, kind, verified
    FROM listings
    WHERE id = :listing_id
""")


def _row_to_listing(row: object) -> Listing:
    return Listing(
        id=row.id,  # type: ignore[attr-defined]
        kind=ListingKind(row.kind),  # type: ignore[attr-defined]
        verified=bool(row.verified),  # type: ignore[attr-defined]
    )


class ListingRepository:
    async def get_listing(self, db: AsyncSession, listing_id: str) -> Listing | None:
        result = await db.execute(_GET_LISTING_SQL, {"listing_id": listing_id})
        row = result.fetchone()
        return _row_to_listing(row) if row else None
