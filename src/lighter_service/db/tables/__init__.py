"""Import all table modules so Base.metadata knows about them."""

from lighter_service.db.tables.documents import DocumentRow, TradeLogRow

__all__ = ["DocumentRow", "TradeLogRow"]
