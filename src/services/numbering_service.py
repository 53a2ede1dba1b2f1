"""Human-readable document numbers for orders and returns."""

import logging

from src.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)

ORDER_PREFIX = "ORD"
RETURN_PREFIX = "RET"


class NumberingService:
    """Allocates unique, time-based document numbers.

    Numbers are produced by the ``next_document_number`` database function:
    the prefix, the UTC date as ``YYYYMMDD`` and a Postgres sequence value
    zero-padded to at least 6 digits (e.g. ``ORD20250101000123``). The
    sequence never repeats a value, and the padding widens instead of
    truncating once it passes 999999.
    """

    def __init__(self) -> None:
        self.client = get_supabase_client()

    def _next(self, prefix: str) -> str:
        response = self.client.rpc("next_document_number", {"p_prefix": prefix}).execute()
        number = response.data
        if not number:
            raise RuntimeError(f"Document number allocation returned nothing for prefix {prefix}")
        return str(number)

    async def next_order_number(self) -> str:
        return self._next(ORDER_PREFIX)

    async def next_return_number(self) -> str:
        return self._next(RETURN_PREFIX)
