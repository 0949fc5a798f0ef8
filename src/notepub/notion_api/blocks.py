"""Block API wrapper for the remote document service.

Provides :class:`AsyncBlockAPI`, a thin wrapper around the Notion
``/blocks/{id}/children`` endpoint.  :meth:`AsyncBlockAPI.get_children`
auto-paginates; :meth:`AsyncBlockAPI.get_children_recursive` also fetches
the children of every block that has them and attaches them under a
``"children"`` key, which :class:`~notepub.document.BlockReader` reads.
"""

from __future__ import annotations

from typing import Any

from notepub.observability import get_logger
from notepub.transport import AsyncTransport

log = get_logger("notepub.notion_api.blocks")


class AsyncBlockAPI:
    """Asynchronous wrapper for the Notion Blocks API.

    Parameters
    ----------
    transport:
        A transport bound to the Notion API root with the integration
        token and version headers.
    """

    def __init__(self, transport: AsyncTransport) -> None:
        self._transport = transport

    async def get_children(self, block_id: str) -> list[dict[str, Any]]:
        """Retrieve all children of a block (or page), auto-paginating.

        Parameters
        ----------
        block_id:
            The UUID of the parent block or page.

        Returns
        -------
        list[dict]
            All child block objects in order.
        """
        return [
            item
            async for item in self._transport.paginate(f"/blocks/{block_id}/children")
        ]

    async def get_children_recursive(
        self,
        block_id: str,
        max_depth: int = 10,
        _depth: int = 0,
    ) -> list[dict[str, Any]]:
        """Retrieve children and, depth first, their descendants.

        Blocks with ``has_children`` get a ``"children"`` list.  Below
        *max_depth* nothing more is fetched.
        """
        blocks = await self.get_children(block_id)
        if _depth >= max_depth:
            return blocks
        for block in blocks:
            if block.get("has_children") and block.get("id"):
                block["children"] = await self.get_children_recursive(
                    block["id"], max_depth, _depth + 1,
                )
        log.debug(
            "Fetched block children",
            extra={"extra_fields": {
                "op": "get_children",
                "block_id": block_id,
                "count": len(blocks),
                "depth": _depth,
            }},
        )
        return blocks
