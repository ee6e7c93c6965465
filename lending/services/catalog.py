from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.errors import NotFoundError
from lending.core.logging import get_logger
from lending.db.models import Item
from lending.db.repository import get_item_for_update
from lending.services.reservation_queue import rebalance_for_new_capacity

logger = get_logger("services.catalog")


async def create_item(db: AsyncSession, title: str, total_copies: int, actor_id: str) -> Item:
    """Add an item with every copy on the shelf."""
    item = Item(title=title, total_copies=total_copies, available_copies=total_copies)
    db.add(item)
    await db.flush()
    await db.refresh(item)

    logger.info(f"Item created: id={item.id} title='{item.title}' copies={total_copies} by actor={actor_id}")
    return item


async def update_item(
    db: AsyncSession,
    item_id: str,
    data: dict,
    actor_id: str,
    today: Optional[date] = None,
) -> Item:
    """Edit an item. A change of ``total_copies`` goes through queue rebalancing."""
    item = await get_item_for_update(db, item_id)
    if item is None:
        raise NotFoundError("item", item_id)

    new_total = data.get("total_copies")
    if new_total is not None and new_total != item.total_copies:
        await rebalance_for_new_capacity(db, item, new_total, today)

    title = data.get("title")
    if title is not None:
        item.title = title

    await db.flush()
    await db.refresh(item)

    logger.info(f"Item updated: id={item_id} by actor={actor_id}")
    return item
