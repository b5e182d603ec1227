"""
Atomic ticket inventory updates.

CONCURRENCY STRATEGY: Conditional UPDATE
========================================

Problem:
  Two payments for the last ticket are reconciled at the same time.
  Both read available_tickets=1, both write 0, both succeed.
  Result: Oversold event.

Solution:
  The counter is never read-modified-written in Python. Every change is a
  single statement whose WHERE clause carries the bound:

    UPDATE events
       SET available_tickets = available_tickets - :n, version = version + 1
     WHERE id = :event_id AND available_tickets >= :n

  If rows_affected == 0 the event could not cover the request and the caller
  decides what to do (refund, report unavailability). The row lock taken by
  the UPDATE serializes concurrent writers on the same event; the loser
  re-evaluates the WHERE clause against the committed value.

  The DB CHECK constraints (0 <= available_tickets <= total_tickets) are
  the final safety net.
"""

from sqlalchemy import and_, case, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.core.metrics import record_inventory_conflict
from app.models.enums import EventStatus
from app.models.event import Event

logger = get_logger(__name__)


async def _sync_identity_map(db: AsyncSession, event_id: int) -> None:
    # Bulk UPDATEs bypass the session; reload so later reads see the new counter
    await db.get(Event, event_id, populate_existing=True)


async def decrement_tickets(db: AsyncSession, event_id: int, tickets: int) -> bool:
    """
    Take `tickets` off the event. Flips an active event to sold-out when
    the counter reaches zero. Returns False if not enough tickets remain.
    """
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.available_tickets >= tickets)
        .values(
            available_tickets=Event.available_tickets - tickets,
            version=Event.version + 1,
            status=case(
                (
                    and_(
                        Event.available_tickets == tickets,
                        Event.status == EventStatus.ACTIVE.value,
                    ),
                    EventStatus.SOLD_OUT.value,
                ),
                else_=Event.status,
            ),
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        record_inventory_conflict("decrement")
        logger.warning("inventory_decrement_rejected", event_id=event_id, requested=tickets)
        return False

    await _sync_identity_map(db, event_id)
    logger.info("inventory_decremented", event_id=event_id, tickets=tickets)
    return True


async def restore_tickets(db: AsyncSession, event_id: int, tickets: int) -> bool:
    """
    Give `tickets` back to the event, never above total_tickets. A sold-out
    event becomes active again. Returns False if the restore would overflow
    the allocation or the event no longer exists.
    """
    result = await db.execute(
        update(Event)
        .where(
            Event.id == event_id,
            Event.available_tickets + tickets <= Event.total_tickets,
        )
        .values(
            available_tickets=Event.available_tickets + tickets,
            version=Event.version + 1,
            status=case(
                (Event.status == EventStatus.SOLD_OUT.value, EventStatus.ACTIVE.value),
                else_=Event.status,
            ),
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        record_inventory_conflict("restore")
        logger.error("inventory_restore_rejected", event_id=event_id, tickets=tickets)
        return False

    await _sync_identity_map(db, event_id)
    logger.info("inventory_restored", event_id=event_id, tickets=tickets)
    return True

