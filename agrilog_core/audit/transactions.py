from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from agrilog_core.logging import get_logger
from agrilog_core.stores.interfaces import AuditRecordStore, Transaction

logger = get_logger(__name__)


@contextmanager
def transaction_scope(
    store: AuditRecordStore,
    tx: Transaction | None = None,
) -> Iterator[Transaction]:
    """Yield the caller's transaction, or own a fresh one for the block.

    A caller-supplied transaction is never committed or rolled back here;
    the caller decides its fate. An owned transaction commits when the block
    exits cleanly and rolls back on any exception.
    """
    if tx is not None:
        yield tx
        return

    owned = store.begin()
    try:
        yield owned
    except BaseException:
        try:
            owned.rollback()
        except Exception:  # noqa: BLE001
            logger.exception("Rollback failed after an aborted audit operation")
        raise
    else:
        owned.commit()
    finally:
        owned.release()
