"""Find checkout sessions the provider knows about but we never recorded.

Creating the provider session and saving the pending order are two
separate writes.  A crash between them leaves a session with no local
order; this walks recent sessions and reports those.
"""

import logging
import time

logger = logging.getLogger("geoprice.reconcile")


def find_orphaned_sessions(gateway, orders, since_hours: float = 24, now=None) -> list:
    """Return provider checkout sessions created in the window with no local order."""
    now = time.time() if now is None else now
    created_after = int(now - since_hours * 3600)

    known = orders.session_ids()
    orphaned = []
    checked = 0
    for session in gateway.list_checkout_sessions(created_after):
        checked += 1
        if session["id"] not in known:
            orphaned.append(session)

    if orphaned:
        logger.warning(
            "%d of %d checkout sessions in the last %sh have no local order",
            len(orphaned), checked, since_hours,
        )
    else:
        logger.info("All %d checkout sessions in the last %sh have local orders", checked, since_hours)
    return orphaned
