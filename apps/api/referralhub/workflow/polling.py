from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from referralhub.platform.gateway import PersistenceGateway


logger = logging.getLogger("referralhub.workflow")


def wait_for_row(
    gateway: PersistenceGateway,
    entity_type: str,
    filters: Mapping[str, Any],
    *,
    attempts: int,
    delay_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
) -> Any | None:
    """Poll ``find`` until a matching row is visible, at most ``attempts`` times.

    Returns ``None`` once the bound is exhausted; callers fall back to what
    they already hold.
    """

    for attempt in range(1, max(attempts, 1) + 1):
        row = gateway.find_one(entity_type, filters)
        if row is not None:
            return row
        if attempt < attempts:
            sleep(delay_seconds)

    logger.warning(
        "workflow.row_not_visible",
        extra={"entity_type": entity_type, "attempts": attempts},
    )
    return None
