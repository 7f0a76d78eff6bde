"""Recipient-set delivery through the transport collaborator."""

from __future__ import annotations

import logging
from typing import Any, Collection, Iterable

from .models import Transport

logger = logging.getLogger(__name__)


def fan_out(
    transport: Transport,
    recipients: Iterable[str],
    payload: dict[str, Any],
    *,
    exclude: Collection[str] = (),
) -> int:
    """Hand *payload* to every recipient not in *exclude*.

    A failure for one recipient is logged and does not stop the others.
    Returns the number of connections the payload was handed to.
    """

    handed = 0
    for connection_id in recipients:
        if connection_id in exclude:
            continue
        try:
            transport.send(connection_id, payload)
        except Exception:
            logger.exception(
                "Failed to hand %s event to connection %s", payload.get("type"), connection_id
            )
            continue
        handed += 1
    return handed


__all__ = ["fan_out"]
