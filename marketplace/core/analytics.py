import logging
from typing import Any

from marketplace.core.metrics import DOMAIN_EVENTS

logger = logging.getLogger("marketplace.analytics")


def track_event(event: str, **properties: Any) -> None:
    """Record a domain event as a log line and a counter increment."""
    DOMAIN_EVENTS.labels(event=event).inc()
    rendered = " ".join(f"{key}={value}" for key, value in sorted(properties.items()))
    logger.info("event=%s %s", event, rendered)
