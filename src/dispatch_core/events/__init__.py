from dispatch_core.events.factory import EventFactory
from dispatch_core.events.schemas import (
    CUSTOMER_SMS_KINDS,
    EVENT_META,
    LifecycleEvent,
    NotificationKind,
)

__all__ = [
    "CUSTOMER_SMS_KINDS",
    "EVENT_META",
    "EventFactory",
    "LifecycleEvent",
    "NotificationKind",
]
