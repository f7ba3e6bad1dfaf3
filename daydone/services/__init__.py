from daydone.services import (
    analytics_service,
    calendar_service,
    sync_service,
    user_service,
)


__all__ = [
    "analytics_service",
    "calendar_service",
    "sync_service",
    "user_service",
]
