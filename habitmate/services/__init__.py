from habitmate.services import (
    feed_service,
    friendship_service,
    partner_task_service,
    profile_service,
    task_service,
)


__all__ = [
    "feed_service",
    "friendship_service",
    "partner_task_service",
    "profile_service",
    "task_service",
]
