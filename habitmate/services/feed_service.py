"""Feed service: a user's own photo posts and the friends feed."""

import logging
from datetime import UTC, datetime
from urllib.parse import quote

from habitmate.core.config import constants, settings
from habitmate.core.date_normalizer import format_date, local_today
from habitmate.core.logging import span
from habitmate.domain.profile import Profile
from habitmate.domain.task import TaskCompletion
from habitmate.models.service_models import Post, PostAuthor, SocialPost
from habitmate.services import friendship_service, profile_service, task_service


logger = logging.getLogger(__name__)

DEFAULT_TASK_TITLE = "Task"


def _parse_timestamp(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        # Store timestamps are written in UTC
        return moment.replace(tzinfo=UTC)
    return moment


def relative_timestamp(created_at: str, *, now: datetime) -> str:
    """Render how long ago ``created_at`` was, e.g. "3 hours ago".

    Anything a week or older is shown as its local calendar date.
    """
    moment = _parse_timestamp(created_at)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    elapsed = now - moment
    minutes = int(elapsed.total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24

    if hours < 1:
        return "Just now" if minutes <= 1 else f"{minutes} minutes ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    if days < 7:
        return f"{days} day{'s' if days != 1 else ''} ago"
    return format_date(local_today(moment))


def post_author(profile: Profile) -> PostAuthor:
    """Build the author block shown on a feed post."""
    name = profile.display_name
    return PostAuthor(
        id=profile.id,
        name=name,
        username=f"@{profile.username}" if profile.username else "@no-username",
        avatar=profile.avatar_url or f"{constants.AVATAR_FALLBACK_URL}{quote(name)}",
    )


async def get_user_posts(*, user_id: str) -> list[Post]:
    """Get a user's latest completions that have a photo.

    The title shown is the snapshot taken at completion time, then the task's
    current title, then "Task".
    """
    with span("feed_service.get_user_posts"):
        completions = await task_service.list_photo_completions(user_ids=[user_id], limit=settings.feed_post_limit)
        missing_titles = [c.task_id for c in completions if not c.task_title_snapshot]
        titles = await task_service.get_task_titles(task_ids=missing_titles)

        posts = [
            Post(
                id=c.id,
                image=c.photo_url or "",
                date=c.completed_on or c.created_at,
                task_title=c.task_title_snapshot or titles.get(c.task_id) or DEFAULT_TASK_TITLE,
                caption=c.caption,
            )
            for c in completions
        ]
        logger.debug("Loaded posts", extra={"user_id": user_id, "count": len(posts)})
        return posts


def _social_post(completion: TaskCompletion, profile: Profile, *, now: datetime) -> SocialPost:
    return SocialPost(
        id=completion.id,
        user=post_author(profile),
        task=completion.task_title_snapshot or DEFAULT_TASK_TITLE,
        proof_image=completion.photo_url or "",
        timestamp=relative_timestamp(completion.created_at or completion.completed_on, now=now),
    )


async def get_friend_posts(*, user_id: str, now: datetime) -> list[SocialPost]:
    """Get the latest photo completions of the user's confirmed friends, newest first."""
    with span("feed_service.get_friend_posts"):
        friend_ids = await friendship_service.get_friend_ids(user_id=user_id)
        if not friend_ids:
            return []

        completions = await task_service.list_photo_completions(user_ids=friend_ids, limit=settings.feed_post_limit)
        if not completions:
            return []

        profiles = await profile_service.get_profiles(user_ids=[c.user_id for c in completions])
        posts = [
            _social_post(c, profiles[c.user_id], now=now) for c in completions if c.user_id in profiles
        ]

        logger.debug("Loaded friend posts", extra={"user_id": user_id, "count": len(posts)})
        return posts
