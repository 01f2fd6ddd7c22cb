"""Profile service for reading, upserting and searching user profiles."""

import logging
import re
from datetime import UTC, datetime

from pydantic import ValidationError

from habitmate.core import db_client
from habitmate.core.config import constants
from habitmate.core.db_client import in_filter, sanitize_param
from habitmate.core.errors import input_error_from_validation
from habitmate.core.logging import span
from habitmate.domain.create_models import ProfileUpsert
from habitmate.domain.profile import Profile


logger = logging.getLogger(__name__)

_FILTER_SYNTAX = re.compile(r"[|&()\"\\]")


async def get_profile(*, user_id: str) -> Profile | None:
    """Get a profile by user ID.

    Args:
        user_id: Auth user ID (also the profile ID)

    Returns:
        The profile, or None if the user has not created one yet
    """
    with span("profile_service.get_profile"):
        try:
            record = await db_client.get_record(collection="profiles", record_id=user_id)
        except db_client.RecordNotFoundError:
            logger.info("Profile not found", extra={"user_id": user_id})
            return None
        return Profile.model_validate(record)


async def get_profiles(*, user_ids: list[str]) -> dict[str, Profile]:
    """Get several profiles at once, keyed by ID. Unknown IDs are left out."""
    with span("profile_service.get_profiles"):
        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            return {}

        records = await db_client.list_records(
            collection="profiles",
            filter_query=in_filter("id", unique_ids),
            per_page=max(len(unique_ids), 1),
        )
        return {record["id"]: Profile.model_validate(record) for record in records}


async def update_profile(*, user_id: str, email: str, updates: dict) -> Profile:
    """Create or update the signed-in user's profile.

    Only the fields present in ``updates`` are written; the rest keep their
    stored values.

    Args:
        user_id: Auth user ID (also the profile ID)
        email: Email address of the auth user
        updates: Profile fields to set

    Returns:
        The stored profile

    Raises:
        InputValidationError: If a field is malformed
        db_client.UniqueConstraintError: If the username or email is taken
    """
    with span("profile_service.update_profile"):
        try:
            payload = ProfileUpsert.model_validate(updates)
        except ValidationError as e:
            raise input_error_from_validation(e) from e

        fields = payload.model_dump(exclude_unset=True)
        # Name columns are NOT NULL
        for name_field in ("first_name", "last_name"):
            if name_field in fields:
                fields[name_field] = (fields[name_field] or "").strip()

        data = {
            "id": user_id,
            "email": email,
            **fields,
            "updated_at": datetime.now(UTC).isoformat(),
        }
        record = await db_client.upsert_record(collection="profiles", data=data, conflict_field="id")

        logger.info("Updated profile", extra={"user_id": user_id, "fields": sorted(payload.model_fields_set)})
        return Profile.model_validate(record)


async def search_users(*, query: str, exclude_user_id: str) -> list[Profile]:
    """Search profiles by username, first name or last name.

    Email is never searched. The caller's own profile is excluded.

    Args:
        query: Case-insensitive fragment; a leading "@" is ignored
        exclude_user_id: ID of the user searching

    Returns:
        Up to MAX_SEARCH_RESULTS matching profiles, ordered by username
    """
    with span("profile_service.search_users"):
        # The filter parser splits on operators even inside quoted values
        term = _FILTER_SYNTAX.sub("", query).strip().lstrip("@")
        if len(term) < constants.MIN_SEARCH_QUERY_LENGTH:
            return []

        safe_term = sanitize_param(term)
        filter_query = (
            f'(username ~ "{safe_term}" || first_name ~ "{safe_term}" || last_name ~ "{safe_term}")'
            f' && id != "{sanitize_param(exclude_user_id)}"'
        )
        records = await db_client.list_records(
            collection="profiles",
            filter_query=filter_query,
            per_page=constants.MAX_SEARCH_RESULTS,
            sort="username",
        )

        logger.debug("Searched users", extra={"query": term, "count": len(records)})
        return [Profile.model_validate(record) for record in records]
