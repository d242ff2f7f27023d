"""Profile statistics, profile edits and onboarding."""

from __future__ import annotations

import logging
import secrets
from typing import Any, Mapping

from feedsync.features.base import FeatureService, require_id
from feedsync.features.validation import (
    check_username_available,
    validate_bio,
    validate_nickname,
    validate_username,
)
from feedsync.services.invalidation_router import MutationType
from feedsync.services.keys import profile_stats_key, user_profile_key
from feedsync.services.mutation_executor import ErrorPolicy, Mutation
from feedsync.services.optimistic import MergeFields, OptimisticPatch
from feedsync.services.query_cache import QueryDefinition
from feedsync.services.remote.filters import eq
from feedsync.shared.constants.query_keys import RemoteErrorCodes, Tables
from feedsync.shared.constants.validation import ProfileRules, UsernameRules
from feedsync.shared.errors import ErrorCode, create_remote_error, create_validation_error
from feedsync.shared.models.users import ProfileStats, UserProfile

logger = logging.getLogger(__name__)

# Columns a user may change on their own row
EDITABLE_FIELDS = frozenset(
    {
        "username",
        "nickname",
        "bio",
        "is_anonymous",
        "onboarding_completed",
        "school_id",
        "school_name",
        "location_radius",
    }
)


def generate_username() -> str:
    """Random placeholder username such as ``user_k3x9a0pq``."""
    suffix = "".join(
        secrets.choice(UsernameRules.GENERATED_ALPHABET)
        for _ in range(UsernameRules.GENERATED_SUFFIX_LENGTH)
    )
    return f"{UsernameRules.GENERATED_PREFIX}{suffix}"


class ProfileService(FeatureService):
    """Profile reads and the multi-field profile write."""

    def profile_stats_query(self, user_id: str | None) -> QueryDefinition:
        """Post, follower and following counts of a user."""

        async def fetch() -> ProfileStats:
            return ProfileStats(
                post_count=await self.store.count(Tables.POSTS, [eq("user_id", user_id)]),
                follower_count=await self.store.count(Tables.FOLLOWS, [eq("following_id", user_id)]),
                following_count=await self.store.count(Tables.FOLLOWS, [eq("follower_id", user_id)]),
            )

        return QueryDefinition(
            profile_stats_key(user_id),
            fetch,
            self._options(enabled=bool(user_id), stale_time=self.settings.profile_stats_stale_time),
        )

    async def _validate_fields(self, user_id: str, fields: Mapping[str, Any]) -> None:
        operation = MutationType.UPDATE_PROFILE.value
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise create_validation_error(
                f"Cannot update profile fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
                operation=operation,
            )
        if "username" in fields:
            validate_username(fields["username"]).raise_for_error(operation, fields["username"])
            if not await check_username_available(self.store, fields["username"], exclude_user_id=user_id):
                raise create_validation_error(
                    "Username is already taken",
                    field="username",
                    operation=operation,
                    code=ErrorCode.USERNAME_TAKEN,
                )
        if "nickname" in fields:
            validate_nickname(fields["nickname"]).raise_for_error(operation, fields["nickname"])
        if "bio" in fields:
            validate_bio(fields["bio"]).raise_for_error(operation, fields["bio"])

    async def update_profile(self, user_id: str, **fields: Any) -> UserProfile:
        """Write several profile fields at once.

        Fields are validated and the username availability is checked before
        the write. The cached profile is patched optimistically; if the
        write fails it is reloaded from the remote store rather than
        inverted, since other fields may have changed meanwhile.

        Raises:
            DomainError: If a field is invalid or the username is taken
            FeedSyncError: If the remote write fails
        """
        require_id(user_id, "user_id", MutationType.UPDATE_PROFILE.value)
        values = dict(fields)
        if "username" in values and values["username"] is not None:
            values["username"] = values["username"].strip().lower()
        if "nickname" in values and values["nickname"] is not None:
            values["nickname"] = values["nickname"].strip()
        if "bio" in values:
            values["bio"] = (values["bio"] or "").strip() or None

        async def validate(variables: dict[str, Any]) -> None:
            await self._validate_fields(variables["user_id"], variables["values"])

        def optimistic(variables: dict[str, Any]) -> list[OptimisticPatch]:
            key = user_profile_key(variables["user_id"])
            current = self.cache.get_query_data(key)
            if current is None:
                return []
            return [OptimisticPatch(key, MergeFields.capture(current, variables["values"]))]

        async def mutate(variables: dict[str, Any]) -> UserProfile:
            rows = await self.store.update(Tables.USERS, variables["values"], [eq("id", variables["user_id"])])
            if not rows:
                raise create_remote_error(
                    f"User {variables['user_id']} not found",
                    operation=MutationType.UPDATE_PROFILE.value,
                    remote_code=RemoteErrorCodes.NO_ROWS,
                    table=Tables.USERS,
                    code=ErrorCode.REMOTE_NOT_FOUND,
                )
            return UserProfile.model_validate(rows[0])

        mutation = Mutation(
            MutationType.UPDATE_PROFILE,
            mutate,
            validate=validate,
            optimistic=optimistic,
            on_error=ErrorPolicy.REFETCH,
            entity_key=lambda variables: (variables["user_id"],),
        )
        return await self.executor.execute(mutation, {"user_id": user_id, "values": values})

    async def complete_onboarding(
        self,
        user_id: str,
        username: str,
        nickname: str,
        bio: str | None = None,
        *,
        is_anonymous: bool = False,
    ) -> UserProfile:
        return await self.update_profile(
            user_id,
            username=username,
            nickname=nickname,
            bio=bio,
            is_anonymous=is_anonymous,
            onboarding_completed=True,
        )

    async def skip_onboarding(self, user_id: str) -> UserProfile:
        """Finish onboarding as an anonymous user with a generated username."""
        return await self.update_profile(
            user_id,
            username=generate_username(),
            nickname=ProfileRules.ANONYMOUS_NICKNAME,
            bio=None,
            is_anonymous=True,
            onboarding_completed=True,
        )

    async def update_location_radius(self, user_id: str, radius: int) -> UserProfile:
        """Change the feed radius; cached feeds are invalidated on success.

        Raises:
            DomainError: If the radius is not one of the offered choices
        """
        require_id(user_id, "user_id", MutationType.UPDATE_LOCATION_RADIUS.value)
        if radius not in self.settings.allowed_radii:
            raise create_validation_error(
                f"Radius must be one of {self.settings.allowed_radii}",
                field="location_radius",
                operation=MutationType.UPDATE_LOCATION_RADIUS.value,
                code=ErrorCode.INVALID_RADIUS,
            )

        def optimistic(variables: dict[str, Any]) -> list[OptimisticPatch]:
            key = user_profile_key(variables["user_id"])
            current = self.cache.get_query_data(key)
            if current is None:
                return []
            return [OptimisticPatch(key, MergeFields.capture(current, {"location_radius": variables["radius"]}))]

        async def mutate(variables: dict[str, Any]) -> UserProfile:
            rows = await self.store.update(
                Tables.USERS,
                {"location_radius": variables["radius"]},
                [eq("id", variables["user_id"])],
            )
            if not rows:
                raise create_remote_error(
                    f"User {variables['user_id']} not found",
                    operation=MutationType.UPDATE_LOCATION_RADIUS.value,
                    remote_code=RemoteErrorCodes.NO_ROWS,
                    table=Tables.USERS,
                    code=ErrorCode.REMOTE_NOT_FOUND,
                )
            return UserProfile.model_validate(rows[0])

        mutation = Mutation(
            MutationType.UPDATE_LOCATION_RADIUS,
            mutate,
            optimistic=optimistic,
            entity_key=lambda variables: (variables["user_id"],),
        )
        return await self.executor.execute(mutation, {"user_id": user_id, "radius": radius})


__all__ = ["EDITABLE_FIELDS", "ProfileService", "generate_username"]
