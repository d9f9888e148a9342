"""Users query: query parameter construction and post-fetch filtering.

Paralus only offers a free-text ``q`` search on users, so an exact match on
email, first name or last name is enforced after the list comes back.
"""

import logging
from dataclasses import dataclass
from typing import Any

from constants import DEFAULT_USERS_LIMIT
from metrics import USER_QUERY_MATCHES
from models import (
    AmbiguousMatchError,
    MatchField,
    NoMatchError,
    UserFilter,
    UserInfo,
    ValidationError,
)
from paralus_client import ParalusClient
from utils import api_errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserQuery:
    """Ordered query parameters plus the exact-match criterion, if any."""

    params: list[str]
    match_field: str = ""
    match_value: str = ""


def build_user_query(
    organization: str,
    partner: str,
    limit: int | None = None,
    offset: int | None = None,
    user_filter: UserFilter | None = None,
) -> UserQuery:
    """Build the users list query.

    Args:
        organization: Organization the users belong to
        partner: Partner the organization belongs to
        limit: Page size; 0 or None means the default of 10
        offset: Number of users to skip
        user_filter: Optional match criteria

    Returns:
        UserQuery with params ordered organization, partner, limit, offset,
        then role, project, group, then q

    Raises:
        ValidationError: negative limit/offset, or more than one of
            email, first_name, last_name set
    """
    limit = limit or DEFAULT_USERS_LIMIT
    offset = offset or 0
    if limit < 0 or offset < 0:
        raise ValidationError(
            f"provided limit ({limit}) or offset ({offset}) cannot be negative"
        )

    params = [
        f"organization={organization}",
        f"partner={partner}",
        f"limit={limit}",
        f"offset={offset}",
    ]
    if user_filter is None:
        return UserQuery(params=params)

    if user_filter.role:
        params.append(f"role={user_filter.role}")
    if user_filter.project:
        params.append(f"project={user_filter.project}")
    if user_filter.group:
        params.append(f"group={user_filter.group}")

    names = [
        (MatchField.EMAIL, user_filter.email),
        (MatchField.FIRST_NAME, user_filter.first_name),
        (MatchField.LAST_NAME, user_filter.last_name),
    ]
    set_names = [(f, v) for f, v in names if v]
    if len(set_names) > 1:
        raise ValidationError("Please specify only one: email, first_name, or last_name")
    if not set_names:
        return UserQuery(params=params)

    match_field, match_value = set_names[0]
    params.append(f"q={match_value}")
    return UserQuery(params=params, match_field=match_field.value, match_value=match_value)


def _user_field(user: dict[str, Any], field: MatchField) -> str:
    if field is MatchField.EMAIL:
        return (user.get("metadata") or {}).get("name") or ""
    return (user.get("spec") or {}).get(field.value) or ""


def filter_users(
    users: list[dict[str, Any]],
    field: str,
    value: str,
    case_sensitive: bool = False,
    allow_multiple: bool = False,
) -> list[dict[str, Any]]:
    """Keep the users whose field equals value exactly.

    An empty field returns users unchanged. Matches keep their input order.

    Raises:
        ValidationError: field is not email, first_name or last_name
        NoMatchError: nothing matched
        AmbiguousMatchError: more than one match and allow_multiple is False
    """
    if not field:
        return users
    try:
        match_field = MatchField(field)
    except ValueError as e:
        raise ValidationError(f"unknown filter type: {field}") from e

    wanted = value if case_sensitive else value.lower()
    matched = []
    for user in users:
        candidate = _user_field(user, match_field)
        if not case_sensitive:
            candidate = candidate.lower()
        if candidate == wanted:
            matched.append(user)

    if not matched:
        raise NoMatchError(
            f"no user found using the specified filter '{field}' with value "
            f"'{value}' and case_sensitive = {case_sensitive}"
        )
    if len(matched) > 1 and not allow_multiple:
        raise AmbiguousMatchError(
            f"more than one user was found using the specified filter '{field}' "
            f"with value '{value}' and case_sensitive = {case_sensitive}"
        )
    return matched


def query_users(
    client: ParalusClient,
    limit: int | None = None,
    offset: int | None = None,
    user_filter: UserFilter | None = None,
) -> list[UserInfo]:
    """Run a users query end to end and return the matching users."""
    query = build_user_query(
        client.config.organization, client.config.partner, limit, offset, user_filter
    )
    logger.debug("Querying users with params: %s", "&".join(query.params))

    with api_errors("failed to list users"):
        users = client.list_users(query.params)
    if not users:
        raise NoMatchError(
            f"No users returned based on provided query params: {'&'.join(query.params)}"
        )

    if user_filter is not None:
        users = filter_users(
            users,
            query.match_field,
            query.match_value,
            user_filter.case_sensitive,
            user_filter.allow_more_than_one,
        )
    USER_QUERY_MATCHES.observe(len(users))
    return [UserInfo.from_domain(u) for u in users]
