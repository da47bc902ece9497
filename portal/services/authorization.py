# File: portal/services/authorization.py

"""
Single place where role, ownership and account state turn into permissions.

Every engine operation calls authorize() before touching state. Each role
has its own rule function and the dispatch in is_permitted() is exhaustive
over Role, so adding a role means revisiting the rules here (type checkers
flag the assert_never branch).

Clients may mirror permitted_actions() for UX, but the engine always
re-checks.
"""

import enum
from typing import Optional, assert_never

from portal.core.errors import Blocked, Forbidden, SelfUpvoteForbidden
from portal.models.enums import IssueStatus, Role
from portal.models.issue import Issue
from portal.models.user import User


class Action(str, enum.Enum):
    CREATE_ISSUE = "create_issue"
    EDIT_ISSUE = "edit_issue"
    DELETE_ISSUE = "delete_issue"
    UPVOTE_ISSUE = "upvote_issue"
    CHANGE_STATUS = "change_status"
    REJECT_ISSUE = "reject_issue"
    ASSIGN_STAFF = "assign_staff"
    BOOST_ISSUE = "boost_issue"
    PURCHASE_PREMIUM = "purchase_premium"
    MANAGE_USERS = "manage_users"
    VIEW_PAYMENTS = "view_payments"


# Actions a blocked account can never perform, whatever its role
BLOCKABLE_ACTIONS = frozenset(
    {
        Action.CREATE_ISSUE,
        Action.EDIT_ISSUE,
        Action.DELETE_ISSUE,
        Action.UPVOTE_ISSUE,
        Action.CHANGE_STATUS,
        Action.REJECT_ISSUE,
        Action.ASSIGN_STAFF,
        Action.BOOST_ISSUE,
    }
)

ISSUE_ACTIONS = (
    Action.EDIT_ISSUE,
    Action.DELETE_ISSUE,
    Action.UPVOTE_ISSUE,
    Action.CHANGE_STATUS,
    Action.REJECT_ISSUE,
    Action.ASSIGN_STAFF,
    Action.BOOST_ISSUE,
)


def is_owner(user: User, issue: Optional[Issue]) -> bool:
    return issue is not None and issue.submitter_id == user.id


def is_assigned(user: User, issue: Optional[Issue]) -> bool:
    return issue is not None and issue.assigned_staff_id == user.id


def _citizen_may(user: User, action: Action, issue: Optional[Issue]) -> bool:
    if action is Action.CREATE_ISSUE or action is Action.PURCHASE_PREMIUM:
        return True
    if action in (Action.EDIT_ISSUE, Action.DELETE_ISSUE):
        return is_owner(user, issue) and issue.status is IssueStatus.PENDING
    if action is Action.UPVOTE_ISSUE:
        return issue is not None and not is_owner(user, issue)
    if action is Action.BOOST_ISSUE:
        return is_owner(user, issue)
    return False


def _staff_may(user: User, action: Action, issue: Optional[Issue]) -> bool:
    if action is Action.UPVOTE_ISSUE:
        return issue is not None and not is_owner(user, issue)
    if action is Action.CHANGE_STATUS:
        return is_assigned(user, issue)
    return False


def _admin_may(user: User, action: Action, issue: Optional[Issue]) -> bool:
    if action in (
        Action.CREATE_ISSUE,
        Action.EDIT_ISSUE,
        Action.BOOST_ISSUE,
        Action.PURCHASE_PREMIUM,
    ):
        return False
    if action is Action.UPVOTE_ISSUE:
        return issue is not None and not is_owner(user, issue)
    return True


def is_permitted(user: User, action: Action, issue: Optional[Issue] = None) -> bool:
    """Pure role/ownership check; ignores the blocked flag."""
    role = user.role
    if role is Role.CITIZEN:
        return _citizen_may(user, action, issue)
    elif role is Role.STAFF:
        return _staff_may(user, action, issue)
    elif role is Role.ADMIN:
        return _admin_may(user, action, issue)
    else:
        assert_never(role)


def authorize(user: User, action: Action, issue: Optional[Issue] = None) -> None:
    """
    Raise unless user may perform action (on issue, when given).

    Order matters: Blocked wins over everything, then the self-upvote rule,
    then a plain Forbidden.
    """
    if user.is_blocked and action in BLOCKABLE_ACTIONS:
        raise Blocked()

    if action is Action.UPVOTE_ISSUE and is_owner(user, issue):
        raise SelfUpvoteForbidden()

    if not is_permitted(user, action, issue):
        raise Forbidden()


def permitted_actions(user: User, issue: Issue) -> list[Action]:
    """Role/ownership-level actions the user could take on issue."""
    return [
        a for a in ISSUE_ACTIONS
        if not (user.is_blocked and a in BLOCKABLE_ACTIONS) and is_permitted(user, a, issue)
    ]
