"""Role checks. The caller's identity is always passed in, never looked up."""

from collections import namedtuple

from eventflow.constants import OPERATION_ROLES, Role
from eventflow.errors import Unauthorized

Actor = namedtuple('Actor', ['id', 'role'])


def actor_from_user(user):
    return Actor(user.id, user.role)


def is_allowed(role, operation):
    if role == Role.ADMIN:
        return True
    return role in OPERATION_ROLES.get(operation, set())


def require_role(actor, operation):
    """Raise Unauthorized when the actor's role may not run ``operation``."""
    if actor is None or not is_allowed(actor.role, operation):
        needed = ' or '.join(sorted(OPERATION_ROLES.get(operation, set()))) or Role.ADMIN
        raise Unauthorized(f"Unauthorized - {needed} role required")
