"""Centralized capability policies for API resources."""

from dataclasses import dataclass

from helpdesk.core.permissions import PermissionKey as P


@dataclass(frozen=True)
class ResourcePolicy:
    """Default permission + per-action overrides for a resource."""

    default: P | None
    actions: dict[str, P]


POLICIES: dict[str, ResourcePolicy] = {
    "tickets": ResourcePolicy(
        default=None,
        actions={
            "assign": P.ASSIGN_TICKETS,
            "manage": P.VIEW_ALL_TICKETS,
            "run_macro": P.VIEW_ALL_TICKETS,
        },
    ),
    "categories": ResourcePolicy(
        default=None,
        actions={"manage": P.MANAGE_CATEGORIES, "approve": P.MANAGE_CATEGORIES},
    ),
    "automation": ResourcePolicy(
        default=P.MANAGE_AUTOMATION,
        actions={"approve": P.MANAGE_AUTOMATION},
    ),
}


def get_policy(resource: str) -> ResourcePolicy:
    """Fetch a resource policy or raise KeyError."""
    return POLICIES[resource]
