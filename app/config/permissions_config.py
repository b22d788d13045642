"""
Permissions and route access configuration.

ENDPOINT_PERMISSIONS maps every permission name used by the API routes to the
minimum workspace role that holds it. ROUTE_PERMISSIONS lists the path
families the page route guard treats as public or manager-only; every other
page needs a session.
"""

from typing import Dict, List

from app.core.roles import Role

# Define modules and their actions with the minimum role for each
MODULES = {
    "eod": {
        "actions": {
            "read": Role.VIEWER,
            "create": Role.MEMBER,
            "update": Role.MEMBER,
            "delete": Role.ADMIN,
        },
        "description": "End-of-day sales reports",
    },
    "products": {
        "actions": {
            "read": Role.VIEWER,
            "create": Role.ADMIN,
            "update": Role.ADMIN,
            "delete": Role.ADMIN,
        },
        "description": "Workspace product catalog",
    },
    "team": {
        "actions": {
            "read": Role.MEMBER,
            "invite": Role.ADMIN,
            "update": Role.ADMIN,
            "remove": Role.OWNER,
        },
        "description": "Workspace membership management",
    },
    "organization": {
        "actions": {
            "read": Role.VIEWER,
            "update": Role.ADMIN,
        },
        "description": "Workspace settings",
    },
}

ENDPOINT_PERMISSIONS: Dict[str, Role] = {
    f"{module}:{action}": minimum
    for module, config in MODULES.items()
    for action, minimum in config["actions"].items()
}

ROUTE_PERMISSIONS = {
    # No session required
    "public": [
        "/",
        "/health",
        "/ready",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/auth/login",
        "/auth/register",
        "/auth/forgot-password",
        "/auth/reset-password",
        "/api/auth",
    ],
    # Page routes that need admin or owner
    "manager": [
        "/admin",
        "/team",
        "/analytics",
    ],
}


def matches_route(pathname: str, routes: List[str]) -> bool:
    """
    Exact match, or prefix match on a segment boundary. Entries ending in '/'
    match any suffix, except the root '/' which only matches itself.
    """
    for route in routes:
        if route == "/":
            if pathname == "/":
                return True
        elif route.endswith("/"):
            if pathname.startswith(route):
                return True
        elif pathname == route or pathname.startswith(route + "/"):
            return True
    return False


def minimum_role(permission: str) -> Role:
    try:
        return ENDPOINT_PERMISSIONS[permission]
    except KeyError:
        raise ValueError(f"Unknown permission: {permission}")


def get_permissions_for_role(role: Role) -> List[str]:
    """Permission names granted to `role`, sorted; handed to clients for UI gating."""
    return sorted(name for name, minimum in ENDPOINT_PERMISSIONS.items() if role.at_least(minimum))
