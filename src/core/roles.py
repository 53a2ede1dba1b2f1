"""Role and capability definitions for authorization checks.

Roles are a closed set. Routes never compare role strings; they declare the
capability they need and ``has_capability`` resolves it through
``ROLE_CAPABILITIES``.
"""

from enum import Enum


class Role(str, Enum):
    """Roles a token may carry."""

    CUSTOMER = "customer"
    ADMIN = "admin"
    DIGITAL_MARKETER = "digital_marketer"

    @classmethod
    def parse(cls, value: str | None) -> "Role":
        """Resolve a role claim to a Role, defaulting to CUSTOMER.

        Accepts the camelCase spelling used by older tokens and Supabase's
        built-in ``authenticated`` role.
        """
        if not value:
            return cls.CUSTOMER
        normalized = _ROLE_ALIASES.get(value, value).lower()
        try:
            return cls(normalized)
        except ValueError:
            return cls.CUSTOMER


_ROLE_ALIASES = {
    "digitalMarketer": "digital_marketer",
    "authenticated": "customer",
    "user": "customer",
}


class Capability(str, Enum):
    """Actions gated by role."""

    PLACE_ORDERS = "place_orders"
    MANAGE_ORDERS = "manage_orders"
    MANAGE_RETURNS = "manage_returns"
    MANAGE_COUPONS = "manage_coupons"
    VIEW_COUPONS = "view_coupons"
    VIEW_PAYMENTS = "view_payments"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.CUSTOMER: frozenset({Capability.PLACE_ORDERS}),
    Role.DIGITAL_MARKETER: frozenset({Capability.PLACE_ORDERS, Capability.VIEW_COUPONS}),
    Role.ADMIN: frozenset(Capability),
}


def has_capability(role: Role, capability: Capability) -> bool:
    """Check whether a role grants a capability."""
    return capability in ROLE_CAPABILITIES.get(role, frozenset())
