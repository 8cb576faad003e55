from abc import ABC, abstractmethod

from constants import ROLE_ADDRESSES, UserRole


class AuthorizationPolicy(ABC):
    """Decides who may perform each mutating ledger operation.

    Each method returns an error message when the caller is refused, or
    ``None`` when the action is allowed.
    """

    @abstractmethod
    def can_register(self, address):
        ...

    @abstractmethod
    def can_transfer(self, drug, address):
        ...

    @abstractmethod
    def can_update_conditions(self, drug, address):
        ...


class RoleAddressPolicy(AuthorizationPolicy):
    """Registration by the designated manufacturer, transfer by the owner.

    Condition updates (temperature, location) are open to any caller, since
    sensor readings come from parties that need not hold custody.
    """

    def __init__(self, role_addresses=None):
        self.role_addresses = dict(role_addresses or ROLE_ADDRESSES)

    def can_register(self, address):
        if address != self.role_addresses[UserRole.MANUFACTURER]:
            return "Only Manufacturer can register drugs"
        return None

    def can_transfer(self, drug, address):
        if drug.current_owner != address:
            return "Unauthorized: You are not the current owner"
        return None

    def can_update_conditions(self, drug, address):
        return None


class CustodianPolicy(RoleAddressPolicy):
    """Like ``RoleAddressPolicy`` but only the current owner may record conditions."""

    def can_update_conditions(self, drug, address):
        if drug.current_owner != address:
            return "Unauthorized: Only the current owner can update conditions"
        return None


POLICIES = {
    "role_address": RoleAddressPolicy,
    "custodian": CustodianPolicy,
}


def get_policy(name):
    try:
        return POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown authorization policy: {name}") from None
