"""Role registry: explicit account -> set of role tags."""

import logging
from collections.abc import Callable
from typing import Any

from vault_engine.errors import AccessDenied, ZeroAddress
from vault_engine.formatters import is_zero_address, normalize_address, normalize_hex_str
from vault_engine.models import Authorization, RoleGranted, RoleRevoked

logger = logging.getLogger(__name__)


def role_id(name: str) -> str:
    """keccak256 of the role name, as AccessControl derives role identifiers."""
    from web3 import Web3  # pylint: disable=import-outside-toplevel

    return normalize_hex_str(Web3.keccak(text=name))


DEFAULT_ADMIN_ROLE = "0x" + "00" * 32
OWNER_ROLE = role_id("OWNER_ROLE")
STRATEGY_ROLE = role_id("STRATEGY_ROLE")

ROLE_NAMES = {
    DEFAULT_ADMIN_ROLE: "DEFAULT_ADMIN",
    OWNER_ROLE: "OWNER",
    STRATEGY_ROLE: "STRATEGY",
}


def role_name(role: str) -> str:
    return ROLE_NAMES.get(role, role)


class RoleRegistry:
    """Tracks role membership. Every role is administered by DEFAULT_ADMIN_ROLE."""

    def __init__(self, emit: Callable[[Any], None]):
        self._emit = emit
        self.members: dict[str, set[str]] = {}

    def has_role(self, role: str, account: str) -> bool:
        return role in self.members.get(normalize_address(account), set())

    def roles_of(self, account: str) -> frozenset[str]:
        return frozenset(self.members.get(normalize_address(account), set()))

    def accounts_with(self, role: str) -> list[str]:
        return sorted(account for account, roles in self.members.items() if role in roles)

    def authorize(self, account: str, *required: str) -> Authorization:
        """Check whether account holds any of the required roles."""
        account = normalize_address(account)
        held = self.members.get(account, set())
        for role in required:
            if role in held:
                return Authorization(account=account, granted=True, role=role, required=required)
        return Authorization(account=account, granted=False, required=required)

    def require(self, account: str, *required: str, operation: str) -> Authorization:
        auth = self.authorize(account, *required)
        if not auth.granted:
            logger.warning("Access denied: %s -> %s", account, operation)
            raise AccessDenied(auth.account, tuple(role_name(r) for r in required), operation)
        return auth

    def assign(self, role: str, account: str, sender: str) -> bool:
        if is_zero_address(account):
            raise ZeroAddress(f"{role_name(role)} account")
        account = normalize_address(account)
        held = self.members.setdefault(account, set())
        if role in held:
            return False
        held.add(role)
        self._emit(RoleGranted(role=role, account=account, sender=normalize_address(sender)))
        logger.info("Role %s granted to %s", role_name(role), account)
        return True

    def unassign(self, role: str, account: str, sender: str) -> bool:
        account = normalize_address(account)
        held = self.members.get(account)
        if not held or role not in held:
            return False
        held.discard(role)
        if not held:
            del self.members[account]
        self._emit(RoleRevoked(role=role, account=account, sender=normalize_address(sender)))
        logger.info("Role %s revoked from %s", role_name(role), account)
        return True

    def grant_role(self, caller: str, role: str, account: str) -> bool:
        self.require(caller, DEFAULT_ADMIN_ROLE, operation="grant_role")
        return self.assign(role, account, caller)

    def revoke_role(self, caller: str, role: str, account: str) -> bool:
        self.require(caller, DEFAULT_ADMIN_ROLE, operation="revoke_role")
        return self.unassign(role, account, caller)

    def renounce_role(self, caller: str, role: str) -> bool:
        return self.unassign(role, caller, caller)

    def snapshot(self) -> dict[str, set[str]]:
        return {account: set(roles) for account, roles in self.members.items()}

    def restore(self, state: dict[str, set[str]]) -> None:
        self.members = {account: set(roles) for account, roles in state.items()}
