"""Error taxonomy for the vault engine.

Failures of vault state, roles or collaborators are ``VaultError``. Errors
describing bad input also subclass ``ValueError`` so callers that already guard
on it keep working. Malformed arguments (floats or out-of-range integers for
amounts, strings that are not addresses) are rejected earlier by the coercion
helpers in ``vault_engine.formatters`` and ``vault_engine.fees`` with a plain
``TypeError`` or ``ValueError``. A failing call never leaves partial state
behind: the enclosing transaction is rolled back before the error reaches the
caller.
"""


class VaultError(Exception):
    """Base class for all vault engine failures."""


class ZeroAddress(VaultError, ValueError):
    """A required account reference was the zero address."""

    def __init__(self, what: str):
        super().__init__(f"{what} must not be the zero address")
        self.what = what


class InvalidPath(VaultError, ValueError):
    """Swap path has fewer than two hops."""

    def __init__(self, path_length: int):
        super().__init__(f"swap path must contain at least 2 assets, got {path_length}")
        self.path_length = path_length


class AccessDenied(VaultError):
    """Caller lacks every role the operation accepts."""

    def __init__(self, account: str, roles: tuple[str, ...], operation: str):
        names = " or ".join(roles)
        super().__init__(f"{account} is missing role {names} required for {operation}")
        self.account = account
        self.roles = roles
        self.operation = operation


class NoSharesMinted(VaultError, ZeroDivisionError):
    """A ratio query divided by a zero share supply."""

    def __init__(self):
        super().__init__("no shares minted: share price is undefined")


class DivisionByZeroHealthFactor(VaultError, ZeroDivisionError):
    """Target health factor is zero."""

    def __init__(self):
        super().__init__("target health factor must be > 0")


class CollaboratorFailure(VaultError):
    """A swap, lending, oracle or asset call failed or reported failure."""

    def __init__(self, collaborator: str, operation: str, reason: str = ""):
        msg = f"{collaborator}.{operation} failed"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
        self.collaborator = collaborator
        self.operation = operation


class InvalidBasisPoints(VaultError, ValueError):
    def __init__(self, name: str, value: int):
        super().__init__(f"{name} must be within [0, 10000] basis points, got {value}")
        self.name = name
        self.value = value


class ReentrantCall(VaultError):
    """A mutating entry point was invoked while another one was in flight."""

    def __init__(self, operation: str):
        super().__init__(f"reentrant call to {operation}")
        self.operation = operation


class ExceedsMaximum(VaultError, ValueError):
    """Request exceeds the ERC-4626 max* limit for the account."""

    def __init__(self, operation: str, account: str, requested: int, maximum: int):
        super().__init__(f"{operation} of {requested} for {account} exceeds maximum {maximum}")
        self.operation = operation
        self.requested = requested
        self.maximum = maximum


class InsufficientBalance(VaultError, ValueError):
    def __init__(self, account: str, balance: int, needed: int):
        super().__init__(f"{account} share balance {balance} < {needed}")
        self.account = account
        self.balance = balance
        self.needed = needed


class InsufficientAllowance(VaultError, ValueError):
    def __init__(self, owner: str, spender: str, allowance: int, needed: int):
        super().__init__(f"allowance {owner} -> {spender} is {allowance} < {needed}")
        self.owner = owner
        self.spender = spender
        self.allowance = allowance
        self.needed = needed
