"""Fee-charging, health-factor adjusted share vault engine."""

from typing import NoReturn

from vault_engine.errors import (
    AccessDenied,
    CollaboratorFailure,
    DivisionByZeroHealthFactor,
    InvalidPath,
    NoSharesMinted,
    VaultError,
    ZeroAddress,
)
from vault_engine.models import VaultConfig
from vault_engine.vault import Vault

__version__ = "0.1.0"

__all__ = [
    "AccessDenied",
    "CollaboratorFailure",
    "DivisionByZeroHealthFactor",
    "InvalidPath",
    "NoSharesMinted",
    "Vault",
    "VaultConfig",
    "VaultError",
    "ZeroAddress",
]


def _entry_point() -> NoReturn:
    """Entry point for the vault-engine script."""
    import sys

    from vault_engine.cli import main

    raise SystemExit(main(sys.argv[1:]))
