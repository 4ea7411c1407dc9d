"""Scenario replay against an in-memory vault."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from vault_engine.collaborators import InMemoryToken
from vault_engine.constants import DEFAULT_SIMULATION_VAULT_NAME, MAX_UINT256, NEUTRAL_HEALTH_FACTOR
from vault_engine.errors import VaultError
from vault_engine.formatters import as_int, normalize_address
from vault_engine.models import VaultConfig
from vault_engine.vault import Vault


@dataclass(frozen=True)
class StepResult:
    """Outcome of one scenario step."""

    index: int
    op: str
    account: str | None
    detail: str
    ok: bool
    error: str | None = None


@dataclass
class Simulation:
    vault: Vault
    token: InMemoryToken
    owner: str
    # Named account -> checksummed address.
    accounts: dict[str, str] = field(default_factory=dict)
    initial_balances: dict[str, int] = field(default_factory=dict)

    def address_of(self, name: str) -> str:
        if name not in self.accounts:
            self.accounts[name] = account_address(name)
        return self.accounts[name]

    def name_of(self, address: str) -> str:
        for name, addr in self.accounts.items():
            if addr == address:
                return name
        return address


def account_address(name: str) -> str:
    """Deterministic address for a named account: last 20 bytes of keccak(name)."""
    from web3 import Web3  # pylint: disable=import-outside-toplevel

    digest = bytes(Web3.keccak(text=name))
    return normalize_address("0x" + digest[-20:].hex())


def load_scenario(path: str | Path) -> dict[str, Any]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Unexpected scenario format (expected JSON object)")
    if not isinstance(data.get("steps", []), list):
        raise ValueError("Scenario 'steps' must be a list")
    return data


def build_simulation(
    scenario: dict[str, Any],
    *,
    entry_fee_bp: int | None = None,
    exit_fee_bp: int | None = None,
    health_factor: int | None = None,
) -> Simulation:
    """Create the token, accounts and vault described by a scenario. Overrides win over the file."""
    accounts: dict[str, str] = {}

    def named(name: str) -> str:
        if name not in accounts:
            accounts[name] = account_address(name)
        return accounts[name]

    asset_cfg = scenario.get("asset") or {}
    token = InMemoryToken(
        named(asset_cfg.get("name", "asset")),
        symbol=str(asset_cfg.get("symbol", "TKN")),
        decimals=as_int(asset_cfg.get("decimals"), default=18),
    )
    vault_address = named(scenario.get("vault", DEFAULT_SIMULATION_VAULT_NAME))
    owner = named(scenario.get("owner", "owner"))

    recipient = scenario.get("fee_recipient")
    config = VaultConfig(
        entry_fee_bp=as_int(entry_fee_bp if entry_fee_bp is not None else scenario.get("entry_fee_bp")),
        exit_fee_bp=as_int(exit_fee_bp if exit_fee_bp is not None else scenario.get("exit_fee_bp")),
        entry_fee_recipient=named(recipient) if recipient else None,
        exit_fee_recipient=named(recipient) if recipient else None,
        target_health_factor=as_int(
            health_factor if health_factor is not None else scenario.get("health_factor"),
            default=NEUTRAL_HEALTH_FACTOR,
        ),
    )
    vault = Vault(address=vault_address, asset=token.handle(vault_address), owner=owner, config=config)

    initial: dict[str, int] = {}
    for name, balance in (scenario.get("accounts") or {}).items():
        addr = named(name)
        amount = as_int(balance)
        token.mint(addr, amount)
        token.approve(addr, vault_address, MAX_UINT256)
        initial[name] = amount

    return Simulation(vault=vault, token=token, owner=owner, accounts=accounts, initial_balances=initial)


def apply_step(sim: Simulation, step: dict[str, Any]) -> str:
    """Execute one step and describe its outcome. Raises on failure."""
    op = step.get("op")
    vault = sim.vault
    account = sim.address_of(step["account"]) if step.get("account") else sim.owner
    receiver = sim.address_of(step["receiver"]) if step.get("receiver") else None

    if op == "deposit":
        assets = as_int(step.get("assets"))
        shares = vault.deposit(account, assets, receiver)
        return f"deposited {assets} assets -> {shares} shares"
    if op == "mint":
        shares = as_int(step.get("shares"))
        assets = vault.mint(account, shares, receiver)
        return f"minted {shares} shares for {assets} assets"
    if op == "withdraw":
        raw = step.get("assets")
        assets = vault.max_withdraw(account) if raw == "max" else as_int(raw)
        shares = vault.withdraw(account, assets, receiver)
        return f"withdrew {assets} assets, burned {shares} shares"
    if op == "redeem":
        raw = step.get("shares")
        shares = vault.balance_of(account) if raw == "all" else as_int(raw)
        assets = vault.redeem(account, shares, receiver)
        return f"redeemed {shares} shares -> {assets} assets"
    if op == "transfer":
        to = sim.address_of(step["to"])
        shares = as_int(step.get("shares"))
        vault.transfer(account, to, shares)
        return f"transferred {shares} shares to {step['to']}"
    if op == "update_health_factor":
        value = as_int(step.get("value"))
        vault.update_health_factor(account, value)
        return f"target health factor set to {value}"
    if op == "update_fees":
        entry = as_int(step.get("entry_fee_bp"), default=vault.fees.entry_fee_bp)
        exit_ = as_int(step.get("exit_fee_bp"), default=vault.fees.exit_fee_bp)
        vault.update_fee_basis_points(account, entry, exit_)
        return f"fees set to entry={entry}bp exit={exit_}bp"
    raise ValueError(f"Unknown scenario op: {op!r}")


def run_step(sim: Simulation, index: int, step: dict[str, Any]) -> StepResult:
    op = str(step.get("op"))
    account = step.get("account")
    try:
        detail = apply_step(sim, step)
    except (VaultError, ValueError, KeyError) as ex:
        return StepResult(index=index, op=op, account=account, detail="", ok=False, error=str(ex))
    return StepResult(index=index, op=op, account=account, detail=detail, ok=True)
