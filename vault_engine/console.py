"""Console output formatting."""

from vault_engine.errors import NoSharesMinted
from vault_engine.formatters import format_bp, format_health_factor, format_share_of_total, format_units, short_address
from vault_engine.simulation import Simulation, StepResult


def print_steps(results: list[StepResult]) -> None:
    """Print one line per scenario step."""
    print("=" * 70)
    print("🧾 SCENARIO STEPS")
    print("=" * 70)
    for r in results:
        marker = "✅" if r.ok else "❌"
        who = f" [{r.account}]" if r.account else ""
        text = r.detail if r.ok else f"failed: {r.error}"
        print(f"{marker} #{r.index:<3} {r.op}{who}: {text}")
    print("")


def print_vault_summary(sim: Simulation) -> None:
    """Print vault totals and configuration."""
    vault = sim.vault
    decimals = sim.token.decimals
    symbol = sim.token.symbol
    total_assets = vault.total_assets()
    fees = vault.fees

    print("📊 VAULT STATE")
    print(f"   Vault:              {vault.address}")
    print(f"   Total assets:       {format_units(total_assets, decimals=decimals)} {symbol}")
    print(f"   Total shares:       {format_units(vault.total_supply, decimals=decimals)} {vault.symbol}")
    try:
        price = format_units(vault.share_price(), decimals=18, places=8)
    except NoSharesMinted:
        price = "n/a (no shares minted)"
    print(f"   Share price:        {price} {symbol}/{vault.symbol}")
    print(f"   Health factor:      {format_health_factor(vault.target_health_factor)}")
    print(f"   Entry fee:          {format_bp(fees.entry_fee_bp)} → {_label(sim, fees.entry_fee_recipient)}")
    print(f"   Exit fee:           {format_bp(fees.exit_fee_bp)} → {_label(sim, fees.exit_fee_recipient)}")
    print("")


def print_account_positions(sim: Simulation) -> None:
    """Print each named account's wallet, shares, redeemable value and P&L."""
    vault = sim.vault
    decimals = sim.token.decimals
    total_supply = vault.total_supply

    print("👥 ACCOUNTS")
    print("   " + "-" * 60)
    for name in sorted(sim.initial_balances):
        addr = sim.address_of(name)
        wallet = sim.token.balance_of(addr)
        shares = vault.balance_of(addr)
        redeemable = vault.preview_redeem(shares) if shares else 0
        pnl = wallet + redeemable - sim.initial_balances[name]
        sign = "+" if pnl >= 0 else ""
        print(f"   {name} ({short_address(addr)})")
        print(
            f"      Wallet: {format_units(wallet, decimals=decimals)} | "
            f"Shares: {format_units(shares, decimals=decimals)} ({format_share_of_total(shares, total_supply)}) | "
            f"Redeemable: {format_units(redeemable, decimals=decimals)} | "
            f"P&L: {sign}{format_units(pnl, decimals=decimals)}"
        )
    print("")


def print_simulation_report(sim: Simulation, results: list[StepResult]) -> None:
    print_steps(results)
    print_vault_summary(sim)
    print_account_positions(sim)


def _label(sim: Simulation, address: str) -> str:
    if address == sim.vault.address:
        return "vault"
    return sim.name_of(address)
