"""Web3-backed implementations of the vault's collaborators.

State-changing calls are first simulated with ``.call()`` to read the return
value, then sent with ``.transact()`` from the bound account; a reverted
receipt raises RuntimeError, which the vault maps to CollaboratorFailure.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from vault_engine.constants import (
    AAVE_POOL_MIN_ABI,
    CHAINLINK_AGGREGATOR_MIN_ABI,
    ERC20_MIN_ABI,
    UNISWAP_V2_ROUTER_MIN_ABI,
)
from vault_engine.formatters import as_int, normalize_address

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover


class _BoundContract:
    def __init__(self, w3: "Web3", address: str, abi: list[dict], sender: str):
        self.w3 = w3
        self.address = normalize_address(address)
        self.sender = normalize_address(sender)
        self.contract = w3.eth.contract(address=self.address, abi=abi)

    def _send(self, fn: Any) -> Any:
        """Simulate then execute a contract function; return the simulated result."""
        tx_params = {"from": self.sender}
        result = fn.call(tx_params)
        tx_hash = fn.transact(tx_params)
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash)
        if as_int(receipt.get("status"), default=1) != 1:
            raise RuntimeError(f"transaction {tx_hash!r} to {self.address} reverted")
        return result


class Erc20Asset(_BoundContract):
    """ERC20 base asset acting on behalf of the vault."""

    def __init__(self, w3: "Web3", address: str, sender: str):
        super().__init__(w3, address, ERC20_MIN_ABI, sender)

    def transfer(self, to: str, amount: int) -> bool:
        return self._send(self.contract.functions.transfer(normalize_address(to), amount))

    def transfer_from(self, owner: str, to: str, amount: int) -> bool:
        return self._send(
            self.contract.functions.transferFrom(normalize_address(owner), normalize_address(to), amount)
        )

    def approve(self, spender: str, amount: int) -> bool:
        return self._send(self.contract.functions.approve(normalize_address(spender), amount))

    def balance_of(self, account: str) -> int:
        return as_int(self.contract.functions.balanceOf(normalize_address(account)).call())


class UniswapV2SwapVenue(_BoundContract):
    """UniswapV2Router02-compatible router; output is delivered to the sender."""

    def __init__(self, w3: "Web3", address: str, sender: str):
        super().__init__(w3, address, UNISWAP_V2_ROUTER_MIN_ABI, sender)

    def swap_exact(self, amount_in: int, min_amount_out: int, path: Sequence[str], deadline: int) -> int:
        fn = self.contract.functions.swapExactTokensForTokens(
            amount_in,
            min_amount_out,
            [normalize_address(p) for p in path],
            self.sender,
            deadline,
        )
        amounts = self._send(fn)
        return as_int(amounts[-1])


class AaveLendingMarket(_BoundContract):
    """Aave v3 Pool for one reserve; a_token is that reserve's aToken."""

    def __init__(self, w3: "Web3", address: str, sender: str, a_token: str):
        super().__init__(w3, address, AAVE_POOL_MIN_ABI, sender)
        self.a_token = w3.eth.contract(address=normalize_address(a_token), abi=ERC20_MIN_ABI)

    def supplied_balance(self, asset: str, account: str) -> int:  # pylint: disable=unused-argument
        """Supplied principal plus accrued interest, read from the aToken balance."""
        return as_int(self.a_token.functions.balanceOf(normalize_address(account)).call())

    def supply(self, asset: str, amount: int, on_behalf_of: str, referral: int) -> None:
        self._send(
            self.contract.functions.supply(normalize_address(asset), amount, normalize_address(on_behalf_of), referral)
        )

    def withdraw(self, asset: str, amount: int, to: str) -> int:
        return as_int(
            self._send(self.contract.functions.withdraw(normalize_address(asset), amount, normalize_address(to)))
        )

    def borrow(self, asset: str, amount: int, rate_mode: int, referral: int, on_behalf_of: str) -> None:
        self._send(
            self.contract.functions.borrow(
                normalize_address(asset), amount, rate_mode, referral, normalize_address(on_behalf_of)
            )
        )

    def repay(self, asset: str, amount: int, rate_mode: int, on_behalf_of: str) -> int:
        return as_int(
            self._send(
                self.contract.functions.repay(
                    normalize_address(asset), amount, rate_mode, normalize_address(on_behalf_of)
                )
            )
        )


class ChainlinkPriceOracle:
    """Chainlink AggregatorV3 feed. Read-only, so no sender is needed."""

    def __init__(self, w3: "Web3", address: str):
        self.address = normalize_address(address)
        self.contract = w3.eth.contract(address=self.address, abi=CHAINLINK_AGGREGATOR_MIN_ABI)

    def latest_price(self) -> tuple[int, int]:
        """Return (answer, updatedAt) from latestRoundData()."""
        _, answer, _, updated_at, _ = self.contract.functions.latestRoundData().call()
        return as_int(answer), as_int(updated_at)
