"""Formatting, conversion and integer math utilities."""

from decimal import Decimal

from vault_engine.constants import MAX_UINT256, TOTAL_BASIS_POINTS, ZERO_ADDRESS


def as_int(value, *, default: int = 0) -> int:
    """Convert value to int, handling various types."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        v = value.strip().replace("_", "")
        if v.startswith("0x"):
            return int(v, 16)
        return int(v)
    return int(value)


def as_uint256(value, *, name: str = "amount") -> int:
    """Coerce value to int and check it fits in uint256."""
    if isinstance(value, float):
        raise TypeError(f"{name} must be an integer, got float {value!r}")
    v = as_int(value)
    if v < 0 or v > MAX_UINT256:
        raise ValueError(f"{name} out of uint256 range: {v}")
    return v


def normalize_hex_str(value) -> str:
    """Normalize hex string to 0x-prefixed format."""
    if isinstance(value, (bytes, bytearray)):
        return f"0x{bytes(value).hex()}"
    if hasattr(value, "hex") and not isinstance(value, str):
        hex_str = value.hex()
        return hex_str if hex_str.startswith("0x") else f"0x{hex_str}"
    s = str(value).strip()
    if s.lower().startswith("0x"):
        return f"0x{s[2:]}"
    return f"0x{s}"


def normalize_address(value) -> str:
    """Checksum an account reference. Raises ValueError if it is not an address."""
    from web3 import Web3  # pylint: disable=import-outside-toplevel

    if value is None:
        raise ValueError("address is None")
    addr = normalize_hex_str(value) if not isinstance(value, str) else value.strip()
    if not Web3.is_address(addr):
        raise ValueError(f"not an address: {value!r}")
    return Web3.to_checksum_address(addr)


def is_zero_address(value) -> bool:
    return value is None or normalize_address(value) == ZERO_ADDRESS


def ceil_div(numer: int, denom: int) -> int:
    """Ceiling division."""
    if denom == 0:
        raise ZeroDivisionError("denom must be > 0")
    return (numer + denom - 1) // denom


def mul_div(x: int, y: int, denom: int, *, round_up: bool = False) -> int:
    """Compute x * y / denom on unbounded ints, flooring unless round_up is set."""
    if denom == 0:
        raise ZeroDivisionError("denom must be > 0")
    if round_up:
        return ceil_div(x * y, denom)
    return (x * y) // denom


def format_bp(bp: int) -> str:
    """Format basis points as percentage."""
    return f"{(Decimal(bp) / Decimal(100)):.2f}%"


def format_units(value: int, *, decimals: int = 18, places: int = 6) -> str:
    """Format a raw integer amount in whole token units."""
    units = Decimal(value) / Decimal(10**decimals)
    s = f"{units:.{places}f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s


def format_health_factor(value: int) -> str:
    """Format a 1e18 health factor as a plain multiplier."""
    return f"{format_units(value, decimals=18, places=4)}x"


def format_share_of_total(part: int, total: int) -> str:
    if total <= 0:
        return "n/a"
    return format_bp(part * TOTAL_BASIS_POINTS // total)


def short_address(addr: str) -> str:
    return f"{addr[:10]}...{addr[-6:]}"
