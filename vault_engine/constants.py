"""Constants and configuration for the vault engine."""

# Fee rates are expressed over this denominator (1 bp = 0.01%).
TOTAL_BASIS_POINTS = 100_00

# Target health factor is a wad (1e18 fixed point); 1e18 is neutral.
HEALTH_FACTOR_SCALE = 10**18
NEUTRAL_HEALTH_FACTOR = HEALTH_FACTOR_SCALE
SHARE_PRICE_SCALE = 10**18

MAX_UINT256 = 2**256 - 1

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# ERC-4626 virtual share offset; 0 means one virtual share and one virtual asset.
DECIMALS_OFFSET = 0

# Aave interest rate modes, forwarded verbatim to the lending market.
STABLE_RATE_MODE = 1
VARIABLE_RATE_MODE = 2

DEFAULT_REFERRAL_CODE = 0

DEFAULT_SHARE_NAME = "Vault Share"
DEFAULT_SHARE_SYMBOL = "vSHARE"
DEFAULT_SHARE_DECIMALS = 18

# Minimal ERC20 ABI for the base asset.
ERC20_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "transferFrom",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "from", "type": "address"},
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "approve",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

# Minimal UniswapV2Router02 ABI - only the exact-input swap.
UNISWAP_V2_ROUTER_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "swapExactTokensForTokens",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "amountOutMin", "type": "uint256"},
            {"name": "path", "type": "address[]"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"},
        ],
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
    },
]

# Minimal Aave v3 Pool ABI.
AAVE_POOL_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "supply",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "asset", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "onBehalfOf", "type": "address"},
            {"name": "referralCode", "type": "uint16"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "withdraw",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "asset", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "to", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "borrow",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "asset", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "interestRateMode", "type": "uint256"},
            {"name": "referralCode", "type": "uint16"},
            {"name": "onBehalfOf", "type": "address"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "repay",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "asset", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "interestRateMode", "type": "uint256"},
            {"name": "onBehalfOf", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

# Minimal Chainlink AggregatorV3Interface ABI.
CHAINLINK_AGGREGATOR_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "latestRoundData",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "roundId", "type": "uint80"},
            {"name": "answer", "type": "int256"},
            {"name": "startedAt", "type": "uint256"},
            {"name": "updatedAt", "type": "uint256"},
            {"name": "answeredInRound", "type": "uint80"},
        ],
    },
]

# Used by the simulation CLI when the scenario does not set its own vault address.
DEFAULT_SIMULATION_VAULT_NAME = "vault"
SCENARIO_ENV_VAR = "VAULT_ENGINE_SCENARIO"
