"""Trace decoding constants: selectors, gas limits and category colors."""

from typing import Final

# Default token contract (PYUSD on Ethereum mainnet)
DEFAULT_TOKEN_CONTRACT: Final[str] = "0x6c3ea9036406852006290770BEdFcAbA0e23A0e8"
DEFAULT_TOKEN_SYMBOL: Final[str] = "PYUSD"
DEFAULT_TOKEN_DECIMALS: Final[int] = 6

WEI_PER_ETH: Final[int] = 10**18

# ERC-20 function selectors
ERC20_SELECTORS: Final[dict[str, str]] = {
    "0xa9059cbb": "transfer",
    "0x23b872dd": "transferFrom",
    "0x095ea7b3": "approve",
    "0x70a08231": "balanceOf",
    "0xdd62ed3e": "allowance",
    "0x40c10f19": "mint",
    "0x42966c68": "burn",
    "0x79cc6790": "burnFrom",
    "0x39509351": "increaseAllowance",
    "0xa457c2d7": "decreaseAllowance",
}

# Common DeFi router / vault / lending selectors
DEFI_SELECTORS: Final[dict[str, str]] = {
    "0x38ed1739": "swapExactTokensForTokens",
    "0x8803dbee": "swapTokensForExactTokens",
    "0x7ff36ab5": "swapExactETHForTokens",
    "0x18cbafe5": "swapExactTokensForETH",
    "0x414bf389": "exactInputSingle",
    "0xe8e33700": "addLiquidity",
    "0xf305d719": "addLiquidityETH",
    "0xbaa2abde": "removeLiquidity",
    "0x02751cec": "removeLiquidityETH",
    "0xd0e30db0": "deposit",
    "0x2e1a7d4d": "withdraw",
    "0xe8eda9df": "deposit",
    "0xa694fc3a": "stake",
    "0x2e17de78": "unstake",
    "0x4e71d92d": "claim",
    "0x3d18b912": "getReward",
    "0xc5ebeaec": "borrow",
    "0x0e752702": "repayBorrow",
    "0xf5e3c462": "liquidateBorrow",
}

KNOWN_SELECTORS: Final[dict[str, str]] = {**DEFI_SELECTORS, **ERC20_SELECTORS}

# Selectors decoded into token operations
TOKEN_OPERATION_SELECTORS: Final[dict[str, str]] = {
    "0xa9059cbb": "transfer",
    "0x23b872dd": "transferFrom",
    "0x095ea7b3": "approve",
    "0x40c10f19": "mint",
    "0x42966c68": "burn",
}

ERC20_FUNCTION_NAMES: Final[frozenset[str]] = frozenset(
    {"transfer", "transferfrom", "approve", "mint", "burn"}
)

DEFI_PATTERNS: Final[tuple[str, ...]] = (
    "swap",
    "deposit",
    "withdraw",
    "stake",
    "unstake",
    "claim",
    "harvest",
    "addliquidity",
    "removeliquidity",
    "borrow",
    "repay",
    "liquidate",
)

# Hex characters per 32-byte ABI slot
SLOT_HEX_LENGTH: Final[int] = 64
SELECTOR_HEX_LENGTH: Final[int] = 10  # "0x" + 4 bytes

# Gas limits
COMPLEX_TRANSACTION_GAS: Final[int] = 200_000
HIGH_GAS_THRESHOLD: Final[int] = 500_000

# Expected gas per decoded token operation
TOKEN_OPERATION_GAS_ESTIMATES: Final[dict[str, int]] = {
    "transfer": 65_000,
    "transferFrom": 70_000,
    "approve": 45_000,
    "mint": 80_000,
    "burn": 60_000,
}

# Colors
COLOR_PRIMARY: Final[str] = "#00bfff"
COLOR_SUCCESS: Final[str] = "#10b981"
COLOR_ERROR: Final[str] = "#ef4444"

CATEGORY_PALETTE: Final[tuple[str, ...]] = (
    "#00bfff",
    "#10b981",
    "#f59e0b",
    "#ef4444",
    "#8b5cf6",
    "#06b6d4",
    "#84cc16",
    "#f97316",
    "#ec4899",
    "#6366f1",
)

CATEGORY_COLORS: Final[dict[str, str]] = {
    "eth_transfer": "#00bfff",
    "contract_call": "#10b981",
    "contract_creation": "#f59e0b",
    "token_transaction": "#8b5cf6",
    "token_transfer": "#06b6d4",
    "defi_interaction": "#ec4899",
    "other": "#6b7280",
}
