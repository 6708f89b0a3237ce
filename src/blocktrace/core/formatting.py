"""Display formatting helpers shared by analyzers and the orchestrator."""

from decimal import Decimal


def format_address(address: str | None) -> str:
    """Shorten an address to 0x1234...abcd form."""
    if not address:
        return "N/A"
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def format_gas(gas: int | float) -> str:
    """Format a gas amount with K/M suffixes."""
    value = float(gas)
    if value >= 1_000_000:
        return f"{value / 1_000_000:.2f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return f"{int(value)}"


def format_percentage(value: float, decimals: int = 1) -> str:
    return f"{value:.{decimals}f}%"


def format_duration(ms: float) -> str:
    """Format milliseconds as ms, seconds or minutes and seconds."""
    if ms < 1000:
        return f"{round(ms)}ms"
    if ms < 60_000:
        return f"{ms / 1000:.1f}s"
    minutes = int(ms // 60_000)
    seconds = int((ms % 60_000) // 1000)
    return f"{minutes}m {seconds}s"


def format_token_amount(amount: int, decimals: int, symbol: str) -> str:
    """Format an integer base-unit amount as a token amount.

    Example:
        >>> format_token_amount(1_500_000, 6, "PYUSD")
        '1.5 PYUSD'
    """
    units = Decimal(amount).scaleb(-decimals)
    text = f"{units:.{decimals}f}" if decimals else f"{units:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {symbol}"


def title_case(key: str) -> str:
    """Turn a snake_case category key into a display name."""
    return " ".join(part.capitalize() for part in key.split("_") if part)
