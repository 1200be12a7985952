"""Pure view model derivations for grant records.

Nothing in this module touches the network or keeps state; the orchestrator
calls these functions to turn authoritative ledger records into
presentation-ready values.
"""

from datetime import datetime, tzinfo
from decimal import ROUND_DOWN, Decimal, InvalidOperation

from .constants import NATIVE_DECIMALS
from .exceptions import ValidationError
from .types import Grant, GrantView


def to_smallest_unit(amount: float | Decimal | int | str, decimals: int = NATIVE_DECIMALS) -> int:
    """Convert a human amount (e.g. ``5`` tokens) into the ledger's smallest unit."""
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise ValidationError(
            "Invalid amount format. Please enter a valid number.", field="amount", value=amount
        ) from exc

    if not value.is_finite():
        raise ValidationError("Amount must be a finite number", field="amount", value=amount)
    if value < 0:
        raise ValidationError("Amount cannot be negative", field="amount", value=amount)

    scaled = value * (Decimal(10) ** decimals)
    if scaled != scaled.to_integral_value():
        raise ValidationError(
            f"Amount has more than {decimals} decimal places", field="amount", value=amount
        )
    return int(scaled)


def format_amount(
    amount: int,
    decimals: int = NATIVE_DECIMALS,
    precision: int = 4,
    symbol: str | None = None,
) -> str:
    """Render a smallest-unit amount with fixed precision."""
    value = Decimal(int(amount)) / (Decimal(10) ** decimals)
    quantum = Decimal(1).scaleb(-precision)
    text = f"{value.quantize(quantum, rounding=ROUND_DOWN):.{precision}f}"
    return f"{text} {symbol}" if symbol else text


def format_deadline(deadline: int, tz: tzinfo | None = None) -> str:
    """Unix timestamp to a locale date/time string."""
    try:
        return datetime.fromtimestamp(int(deadline), tz=tz).strftime("%x %X")
    except (OverflowError, OSError, ValueError):
        return "Invalid date"


def is_expired(deadline: int, now: float) -> bool:
    return now > deadline


def format_time_remaining(deadline: int, now: float) -> str:
    """Countdown such as ``2d 3h 15m``; ``Expired`` once the deadline passed."""
    if now > deadline:
        return "Expired"

    remaining = int(deadline - now)
    days, rest = divmod(remaining, 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def addresses_equal(left: str | None, right: str | None) -> bool:
    """Case-insensitive address comparison; an absent side never matches."""
    if not left or not right:
        return False
    return left.lower() == right.lower()


def derive_grant_view(
    grant: Grant,
    connected_address: str | None,
    now: float,
    *,
    decimals: int = NATIVE_DECIMALS,
    symbol: str | None = None,
    tz: tzinfo | None = None,
) -> GrantView:
    return GrantView(
        grant=grant,
        is_expired=is_expired(grant.deadline, now),
        is_owned_by_caller=addresses_equal(grant.issuer, connected_address),
        deadline_date=format_deadline(grant.deadline, tz),
        amount_display=format_amount(grant.amount, decimals, symbol=symbol),
        time_remaining=format_time_remaining(grant.deadline, now),
    )
