import locale
import logging
import re
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP, getcontext, localcontext
from typing import Callable

getcontext().prec = 28

logger = logging.getLogger(__name__)

MIN_TIP_PERCENT = Decimal("0")
MAX_TIP_PERCENT = Decimal("30")

# Plain ASCII decimal or scientific notation, e.g. "50", "12.5", ".5", "1e3"
_AMOUNT_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?", re.ASCII)
# Bills of 1e308 and up do not fit in a double
MAX_AMOUNT_EXPONENT = 307

CurrencyFormatter = Callable[[Decimal], str]


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def init_locale() -> bool:
    """Adopt the locale from the environment (LANG, LC_ALL, ...) for currency formatting.

    Returns False and keeps the current locale if the environment names one that
    is not installed.
    """
    try:
        locale.setlocale(locale.LC_ALL, "")
    except locale.Error as e:
        logger.warning(f"Could not set locale from environment: {e}. Currency falls back to dollars.")
        return False
    logger.debug(f"Locale set to {locale.setlocale(locale.LC_MONETARY)}")
    return True


def parse_amount(text) -> Decimal:
    """Parse free-form bill text into a non-negative amount.

    Only plain ASCII numbers are accepted. Empty, non-numeric, negative or
    out-of-range text becomes zero. Never raises.
    """
    if text is None:
        return Decimal("0")
    cleaned = str(text).strip()
    if not _AMOUNT_RE.fullmatch(cleaned):
        if cleaned:
            logger.debug(f"Bill text {cleaned!r} is not a number, using 0")
        return Decimal("0")
    amount = Decimal(cleaned)
    if amount <= 0 or amount.adjusted() > MAX_AMOUNT_EXPONENT:
        return Decimal("0")
    return amount


def compute_tip(amount, tip_percent, round_up: bool = False) -> Decimal:
    """Return the unformatted tip for `amount` at `tip_percent` percent.

    With `round_up` the tip is raised to the next whole currency unit.
    Otherwise no rounding is applied; the formatter handles minor units.
    """
    a = _to_decimal(amount)
    p = _to_decimal(tip_percent)
    if a < 0:
        raise ValueError("amount must be non-negative")
    if p < MIN_TIP_PERCENT or p > MAX_TIP_PERCENT:
        raise ValueError(f"tip percent must be between {MIN_TIP_PERCENT} and {MAX_TIP_PERCENT}")
    tip = a * (p / Decimal("100"))
    if round_up:
        tip = tip.to_integral_value(rounding=ROUND_CEILING)
    return tip


def format_currency(value) -> str:
    """Format `value` with the active locale's currency conventions.

    Falls back to dollars when the locale defines no currency (e.g. the C locale).
    """
    value = _to_decimal(value)
    # quantize needs every integer digit plus the cents
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        cents = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    try:
        return locale.currency(float(cents), grouping=True)
    except ValueError:
        return f"${cents:,.2f}"


def calculate_tip(amount, tip_percent, round_up: bool = False, formatter: CurrencyFormatter = format_currency) -> str:
    """Return the tip for `amount` at `tip_percent` percent, formatted as currency."""
    return formatter(compute_tip(amount, tip_percent, round_up))
