"""Tabular views of the tip calculation: every slider stop, or a whole file of bills."""
import io
import logging
from typing import Optional

import pandas as pd

from calculator.core import CurrencyFormatter, compute_tip, format_currency, parse_amount
from calculator.controller import TIP_PERCENT_MAX, TIP_PERCENT_MIN, TIP_PERCENT_STEP, snap_tip_percent

logger = logging.getLogger(__name__)

SLIDER_STOPS = tuple(
    int(TIP_PERCENT_MIN + i * TIP_PERCENT_STEP)
    for i in range(int((TIP_PERCENT_MAX - TIP_PERCENT_MIN) / TIP_PERCENT_STEP) + 1)
)

AMOUNT_KEYWORDS = ["bill", "amount", "total", "check", "subtotal"]


def tip_table(amount_input, round_up: bool = False, formatter: CurrencyFormatter = format_currency) -> pd.DataFrame:
    """Return the tip for `amount_input` at each slider stop.

    Columns: 'Tip Percent', 'Tip Amount' (numeric) and 'Tip' (formatted).
    """
    amount = parse_amount(amount_input)
    rows = []
    for percent in SLIDER_STOPS:
        tip = compute_tip(amount, percent, round_up)
        rows.append({"Tip Percent": percent, "Tip Amount": float(tip), "Tip": formatter(tip)})
    return pd.DataFrame(rows, columns=["Tip Percent", "Tip Amount", "Tip"])


def _detect_amount_column(df: pd.DataFrame) -> str:
    """Find the column holding bill amounts by keyword.

    Raises KeyError if no column looks like an amount.
    """
    for col in df.columns:
        low = str(col).lower()
        if any(kw in low for kw in AMOUNT_KEYWORDS):
            logger.info(f"Auto-detected amount column: {col}")
            return col
    raise KeyError(f"Could not auto-detect bill amount column. Columns found: {list(df.columns)}")


def bills_to_tips(
    df: pd.DataFrame,
    tip_percent,
    round_up: bool = False,
    amount_col: Optional[str] = None,
    formatter: CurrencyFormatter = format_currency,
) -> pd.DataFrame:
    """Add the tip for every bill in `df`.

    Amount cells are cleaned of currency symbols and thousands separators and then
    parsed like typed bill text, so blanks and junk count as zero.

    Returns a copy of `df` with 'Tip Percent', 'Tip Amount' and 'Tip' columns added.

    Raises:
        KeyError: If `amount_col` is missing or no amount column can be detected
    """
    if amount_col is None:
        amount_col = _detect_amount_column(df)
    elif amount_col not in df.columns:
        raise KeyError(f"Missing amount column: {amount_col!r}. Found: {list(df.columns)}")

    percent = snap_tip_percent(tip_percent)
    cleaned = (
        df[amount_col]
        .astype(str)
        .str.replace("$", "", regex=False)
        .str.replace(",", "", regex=False)
        .str.strip()
    )
    tips = [compute_tip(parse_amount(text), percent, round_up) for text in cleaned]

    result = df.copy()
    result["Tip Percent"] = percent
    result["Tip Amount"] = [float(t) for t in tips]
    result["Tip"] = [formatter(t) for t in tips]

    logger.info(f"Calculated {len(result)} tips at {percent:g}% (round up: {round_up})")
    return result


def read_bills(file_bytes: bytes, filename: str) -> pd.DataFrame:
    """Read an Excel or CSV file of bills from bytes.

    Raises:
        ValueError: If the file format is not supported
    """
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext in ("xlsx", "xls"):
        return pd.read_excel(io.BytesIO(file_bytes))
    if ext == "csv":
        return pd.read_csv(io.BytesIO(file_bytes))
    raise ValueError(f"Unsupported file format: {ext}. Supported: xlsx, xls, csv")


def to_excel_bytes(df: pd.DataFrame, sheet_name: str) -> bytes:
    output_io = io.BytesIO()
    with pd.ExcelWriter(output_io, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
    return output_io.getvalue()
