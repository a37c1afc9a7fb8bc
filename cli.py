"""Simple CLI for the tip calculator.

Usage examples (PowerShell):
  python cli.py tip --amount 50 --percent 15 --round-up
  python cli.py table --amount 84.20 --output tips.xlsx
  python cli.py batch bills.csv --percent 20 --output bills_with_tips.xlsx
"""
import logging
from argparse import ArgumentParser
from pathlib import Path

from calculator.core import init_locale
from calculator.controller import DEFAULT_TIP_PERCENT, TipCalculatorController
from calculator.table import bills_to_tips, read_bills, tip_table, to_excel_bytes

logger = logging.getLogger(__name__)


def _write_table(df, output: str, sheet_name: str) -> None:
    path = Path(output)
    if path.suffix.lower() == ".csv":
        df.to_csv(path, index=False)
    else:
        path.write_bytes(to_excel_bytes(df, sheet_name))
    logger.info(f"Wrote {len(df)} rows to {path}")


def main(argv=None):
    parser = ArgumentParser(prog="tip-time")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    sub = parser.add_subparsers(dest="cmd")

    p_tip = sub.add_parser("tip", help="Calculate the tip for one bill")
    p_tip.add_argument("--amount", required=True, help="Bill amount (e.g., 50.00)")
    p_tip.add_argument("--percent", type=float, default=DEFAULT_TIP_PERCENT, help="Tip percent, 0-30 in steps of 5")
    p_tip.add_argument("--round-up", action="store_true", help="Round the tip up to a whole unit")

    p_table = sub.add_parser("table", help="Show the tip at every slider stop")
    p_table.add_argument("--amount", required=True, help="Bill amount (e.g., 50.00)")
    p_table.add_argument("--round-up", action="store_true", help="Round tips up to whole units")
    p_table.add_argument("--output", help="Write to .xlsx or .csv instead of printing")

    p_batch = sub.add_parser("batch", help="Calculate tips for a file of bills")
    p_batch.add_argument("input", help="Bills file (.xlsx, .xls or .csv)")
    p_batch.add_argument("--percent", type=float, default=DEFAULT_TIP_PERCENT, help="Tip percent, 0-30 in steps of 5")
    p_batch.add_argument("--round-up", action="store_true", help="Round tips up to whole units")
    p_batch.add_argument("--amount-col", help="Column holding bill amounts (auto-detected if omitted)")
    p_batch.add_argument("--output", required=True, help="Output .xlsx or .csv path")

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    init_locale()

    if args.cmd == "tip":
        controller = TipCalculatorController()
        controller.set_amount_input(args.amount)
        controller.set_tip_percent(args.percent)
        controller.set_round_up(args.round_up)
        state = controller.state
        print(f"Bill Amount: {state.amount_input}")
        print(controller.tip_percent_label)
        print(f"Tip Amount: {state.tip}")
    elif args.cmd == "table":
        df = tip_table(args.amount, args.round_up)
        if args.output:
            _write_table(df, args.output, "Tip Table")
        else:
            print(df.to_string(index=False))
    elif args.cmd == "batch":
        path = Path(args.input)
        df = read_bills(path.read_bytes(), path.name)
        result = bills_to_tips(df, args.percent, args.round_up, amount_col=args.amount_col)
        _write_table(result, args.output, "Tips")
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
