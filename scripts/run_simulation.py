#!/usr/bin/env python3
"""
Simulate a counterfactual income tax tariff against the 2021 reference.

Usage:
    python scripts/run_simulation.py --zone4-rate 0.45
    python scripts/run_simulation.py --zero-threshold 12000 --bracket-table brackets.csv

Output:
    Revenue change, summary group shares and the display group table
"""

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

sys.path.insert(0, str(Path(__file__).parent.parent))

from tariff_model import (
    DESTATIS_2021_BRACKETS,
    REFERENCE_TARIFF_2021,
    SimulationContext,
    load_bracket_table,
    update_param,
)
from tariff_model.rate_curves import compare_rate_curves

# CLI flag -> TariffParameters field
PARAM_FLAGS = {
    "zero_threshold": float,
    "zone2_end": float,
    "zone2_entry_rate_basis": float,
    "zone3_end": float,
    "zone4_end": float,
    "zone4_rate": float,
    "zone5_rate": float,
    "mid_rate_override": float,
}


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Income tax tariff simulator")
    for name, kind in PARAM_FLAGS.items():
        parser.add_argument(
            f"--{name.replace('_', '-')}",
            dest=name,
            type=kind,
            default=None,
            help=f"Tariff control '{name}' (default: 2021 value)",
        )
    parser.add_argument("--bracket-table", type=Path, default=None,
                        help="CSV bracket table replacing the Destatis 2021 table")
    parser.add_argument("--rates", action="store_true", help="Also print average rate curves")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log calibration details")
    return parser.parse_args(argv)


def main(argv=None):
    """Build the calibrated context and print the comparison."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    brackets = load_bracket_table(args.bracket_table) if args.bracket_table else DESTATIS_2021_BRACKETS

    params = REFERENCE_TARIFF_2021
    for name in PARAM_FLAGS:
        value = getattr(args, name)
        if value is not None:
            params = update_param(params, name, value)

    context = SimulationContext.build(brackets)
    comparison = context.compare(params)

    print(comparison.summary())
    print()
    with pd.option_context("display.width", 140, "display.float_format", "{:,.2f}".format):
        print(comparison.reform.to_dataframe().to_string(index=False))
        print()
        print(comparison.representative_table().to_string(index=False))
        if args.rates:
            print()
            print(compare_rate_curves(params).to_string(index=False))


if __name__ == "__main__":
    main()
