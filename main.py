# -*- coding: utf-8 -*-
"""
Main Entry Point
Surplus Bag Marketplace - Ranking Algorithm Comparison

Supports both CSV data loading and synthetic data generation.
"""

import os
import argparse
import logging

from config import SimulationConfig, NUM_DAYS, CUSTOMERS_PER_DAY, N_DISPLAYED
from simulation import compare_strategies
from restaurant_api import load_store_data
from customer_api import generate_customer
from data_loader import save_stores_to_csv, save_customers_to_csv


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Surplus bag marketplace simulation")
    parser.add_argument("--stores", help="Stores CSV (generated if omitted)")
    parser.add_argument("--customers", help="Customers CSV (generated if omitted)")
    parser.add_argument("--num-stores", type=int, default=15)
    parser.add_argument("--num-customers", type=int, default=70)
    parser.add_argument("--days", type=int, default=NUM_DAYS)
    parser.add_argument("--customers-per-day", type=int, default=CUSTOMERS_PER_DAY)
    parser.add_argument("--n-displayed", type=int, default=N_DISPLAYED)
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed (time-based if omitted)")
    parser.add_argument("--output-dir", default="simulation_results")
    parser.add_argument("--generate", action="store_true",
                        help="Write synthetic generated_stores.csv / generated_customers.csv and use them")
    parser.add_argument("--parallel", action="store_true",
                        help="Run the algorithms in separate processes")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    print("=" * 70)
    print("Surplus Bag Marketplace: Ranking Algorithm Comparison")
    print("BASELINE vs SAMA vs ANDREW vs AMER vs ZIAD vs HARMONY")
    print("=" * 70)
    print()

    stores_file = args.stores
    customers_file = args.customers

    if args.generate:
        stores_file = "generated_stores.csv"
        customers_file = "generated_customers.csv"
        print("Generating synthetic data...")
        save_stores_to_csv(load_store_data(args.num_stores, seed=args.seed), stores_file)
        save_customers_to_csv(generate_customer(args.num_customers, seed=args.seed), customers_file)
        print(f"  Saved {args.num_stores} stores to {stores_file}")
        print(f"  Saved {args.num_customers} customers to {customers_file}")
        print()

    for path in (stores_file, customers_file):
        if path and not os.path.exists(path):
            print(f"CSV file not found: {path}")
            return 1

    config = SimulationConfig(
        num_days=args.days,
        customers_per_day=args.customers_per_day,
        n_displayed=args.n_displayed
    )

    compare_strategies(
        stores_csv=stores_file,
        customers_csv=customers_file,
        num_stores=args.num_stores,
        num_customers=args.num_customers,
        seed=args.seed,
        output_dir=args.output_dir,
        config=config,
        parallel=args.parallel,
        verbose=True
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
