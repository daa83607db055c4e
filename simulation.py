# -*- coding: utf-8 -*-
"""
Simulation Module
Handles the multi-day marketplace simulation, metrics aggregation and
the side-by-side comparison of every ranking algorithm.
"""

import os
import math
import copy
import time
import logging
from typing import List, Dict, Optional, Tuple
from multiprocessing import Pool, cpu_count

import numpy as np
import pandas as pd

from config import SimulationConfig, ConfigurationError
from restaurant_api import (
    Restaurant, ReservationLedger, initialize_day, end_of_day_processing,
    calculate_gini_coefficient, load_store_data
)
from customer_api import Customer, customer_makes_decision, generate_customer
from ranking_algorithm import Algorithm, ALGORITHMS, RankingStrategy, get_strategy, available_stores
from data_loader import load_stores_from_csv, load_customers_from_csv, save_results_to_csv

logger = logging.getLogger(__name__)


def _empty_store_stats(store: Restaurant) -> Dict:
    return {
        'estimated': store.est_inventory,
        'actual_total': 0,
        'reserved': 0,
        'sold': 0,
        'cancelled': 0,
        'waste': 0,
        'revenue': 0.0,
        'revenue_lost': 0.0,
        'exposures': 0
    }


class Marketplace:
    """Marketplace structure containing one run's stores, customers, and state"""

    def __init__(self, stores: List[Restaurant], customers: List[Customer],
                 config: SimulationConfig):
        self.stores = stores
        self.customers = customers
        self.config = config
        self.store_by_id = {s.restaurant_id: s for s in stores}

        self.ledger = ReservationLedger()
        # sparse: only stores that have been displayed get an entry
        self.impression_counts: Dict[int, int] = {}
        self.store_stats = {s.restaurant_id: _empty_store_stats(s) for s in stores}

        self.day = 0
        self.total_arrivals = 0
        self.customers_who_left = 0


def simulate_customer_arrival(marketplace: Marketplace, customer: Customer,
                              strategy: RankingStrategy, rng: np.random.RandomState) -> Dict:
    """
    One customer opens the app: rank, display, decide, and record a
    reservation if they take one.
    """
    marketplace.total_arrivals += 1
    config = marketplace.config

    available = available_stores(marketplace.stores)
    store_ids = strategy.select_stores(customer, config.n_displayed, available,
                                       marketplace.impression_counts)
    displayed_stores = [marketplace.store_by_id[sid] for sid in store_ids]

    for store in displayed_stores:
        marketplace.store_stats[store.restaurant_id]['exposures'] += 1
        if not strategy.tracks_impressions:
            marketplace.impression_counts[store.restaurant_id] = \
                marketplace.impression_counts.get(store.restaurant_id, 0) + 1

    decision = customer_makes_decision(customer, displayed_stores, rng)

    if decision['action'] == 'leave':
        marketplace.customers_who_left += 1
        return decision

    store = marketplace.store_by_id[decision['store_id']]
    timestamp = marketplace.day * 1000 + rng.uniform() * 1000
    marketplace.ledger.create(customer, store, timestamp)
    customer.record_reservation(store)
    return decision


def process_end_of_day(marketplace: Marketplace) -> Dict[int, Dict]:
    """Settle every store and fold the day's outcomes into the run totals."""
    config = marketplace.config
    outcomes = end_of_day_processing(
        marketplace.stores, marketplace.ledger, config.max_bags_per_customer,
        config.rating_confirm_step, config.rating_cancel_step
    )

    for store_id, outcome in outcomes.items():
        stats = marketplace.store_stats[store_id]
        stats['reserved'] += outcome['reservations']
        stats['sold'] += outcome['sold']
        stats['cancelled'] += outcome['cancelled']
        stats['waste'] += outcome['waste']
        stats['revenue'] += outcome['revenue']
        stats['revenue_lost'] += outcome['revenue_lost']

    return outcomes


def calculate_metrics(marketplace: Marketplace, algorithm: Algorithm) -> Dict:
    """Aggregate a finished run into its headline metrics."""
    stats = marketplace.store_stats.values()
    total_sold = sum(s['sold'] for s in stats)
    total_cancelled = sum(s['cancelled'] for s in stats)
    total_unsold = sum(s['waste'] for s in stats)
    revenue_generated = sum(s['revenue'] for s in stats)
    revenue_lost = sum(s['revenue_lost'] for s in stats)

    revenue_total = revenue_generated + revenue_lost
    revenue_efficiency = (revenue_generated / revenue_total) * 100 if revenue_total > 0 else 0.0

    arrivals = marketplace.total_arrivals
    left = marketplace.customers_who_left
    conversion_rate = ((arrivals - left) / arrivals) * 100 if arrivals > 0 else 0.0

    exposures = [marketplace.impression_counts.get(s.restaurant_id, 0) for s in marketplace.stores]

    return {
        'algorithm': algorithm.value,
        'total_bags_sold': total_sold,
        'total_bags_cancelled': total_cancelled,
        'total_bags_unsold': total_unsold,
        'total_revenue_generated': revenue_generated,
        'total_revenue_lost': revenue_lost,
        'revenue_efficiency': revenue_efficiency,
        'customers_who_left': left,
        'conversion_rate': conversion_rate,
        'gini_coefficient': calculate_gini_coefficient(exposures),
        'total_customer_arrivals': arrivals
    }


def restaurant_results(marketplace: Marketplace) -> List[Dict]:
    """Per-store rows: averaged realized bags, cumulative everything else"""
    num_days = max(1, marketplace.config.num_days)
    rows = []
    for store in marketplace.stores:
        stats = marketplace.store_stats[store.restaurant_id]
        rows.append({
            'restaurant_id': store.restaurant_id,
            'restaurant': store.name,
            'estimated': stats['estimated'],
            'actual': int(math.floor(stats['actual_total'] / num_days + 0.5)),
            'reserved': stats['reserved'],
            'sold': stats['sold'],
            'cancelled': stats['cancelled'],
            'waste': stats['waste'],
            'revenue': stats['revenue'],
            'exposures': stats['exposures']
        })
    return rows


def _check_inputs(restaurants: List[Restaurant], customers: List[Customer]):
    if not restaurants:
        raise ConfigurationError("At least one restaurant is required to run a simulation")
    if not customers:
        raise ConfigurationError("At least one customer is required to run a simulation")

    # per-store totals are keyed by id, so two listings can't share one
    ids = [r.restaurant_id for r in restaurants]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate restaurant ids: {duplicates}")


def run_single_strategy_simulation(restaurants: List[Restaurant], customers: List[Customer],
                                   algorithm, config: Optional[SimulationConfig] = None,
                                   rng: Optional[np.random.RandomState] = None,
                                   seed: Optional[int] = None) -> Tuple[Dict, Dict]:
    """
    Run the full multi-day simulation for one algorithm.

    The inputs are deep-copied and customer histories reset, so the caller's
    objects are never touched and every algorithm starts from the same state.

    Args:
        algorithm: Algorithm member or its name
        rng: random stream for inventory draws, choices and timestamps
             (defaults to RandomState(seed))

    Returns:
        (result, metrics) where result is {'algorithm', 'results': per-store rows}
    """
    _check_inputs(restaurants, customers)
    algorithm = Algorithm(algorithm)
    config = config or SimulationConfig()
    if rng is None:
        rng = np.random.RandomState(seed)

    # each run starts with fresh state
    stores_copy = copy.deepcopy(restaurants)
    customers_copy = copy.deepcopy(customers)
    for customer in customers_copy:
        customer.reset_history()

    strategy = get_strategy(algorithm)
    marketplace = Marketplace(stores_copy, customers_copy, config)
    num_customers = len(customers_copy)

    for day in range(config.num_days):
        marketplace.day = day
        initialize_day(stores_copy, rng, config.inventory_variance_low, config.inventory_variance_high)
        for store in stores_copy:
            marketplace.store_stats[store.restaurant_id]['actual_total'] += store.actual_inventory

        for i in range(config.customers_per_day):
            customer = customers_copy[(day * config.customers_per_day + i) % num_customers]
            simulate_customer_arrival(marketplace, customer, strategy, rng)

        outcomes = process_end_of_day(marketplace)
        logger.debug("[%s] day %d/%d: sold=%d cancelled=%d waste=%d",
                     algorithm.value, day + 1, config.num_days,
                     sum(o['sold'] for o in outcomes.values()),
                     sum(o['cancelled'] for o in outcomes.values()),
                     sum(o['waste'] for o in outcomes.values()))

    metrics = calculate_metrics(marketplace, algorithm)
    logger.info("[%s] revenue=%.2f efficiency=%.1f%% conversion=%.1f%% gini=%.3f",
                algorithm.value, metrics['total_revenue_generated'],
                metrics['revenue_efficiency'], metrics['conversion_rate'],
                metrics['gini_coefficient'])

    result = {
        'algorithm': algorithm.value,
        'results': restaurant_results(marketplace)
    }
    return result, metrics


def _run_algorithm_worker(args):
    # module-level so it can be pickled for Pool.map
    restaurants, customers, algorithm, config, seed = args
    return run_single_strategy_simulation(restaurants, customers, algorithm, config, seed=seed)


def run_all_algorithms(restaurants: List[Restaurant], customers: List[Customer],
                       config: Optional[SimulationConfig] = None, seed: Optional[int] = None,
                       parallel: bool = False) -> Dict:
    """
    Run every algorithm in the fixed order against the same inputs and seed.

    Runs are paired by seed, not independent: every algorithm starts from an
    identical random stream, so differences come from the ranking alone.

    Returns:
        Dict with:
        - results: one {'algorithm', 'results'} entry per algorithm
        - comparison: one metrics dict per algorithm
        - seed: the seed every run used
    """
    _check_inputs(restaurants, customers)
    config = config or SimulationConfig()

    # Use time-based seed if not provided
    if seed is None:
        seed = int(time.time() * 1000) % 1000000

    run_args = [(restaurants, customers, algorithm, config, seed) for algorithm in ALGORITHMS]

    if parallel and cpu_count() > 1:
        with Pool(min(len(run_args), cpu_count())) as pool:
            runs = pool.map(_run_algorithm_worker, run_args)
    else:
        runs = []
        for args in run_args:
            logger.info("Running %s...", args[2].value)
            runs.append(_run_algorithm_worker(args))

    return {
        'results': [result for result, _ in runs],
        'comparison': [metrics for _, metrics in runs],
        'seed': seed
    }


def _print_comparison(comparison: List[Dict]):
    header = (f"{'Algorithm':<10} {'Sold':>6} {'Cancel':>7} {'Unsold':>7} {'Revenue':>12} "
              f"{'Lost':>10} {'Eff %':>7} {'Left':>6} {'Conv %':>7} {'Gini':>6}")
    print(header)
    print("-" * len(header))
    for m in comparison:
        print(f"{m['algorithm']:<10} {m['total_bags_sold']:>6} {m['total_bags_cancelled']:>7} "
              f"{m['total_bags_unsold']:>7} {m['total_revenue_generated']:>12.2f} "
              f"{m['total_revenue_lost']:>10.2f} {m['revenue_efficiency']:>7.2f} "
              f"{m['customers_who_left']:>6} {m['conversion_rate']:>7.2f} "
              f"{m['gini_coefficient']:>6.3f}")

    best_revenue = max(comparison, key=lambda m: m['total_revenue_generated'])
    least_waste = min(comparison, key=lambda m: m['total_bags_unsold'])
    fairest = min(comparison, key=lambda m: m['gini_coefficient'])
    print()
    print(f"Highest revenue: {best_revenue['algorithm']}")
    print(f"Least waste:     {least_waste['algorithm']}")
    print(f"Fairest exposure: {fairest['algorithm']}")


def compare_strategies(stores_csv: Optional[str] = None, customers_csv: Optional[str] = None,
                       num_stores: int = 15, num_customers: int = 70, seed: Optional[int] = None,
                       output_dir: str = "simulation_results",
                       config: Optional[SimulationConfig] = None,
                       parallel: bool = False, verbose: bool = True) -> Dict:
    """
    Load (or generate) stores and customers, run every algorithm and write
    the comparison to output_dir.

    Files written:
    - strategy_comparison.csv: one metrics row per algorithm
    - <algorithm>_restaurant_results.csv: per-store rows for each algorithm
    """
    config = config or SimulationConfig()

    # Use time-based seed if not provided (ensures different results each run)
    if seed is None:
        seed = int(time.time() * 1000) % 1000000

    if verbose:
        print("=" * 90)
        print(f"COMPARING RANKING ALGORITHMS ({len(ALGORITHMS)}-WAY)")
        print(f"Random Seed: {seed}, Days: {config.num_days}, "
              f"Customers/Day: {config.customers_per_day}")
        print("=" * 90)
        print()

    if stores_csv:
        if verbose:
            print(f"Loading stores from {stores_csv}...")
        stores = load_stores_from_csv(stores_csv)
    else:
        if verbose:
            print(f"Generating {num_stores} stores...")
        stores = load_store_data(num_stores, seed=seed)

    if customers_csv:
        if verbose:
            print(f"Loading customers from {customers_csv}...")
        customers = load_customers_from_csv(customers_csv)
    else:
        if verbose:
            print(f"Generating {num_customers} customers...")
        customers = generate_customer(num_customers, seed=seed)

    if verbose:
        print(f"  Stores: {len(stores)}, Customers: {len(customers)}, n={config.n_displayed}")
        print()

    outcome = run_all_algorithms(stores, customers, config=config, seed=seed, parallel=parallel)

    os.makedirs(output_dir, exist_ok=True)

    comparison_file = os.path.join(output_dir, "strategy_comparison.csv")
    save_results_to_csv(outcome['comparison'], comparison_file)

    output_files = [comparison_file]
    for result in outcome['results']:
        store_file = os.path.join(output_dir, f"{result['algorithm'].lower()}_restaurant_results.csv")
        save_results_to_csv(result['results'], store_file)
        output_files.append(store_file)

    if verbose:
        print(f"\n{'=' * 90}")
        print("STRATEGY COMPARISON COMPLETE")
        print(f"{'=' * 90}")
        _print_comparison(outcome['comparison'])
        print(f"\nOutput Files:")
        for i, path in enumerate(output_files, 1):
            print(f"  {i}. {path}")
        print(f"{'=' * 90}\n")

    outcome['comparison_df'] = pd.DataFrame(outcome['comparison'])
    outcome['output_files'] = output_files
    return outcome
