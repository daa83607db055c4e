# -*- coding: utf-8 -*-
"""
Restaurant API Module
Handles all restaurant/store-related functionality including:
- Restaurant class definition
- Daily inventory replenishment
- Reservation ledger
- End-of-day settlement (confirmations, cancellations, waste)
- Exposure fairness (Gini coefficient)
"""

import math
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Dict, Optional, TYPE_CHECKING

import numpy as np

from config import MAX_BAGS_PER_CUSTOMER, DEFAULT_CATEGORY

if TYPE_CHECKING:
    from customer_api import Customer

logger = logging.getLogger(__name__)


class Restaurant:
    """Represents a restaurant/store listing surprise bags in the marketplace"""

    def __init__(self, restaurant_id, name, category=DEFAULT_CATEGORY, branch=""):
        self.restaurant_id = restaurant_id
        self.name = name
        self.branch = branch
        self.category = category
        self.price = 0.0

        self.rating = 0.0

        # planning figure published by the store
        self.est_inventory = 0
        # realized bags for today, hidden from ranking until settlement
        self.actual_inventory = 0
        self.reservation_count = 0

        self.longitude = 0.0
        self.latitude = 0.0

    @property
    def unsold_bags(self) -> int:
        """Bags not yet spoken for, measured against the planning figure"""
        return max(0, self.est_inventory - self.reservation_count)

    def can_accept_reservation(self) -> bool:
        """Store is listed as long as realized bags exceed reservations"""
        return self.actual_inventory > self.reservation_count

    def reserve_order(self):
        """Take a reservation. Oversubscription is resolved at settlement."""
        self.reservation_count += 1

    def replenish(self, rng: np.random.RandomState, low: float = 0.8, high: float = 1.2):
        """Draw today's realized inventory and clear today's reservations"""
        variance = rng.uniform(low, high)
        self.actual_inventory = int(math.floor(self.est_inventory * variance))
        self.reservation_count = 0

    def apply_rating_drift(self, confirmed: int, cancelled: int,
                           confirm_step: float = 0.01, cancel_step: float = 0.05):
        """
        Nudge the rating after settlement: confirmations raise it,
        cancellations lower it. Bounded to the 1-5 star scale.
        """
        if confirmed == 0 and cancelled == 0:
            return
        new_rating = self.rating + confirm_step * confirmed - cancel_step * cancelled
        self.rating = max(1.0, min(5.0, new_rating))


class ReservationStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass
class Reservation:
    reservation_id: int
    customer: "Customer"
    restaurant: Restaurant
    timestamp: float
    status: ReservationStatus = ReservationStatus.PENDING
    bags_received: int = 0


class ReservationLedger:
    """Holds the day's pending reservations, grouped by restaurant"""

    def __init__(self):
        self._reservations: Dict[int, List[Reservation]] = {}
        self._next_id = 1

    def create(self, customer: "Customer", restaurant: Restaurant, timestamp: float) -> Reservation:
        reservation = Reservation(self._next_id, customer, restaurant, timestamp)
        self._next_id += 1
        self._reservations.setdefault(restaurant.restaurant_id, []).append(reservation)
        restaurant.reserve_order()
        return reservation

    def pending_for(self, restaurant_id: int) -> List[Reservation]:
        return [r for r in self._reservations.get(restaurant_id, [])
                if r.status == ReservationStatus.PENDING]

    def clear(self):
        self._reservations = {}

    def __len__(self):
        return sum(len(v) for v in self._reservations.values())


def initialize_day(stores: List[Restaurant], rng: np.random.RandomState,
                   low: float = 0.8, high: float = 1.2):
    """Initialize a new day: redraw realized inventory for every store"""
    for store in stores:
        store.replenish(rng, low, high)


def settle_restaurant(restaurant: Restaurant, reservations: List[Reservation],
                      max_bags_per_customer: int = MAX_BAGS_PER_CUSTOMER) -> Dict:
    """
    Allocate a store's realized bags among its pending reservations.

    Reservations are served in timestamp order.
    - no reservations: every bag is wasted
    - enough bags: everyone confirms with min(3, A // R) bags, the earliest
      reservations pick up one leftover bag each, anything still
      undistributed is wasted
    - too few bags: the earliest A reservations get one bag each, the rest
      are cancelled and nothing is wasted

    Returns a dict of the day's totals for this store.
    """
    actual_bags = restaurant.actual_inventory
    ordered = sorted(reservations, key=lambda r: r.timestamp)
    num_reservations = len(ordered)

    outcome = {
        'restaurant_id': restaurant.restaurant_id,
        'actual_bags': actual_bags,
        'reservations': num_reservations,
        'confirmed': 0,
        'sold': 0,
        'cancelled': 0,
        'waste': 0,
        'revenue': 0.0,
        'revenue_lost': 0.0
    }

    if num_reservations == 0:
        outcome['waste'] = actual_bags
        return outcome

    if actual_bags >= num_reservations:
        bags_per_customer = min(max_bags_per_customer, actual_bags // num_reservations)
        extra_bags = actual_bags - bags_per_customer * num_reservations

        for idx, reservation in enumerate(ordered):
            # at most one leftover bag per reservation
            bags = bags_per_customer + 1 if idx < extra_bags else bags_per_customer
            _confirm(reservation, bags, outcome)

        outcome['waste'] = actual_bags - outcome['sold']
    else:
        for reservation in ordered[:actual_bags]:
            _confirm(reservation, 1, outcome)
        for reservation in ordered[actual_bags:]:
            reservation.status = ReservationStatus.CANCELLED
            reservation.bags_received = 0
            outcome['cancelled'] += 1
            outcome['revenue_lost'] += restaurant.price
            reservation.customer.record_cancellation(restaurant.restaurant_id)

    return outcome


def _confirm(reservation: Reservation, bags: int, outcome: Dict):
    reservation.status = ReservationStatus.CONFIRMED
    reservation.bags_received = bags
    outcome['confirmed'] += 1
    outcome['sold'] += bags
    outcome['revenue'] += bags * reservation.restaurant.price
    reservation.customer.record_success(reservation.restaurant.restaurant_id)


def end_of_day_processing(stores: List[Restaurant], ledger: ReservationLedger,
                          max_bags_per_customer: int = MAX_BAGS_PER_CUSTOMER,
                          rating_confirm_step: float = 0.01,
                          rating_cancel_step: float = 0.05) -> Dict[int, Dict]:
    """
    Settle every store independently, apply rating drift and clear the ledger.

    Returns {store_id: settlement outcome}.
    """
    outcomes = {}
    for store in stores:
        pending = ledger.pending_for(store.restaurant_id)
        outcome = settle_restaurant(store, pending, max_bags_per_customer)
        store.apply_rating_drift(outcome['confirmed'], outcome['cancelled'],
                                 rating_confirm_step, rating_cancel_step)
        outcomes[store.restaurant_id] = outcome

        if outcome['cancelled'] > 0:
            logger.debug("%s oversubscribed: actual=%d reserved=%d cancelled=%d",
                         store.name, store.actual_inventory, outcome['reservations'],
                         outcome['cancelled'])

    ledger.clear()
    return outcomes


def calculate_gini_coefficient(values: List[float]) -> float:
    """
    Calculate Gini coefficient for inequality measurement.
    Returns 0 for perfect equality, approaching 1 as exposure concentrates.
    Zero-valued entries count: a store that was never shown is part of the
    inequality.
    """
    n = len(values)
    if n == 0:
        return 0.0

    sorted_values = np.sort(np.asarray(values, dtype=float))
    total = sorted_values.sum()
    if total == 0:
        return 0.0

    weighted_sum = np.sum(sorted_values * np.arange(1, n + 1))
    gini = (2.0 * weighted_sum) / (n * total) - (n + 1.0) / n
    return float(gini)


def load_store_data(num_stores: int = 15, seed: Optional[int] = 42) -> List[Restaurant]:
    """Generate synthetic store data around a single city centre"""
    categories = ["bakery", "cafe", "restaurant"]
    rng = np.random.RandomState(seed)

    stores = []
    for i in range(num_stores):
        store_id = i + 1
        restaurant = Restaurant(store_id, f"Store_{store_id}", rng.choice(categories),
                                branch=f"Branch_{rng.randint(1, 4)}")

        # wide variation so strategies have something to separate
        restaurant.price = round(rng.uniform(40.0, 220.0), 2)
        restaurant.rating = round(rng.uniform(3.0, 5.0), 2)
        restaurant.est_inventory = int(rng.randint(3, 21))

        restaurant.latitude = rng.uniform(30.00, 30.06)
        restaurant.longitude = rng.uniform(31.20, 31.26)

        stores.append(restaurant)

    return stores
