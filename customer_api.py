# -*- coding: utf-8 -*-
"""
Customer API Module
Handles all customer-related functionality including:
- Customer class definition and reservation history
- Customer generation
- Customer/store compatibility scoring
- Store selection and decision making
"""

import math
from dataclasses import dataclass, field
from typing import List, Dict, Optional

import numpy as np
from scipy.special import softmax

from config import (
    MAX_TRAVEL_DISTANCE, DEFAULT_SEGMENT, DEFAULT_WILLINGNESS_TO_PAY, DEFAULT_LOYALTY,
    DEFAULT_LEAVING_THRESHOLD, DEFAULT_LATITUDE, DEFAULT_LONGITUDE, DEFAULT_WEIGHTS,
    DEFAULT_CATEGORY_PREFERENCE, SEGMENTS
)
from restaurant_api import Restaurant

# Score given to stores beyond travel range; always below any real score
OUT_OF_RANGE_SCORE = -100.0


@dataclass
class StoreInteraction:
    reservations: int = 0
    successes: int = 0
    cancellations: int = 0

    @property
    def success_rate(self) -> float:
        return self.successes / self.reservations if self.reservations > 0 else 0.0

    @property
    def cancel_rate(self) -> float:
        return self.cancellations / self.reservations if self.reservations > 0 else 0.0


@dataclass
class CustomerHistory:
    visits: int = 0
    reservations: int = 0
    successes: int = 0
    cancellations: int = 0
    categories_reserved: Dict[str, int] = field(default_factory=dict)
    # sparse: keyed by restaurant id
    store_interactions: Dict[int, StoreInteraction] = field(default_factory=dict)


class Customer:
    """Represents a customer in the marketplace"""

    def __init__(self, customer_id: int, name: str = None):
        self.customer_id = customer_id
        self.name = name or f"Customer {customer_id}"

        self.latitude = DEFAULT_LATITUDE
        self.longitude = DEFAULT_LONGITUDE

        # Behavioral profile
        self.segment = DEFAULT_SEGMENT  # 'budget', 'premium' or 'regular'
        self.willingness_to_pay = DEFAULT_WILLINGNESS_TO_PAY
        self.weights = dict(DEFAULT_WEIGHTS)
        self.loyalty = DEFAULT_LOYALTY
        self.leaving_threshold = DEFAULT_LEAVING_THRESHOLD

        # Store-specific valuations (store_id -> valuation) and category tastes
        self.store_valuations: Dict[int, float] = {}
        self.category_preference: Dict[str, float] = dict(DEFAULT_CATEGORY_PREFERENCE)

        self.history = CustomerHistory()
        self.churned = False

    def reset_history(self):
        """Forget everything learned in a previous run"""
        self.history = CustomerHistory()
        self.churned = False

    def interaction(self, store_id: int) -> Optional[StoreInteraction]:
        return self.history.store_interactions.get(store_id)

    def has_tried(self, store_id: int) -> bool:
        """True once the customer has reserved at this store"""
        hist = self.interaction(store_id)
        return hist is not None and hist.reservations > 0

    def record_reservation(self, store: Restaurant):
        self.history.visits += 1
        self.history.reservations += 1
        hist = self.history.store_interactions.setdefault(store.restaurant_id, StoreInteraction())
        hist.reservations += 1
        count = self.history.categories_reserved.get(store.category, 0)
        self.history.categories_reserved[store.category] = count + 1

    def record_success(self, store_id: int):
        self.history.successes += 1
        if store_id in self.history.store_interactions:
            self.history.store_interactions[store_id].successes += 1

    def record_cancellation(self, store_id: int):
        self.history.cancellations += 1
        if store_id in self.history.store_interactions:
            self.history.store_interactions[store_id].cancellations += 1


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Flat Euclidean distance in coordinate units"""
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    return math.sqrt(dlat * dlat + dlon * dlon)


def distance_to(customer: Customer, store: Restaurant) -> float:
    return calculate_distance(customer.latitude, customer.longitude, store.latitude, store.longitude)


def is_in_range(customer: Customer, store: Restaurant) -> bool:
    return distance_to(customer, store) <= MAX_TRAVEL_DISTANCE


def calculate_store_score(customer: Customer, store: Restaurant) -> float:
    """
    Base compatibility between a customer and a store.

    Additive model:
        rating_w * rating
      + price_w * (willingness_to_pay - price) / willingness_to_pay
      + novelty_w * (1 for an untried category, else 1 / (1 + times reserved))
      + (1 - distance / MAX_TRAVEL_DISTANCE) * 1.5

    Stores beyond MAX_TRAVEL_DISTANCE are excluded with OUT_OF_RANGE_SCORE.
    """
    distance = distance_to(customer, store)
    if distance > MAX_TRAVEL_DISTANCE:
        return OUT_OF_RANGE_SCORE

    weights = customer.weights
    rating_score = weights.get('rating_w', 1.0) * store.rating

    wtp = customer.willingness_to_pay
    price_score = 0.0
    if wtp > 0:
        price_score = weights.get('price_w', 1.0) * (wtp - store.price) / wtp

    category_count = customer.history.categories_reserved.get(store.category, 0)
    novelty = 1.0 if category_count == 0 else 1.0 / (1.0 + category_count)
    novelty_score = weights.get('novelty_w', 0.5) * novelty

    distance_score = (1.0 - distance / MAX_TRAVEL_DISTANCE) * 1.5

    return rating_score + price_score + novelty_score + distance_score


class CustomerDecisionModel:
    """
    Threshold-then-softmax choice model.
    The customer first checks whether anything on screen clears their bar,
    then picks among the options that do, with better options more likely.
    """

    def __init__(self):
        self.params = {
            'loyalty_threshold_weight': 2.0,  # lower loyalty raises the bar
            'success_weight': 1.5,
            'cancel_weight': 2.0,
            'inventory_safety_bags': 12.0,
            'inventory_safety_weight': 0.3,
            'sanity_floor': -50.0,  # catches out-of-range sentinels
            'temperature': 2.0
        }

    def threshold(self, customer: Customer) -> float:
        return customer.leaving_threshold + (1.0 - customer.loyalty) * self.params['loyalty_threshold_weight']

    def adjust_score(self, customer: Customer, store: Restaurant, score: float) -> float:
        """Fold in the customer's track record with this store and its stock safety"""
        hist = customer.interaction(store.restaurant_id)
        if hist and hist.reservations > 0:
            score += hist.success_rate * self.params['success_weight']
            if hist.cancellations > 0:
                score -= hist.cancel_rate * self.params['cancel_weight']

        inventory_safety = min(1.0, store.est_inventory / self.params['inventory_safety_bags'])
        score += inventory_safety * self.params['inventory_safety_weight']
        return score

    def make_choice(self, customer: Customer, displayed_stores: List[Restaurant],
                    rng: np.random.RandomState) -> Optional[Restaurant]:
        """
        Returns:
            Restaurant the customer reserves at, None if the customer leaves
        """
        if not displayed_stores:
            return None

        scores = [calculate_store_score(customer, store) for store in displayed_stores]
        threshold = self.threshold(customer)

        # If even the best option is too poor, customer leaves
        if max(scores) < threshold:
            return None

        candidates = []
        candidate_scores = []
        for store, score in zip(displayed_stores, scores):
            adjusted = self.adjust_score(customer, store, score)
            if adjusted >= threshold and adjusted > self.params['sanity_floor']:
                candidates.append(store)
                candidate_scores.append(adjusted)

        if not candidates:
            return None

        values = np.asarray(candidate_scores, dtype=float)
        shifted = values - values.min() + 1.0
        probabilities = softmax(shifted / self.params['temperature'])

        random_val = rng.uniform()
        cumulative = 0.0
        for store, prob in zip(candidates, probabilities):
            cumulative += prob
            if random_val <= cumulative:
                return store

        # floating point edge: probabilities summed just under 1
        return candidates[-1]


# Global decision model instance (stateless apart from its parameters)
_decision_model = CustomerDecisionModel()


def customer_makes_decision(customer: Customer, displayed_stores: List[Restaurant],
                            rng: np.random.RandomState) -> Dict:
    """
    Customer decides between reserving at one of the displayed stores and leaving.

    Returns:
        Dict with 'action' ('reserve' or 'leave') and 'store_id' (if reserve)
    """
    chosen_store = _decision_model.make_choice(customer, displayed_stores, rng)

    if chosen_store is None:
        customer.churned = True
        return {
            'action': 'leave',
            'store_id': None
        }
    return {
        'action': 'reserve',
        'store_id': chosen_store.restaurant_id
    }


# Segment profiles used for synthetic customers
SEGMENT_PROFILES = {
    'budget': {'wtp': (80.0, 150.0), 'weights': {'rating_w': 0.8, 'price_w': 1.5, 'novelty_w': 0.4}},
    'premium': {'wtp': (200.0, 350.0), 'weights': {'rating_w': 1.3, 'price_w': 0.6, 'novelty_w': 0.5}},
    'regular': {'wtp': (150.0, 250.0), 'weights': dict(DEFAULT_WEIGHTS)}
}


def generate_customer(k: int, seed: Optional[int] = None) -> List[Customer]:
    """
    Generate k customers spread over the same city area as load_store_data,
    with a mix of segments so strategies have meaningful differences to work with.
    """
    rng = np.random.RandomState(seed)

    customers = []
    for i in range(k):
        customer = Customer(i + 1)
        segment = rng.choice(SEGMENTS, p=[0.35, 0.2, 0.45])
        profile = SEGMENT_PROFILES[segment]

        customer.segment = str(segment)
        customer.willingness_to_pay = round(rng.uniform(*profile['wtp']), 2)
        customer.weights = dict(profile['weights'])
        customer.loyalty = round(rng.uniform(0.5, 1.0), 3)
        customer.leaving_threshold = round(rng.uniform(2.5, 4.0), 3)
        customer.category_preference = {
            cat: round(rng.uniform(0.0, 1.5), 3) for cat in DEFAULT_CATEGORY_PREFERENCE
        }

        customer.latitude = rng.uniform(30.00, 30.06)
        customer.longitude = rng.uniform(31.20, 31.26)

        customers.append(customer)
    return customers
