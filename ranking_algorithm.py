# -*- coding: utf-8 -*-
"""
Ranking Algorithm Module
Handles store selection and ranking strategies for displaying stores to customers.

Every strategy takes the currently available stores and returns an ordered
shortlist of at most n distinct store ids. The set of strategies is closed:
one class per Algorithm member.
"""

import math
from enum import Enum
from typing import List, Dict, Tuple

from restaurant_api import Restaurant
from customer_api import Customer, calculate_store_score, distance_to, is_in_range


class Algorithm(str, Enum):
    BASELINE = "BASELINE"
    SAMA = "SAMA"
    ANDREW = "ANDREW"
    AMER = "AMER"
    ZIAD = "ZIAD"
    HARMONY = "HARMONY"


# Fixed comparison order
ALGORITHMS: List[Algorithm] = list(Algorithm)

# Registry for strategies
STRATEGY_REGISTRY: Dict[Algorithm, type] = {}


def register_strategy(algorithm: Algorithm):
    """Decorator binding a strategy class to its algorithm."""
    def decorator(cls):
        STRATEGY_REGISTRY[algorithm] = cls
        return cls
    return decorator


def get_strategy(algorithm) -> "RankingStrategy":
    """Instantiate the strategy for an Algorithm (or its name)."""
    return STRATEGY_REGISTRY[Algorithm(algorithm)]()


def available_stores(stores: List[Restaurant]) -> List[Restaurant]:
    return [s for s in stores if s.can_accept_reservation()]


def _rank(scored: List[Tuple[float, Restaurant]]) -> List[Tuple[float, Restaurant]]:
    # ties go to the lower store id
    return sorted(scored, key=lambda x: (x[0], -x[1].restaurant_id), reverse=True)


class RankingStrategy:
    """Abstract base class for ranking strategies."""

    # True when the strategy bumps impression counts itself
    tracks_impressions = False

    def select_stores(self, customer: Customer, n: int, all_stores: List[Restaurant],
                      impression_counts: Dict[int, int]) -> List[int]:
        """Return up to n store ids to display to customer, best first"""
        raise NotImplementedError


@register_strategy(Algorithm.BASELINE)
class BaselineStrategy(RankingStrategy):
    """Highest rated stores first. No personalization."""

    def select_stores(self, customer: Customer, n: int, all_stores: List[Restaurant],
                      impression_counts: Dict[int, int]) -> List[int]:
        available = available_stores(all_stores)
        ranked = _rank([(s.rating, s) for s in available])
        return [s.restaurant_id for _, s in ranked[:n]]


# segment-specific weights for SamaStrategy
SAMA_SEGMENT_WEIGHTS = {
    'budget': {'rating': 0.8, 'inventory': 0.8, 'personalization': 0.7},
    'premium': {'rating': 1.5, 'inventory': 0.5, 'personalization': 0.5},
    'regular': {'rating': 1.0, 'inventory': 0.6, 'personalization': 0.6}
}


@register_strategy(Algorithm.SAMA)
class SamaStrategy(RankingStrategy):
    """
    Segment-aware personalization with waste pressure.

    1. Score every store: base score plus bonuses for inventory urgency,
       rating quality, affordability, the customer's track record with the
       store, category taste, waste magnitude and revenue potential.
    2. Keep the top share of that ranking, sized by segment and loyalty and
       shrunk when the whole market is sitting on unsold stock.
    3. Add one quality store the customer has never reserved at.
    4. Add one price-competitive store.
    5. Fill the rest from the step 1 ranking.
    """

    def select_stores(self, customer: Customer, n: int, all_stores: List[Restaurant],
                      impression_counts: Dict[int, int]) -> List[int]:
        available = available_stores(all_stores)
        if not available:
            return []

        segment = customer.segment if customer.segment in SAMA_SEGMENT_WEIGHTS else 'regular'
        weights = SAMA_SEGMENT_WEIGHTS[segment]

        ranked = _rank([(self.score(customer, s, weights), s) for s in available])

        result: List[int] = []
        selected = set()

        def add(store: Restaurant):
            result.append(store.restaurant_id)
            selected.add(store.restaurant_id)

        # personalized slots
        personalized_count = self.personalized_count(customer, n, all_stores, weights)
        for _, store in ranked[:min(personalized_count, n)]:
            add(store)

        # discovery slot
        if len(result) < n:
            discovery = []
            for store in available:
                if store.restaurant_id in selected or customer.has_tried(store.restaurant_id):
                    continue
                quality = self.discovery_score(customer, store, segment)
                if quality is not None:
                    discovery.append((quality, store))
            if discovery:
                add(_rank(discovery)[0][1])

        # price-competitive slot
        if len(result) < n:
            competitive = []
            for store in available:
                if store.restaurant_id in selected:
                    continue
                score = self.competitive_score(customer, store, segment)
                if score is not None:
                    competitive.append((score, store))
            if competitive:
                add(_rank(competitive)[0][1])

        for _, store in ranked:
            if len(result) >= n:
                break
            if store.restaurant_id not in selected:
                add(store)

        return result

    def score(self, customer: Customer, store: Restaurant, weights: Dict[str, float]) -> float:
        base_score = calculate_store_score(customer, store)

        unsold = store.unsold_bags
        urgency = min(1.0, unsold / 15.0)
        inventory_bonus = urgency * 1.2 * weights['inventory']

        rating_bonus = max(0.0, (store.rating - 3.5) * 0.3 * weights['rating'])

        wtp = customer.willingness_to_pay
        price_bonus = 0.0
        if customer.segment == 'budget' and store.price < wtp:
            price_bonus = ((wtp - store.price) / wtp) * 0.4
        elif customer.segment == 'premium' and store.price > 100:
            price_bonus = 0.1

        history_bonus = 0.0
        hist = customer.interaction(store.restaurant_id)
        if hist and hist.reservations > 0:
            history_bonus = hist.success_rate * 0.5 - hist.cancel_rate * 1.0

        category_bonus = customer.category_preference.get(store.category, 0.0) * 0.2

        waste_bonus = 0.0
        if unsold > 5:
            waste_bonus = min(2.0, unsold / 5.0) * 0.5

        revenue_bonus = (store.price * urgency / 200.0) * 0.3

        return (base_score + inventory_bonus + rating_bonus + price_bonus +
                history_bonus + category_bonus + waste_bonus + revenue_bonus)

    def personalized_count(self, customer: Customer, n: int, all_stores: List[Restaurant],
                           weights: Dict[str, float]) -> int:
        ratio = weights['personalization'] + customer.loyalty * 0.15

        # market-wide waste pressure: average unsold over stores that have any
        unsold = [s.unsold_bags for s in all_stores if s.unsold_bags > 0]
        avg_unsold = sum(unsold) / len(unsold) if unsold else 0.0
        if avg_unsold > 10:
            ratio -= 0.1

        ratio = min(0.85, max(0.4, ratio))
        return min(n, max(3, int(math.floor(n * ratio))))

    def discovery_score(self, customer: Customer, store: Restaurant, segment: str):
        """Quality score for an untried store, None if it fails the segment gate"""
        price = max(1e-3, store.price)
        wtp = customer.willingness_to_pay
        value_ratio = store.rating / price
        unsold_bonus = min(1.0, store.unsold_bags / 10.0)
        inventory_safety = min(1.0, store.est_inventory / 15.0)

        if store.est_inventory < 8:
            return None

        if segment == 'budget':
            if store.price > wtp * 1.1 or store.rating < 3.8:
                return None
            affordability = (wtp - store.price) / wtp if wtp > 0 else 0.0
            return (value_ratio * 15.0 + affordability * 2.0 + inventory_safety * 0.5 +
                    store.rating * 0.3 + unsold_bonus * 0.8)
        if segment == 'premium':
            if store.rating < 4.0:
                return None
            return (store.rating * 1.5 + value_ratio * 10.0 + inventory_safety * 0.5 +
                    unsold_bonus * 0.6)
        if store.rating < 3.9:
            return None
        return store.rating + value_ratio * 10.0 + inventory_safety * 0.5 + unsold_bonus * 0.7

    def competitive_score(self, customer: Customer, store: Restaurant, segment: str):
        """Value-for-money score, None if the store isn't price competitive"""
        if store.est_inventory < 8:
            return None

        wtp = customer.willingness_to_pay
        value_ratio = store.rating / max(1e-3, store.price)
        inventory_safety = min(1.0, store.est_inventory / 15.0)

        if segment == 'budget':
            if store.price > wtp * 1.1 or value_ratio <= 0.025:
                return None
            affordability = (wtp - store.price) / wtp if wtp > 0 else 0.0
            return (value_ratio * 120.0 + affordability * 3.0 + inventory_safety * 0.5 +
                    store.rating * 0.3)
        if segment == 'premium':
            if value_ratio <= 0.03 or store.rating < 3.8:
                return None
            return value_ratio * 100.0 + inventory_safety * 0.5 + store.rating * 0.8
        if value_ratio <= 0.03:
            return None
        return value_ratio * 100.0 + inventory_safety * 0.5 + store.rating * 0.5


@register_strategy(Algorithm.ANDREW)
class AndrewStrategy(RankingStrategy):
    """Base score damped by log exposure, so over-shown stores sink."""

    def select_stores(self, customer: Customer, n: int, all_stores: List[Restaurant],
                      impression_counts: Dict[int, int]) -> List[int]:
        scored = []
        for store in available_stores(all_stores):
            impressions = impression_counts.get(store.restaurant_id, 0)
            damping = math.log(impressions + 1) + 1
            scored.append((calculate_store_score(customer, store) / damping, store))
        return [s.restaurant_id for _, s in _rank(scored)[:n]]


@register_strategy(Algorithm.AMER)
class AmerStrategy(RankingStrategy):
    """Nearest in-range store always first, the rest by score net of price and distance."""

    def select_stores(self, customer: Customer, n: int, all_stores: List[Restaurant],
                      impression_counts: Dict[int, int]) -> List[int]:
        in_range = [s for s in available_stores(all_stores) if is_in_range(customer, s)]
        if not in_range:
            return []

        closest = min(in_range, key=lambda s: distance_to(customer, s))
        result = [closest.restaurant_id]

        scored = []
        for store in in_range:
            if store is closest:
                continue
            score = (calculate_store_score(customer, store)
                     - store.price * 0.01
                     - distance_to(customer, store) * 20.0)
            scored.append((score, store))

        for _, store in _rank(scored)[:max(0, n - 1)]:
            result.append(store.restaurant_id)
        return result[:n]


@register_strategy(Algorithm.ZIAD)
class ZiadStrategy(RankingStrategy):
    """Linear price/rating/unsold score over in-range stores, never more than five."""

    price_weight = -0.01
    rating_weight = 1.5
    unsold_weight = 0.1

    def select_stores(self, customer: Customer, n: int, all_stores: List[Restaurant],
                      impression_counts: Dict[int, int]) -> List[int]:
        scored = []
        for store in available_stores(all_stores):
            if not is_in_range(customer, store):
                continue
            score = (self.price_weight * store.price +
                     self.rating_weight * store.rating +
                     self.unsold_weight * store.unsold_bags)
            scored.append((score, store))
        return [s.restaurant_id for _, s in _rank(scored)[:min(n, 5)]]


@register_strategy(Algorithm.HARMONY)
class HarmonyStrategy(RankingStrategy):
    """
    Balances satisfaction, waste, fairness and revenue over in-range stores.

    70% of the slots go straight to the best scores, then one high-waste
    store, then one untried quality store, then backfill. Counts its own
    impressions for the stores it returns.
    """

    tracks_impressions = True

    def select_stores(self, customer: Customer, n: int, all_stores: List[Restaurant],
                      impression_counts: Dict[int, int]) -> List[int]:
        in_range = [s for s in available_stores(all_stores) if is_in_range(customer, s)]
        if not in_range:
            return []

        if impression_counts:
            avg_impressions = sum(impression_counts.values()) / len(impression_counts)
        else:
            avg_impressions = 1.0

        ranked = _rank([(self.score(customer, s, impression_counts, avg_impressions), s)
                        for s in in_range])

        result: List[int] = []
        selected = set()

        def add(store: Restaurant):
            result.append(store.restaurant_id)
            selected.add(store.restaurant_id)

        direct_slots = int(math.floor(n * 0.7))
        for _, store in ranked[:direct_slots]:
            add(store)

        # one high-waste store
        if len(result) < n:
            for _, store in ranked:
                if store.restaurant_id not in selected and store.unsold_bags >= 10:
                    add(store)
                    break

        # one discovery store
        if len(result) < n:
            for _, store in ranked:
                if store.restaurant_id in selected or customer.has_tried(store.restaurant_id):
                    continue
                if store.rating >= 3.8 and store.est_inventory >= 6:
                    add(store)
                    break

        for _, store in ranked:
            if len(result) >= n:
                break
            if store.restaurant_id not in selected:
                add(store)

        for store_id in result:
            impression_counts[store_id] = impression_counts.get(store_id, 0) + 1

        return result

    def score(self, customer: Customer, store: Restaurant,
              impression_counts: Dict[int, int], avg_impressions: float) -> float:
        base_score = calculate_store_score(customer, store)

        satisfaction = 0.0
        if customer.segment == 'premium' and store.rating >= 4.0:
            satisfaction = 0.5
        elif customer.segment == 'budget' and store.price <= customer.willingness_to_pay:
            satisfaction = 0.4
        elif customer.segment == 'regular' and store.rating >= 3.8:
            satisfaction = 0.3

        hist = customer.interaction(store.restaurant_id)
        if hist and hist.successes > 0:
            satisfaction += hist.success_rate * 0.3

        unsold = store.unsold_bags
        waste_bonus = unsold * 0.08
        if unsold > 12:
            waste_bonus += 0.6

        impressions = impression_counts.get(store.restaurant_id, 0)
        fairness = 0.0
        if impressions < avg_impressions * 0.5:
            fairness = 0.8
        elif impressions > avg_impressions * 1.5:
            fairness = -0.4

        inventory_safety = min(1.0, store.est_inventory / 10.0)
        revenue_bonus = (store.price / 100.0) * inventory_safety * 0.3

        quality_penalty = -1.5 if store.est_inventory < 5 else 0.0

        return base_score + satisfaction + waste_bonus + fairness + revenue_bonus + quality_penalty
