import numpy as np
import pytest

from restaurant_api import (
    ReservationLedger, ReservationStatus, settle_restaurant, end_of_day_processing,
    initialize_day
)
from conftest import make_store, make_customer


def _reserve(ledger, store, count):
    reservations = []
    for i in range(count):
        customer = make_customer(i + 1)
        customer.record_reservation(store)
        # later arrivals get later timestamps
        reservations.append(ledger.create(customer, store, timestamp=float(i)))
    return reservations


def test_no_reservations_wastes_everything():
    store = make_store(1, actual=7)
    outcome = settle_restaurant(store, [])
    assert outcome['waste'] == 7
    assert outcome['sold'] == 0
    assert outcome['revenue'] == 0.0


def test_leftover_bag_goes_to_earliest_reservation():
    store = make_store(1, price=50.0, actual=10)
    ledger = ReservationLedger()
    reservations = _reserve(ledger, store, 3)

    outcome = settle_restaurant(store, ledger.pending_for(1))

    assert [r.bags_received for r in reservations] == [4, 3, 3]
    assert all(r.status == ReservationStatus.CONFIRMED for r in reservations)
    assert outcome['sold'] == 10
    assert outcome['waste'] == 0
    assert outcome['revenue'] == pytest.approx(500.0)


def test_settlement_serves_by_timestamp_not_insertion_order():
    store = make_store(1, actual=2)
    ledger = ReservationLedger()
    late = ledger.create(make_customer(1), store, timestamp=900.0)
    early = ledger.create(make_customer(2), store, timestamp=100.0)
    settle_restaurant(store, ledger.pending_for(1))
    assert early.bags_received == 2
    assert late.bags_received == 0
    assert late.status == ReservationStatus.CANCELLED


def test_base_share_is_capped_and_rest_is_wasted():
    store = make_store(1, actual=20)
    ledger = ReservationLedger()
    reservations = _reserve(ledger, store, 2)

    outcome = settle_restaurant(store, ledger.pending_for(1))

    assert [r.bags_received for r in reservations] == [4, 4]
    assert outcome['waste'] == 12


def test_oversubscription_cancels_latest_reservations():
    store = make_store(1, price=80.0, actual=2)
    ledger = ReservationLedger()
    reservations = _reserve(ledger, store, 5)

    outcome = settle_restaurant(store, ledger.pending_for(1))

    assert [r.status for r in reservations] == (
        [ReservationStatus.CONFIRMED] * 2 + [ReservationStatus.CANCELLED] * 3
    )
    assert outcome['sold'] == 2
    assert outcome['cancelled'] == 3
    assert outcome['waste'] == 0
    assert outcome['revenue_lost'] == pytest.approx(240.0)
    assert reservations[4].customer.history.cancellations == 1
    assert reservations[0].customer.history.successes == 1


@pytest.mark.parametrize("actual,count", [(0, 0), (5, 0), (10, 3), (9, 9), (2, 5), (30, 4)])
def test_every_bag_is_sold_or_wasted(actual, count):
    store = make_store(1, actual=actual)
    ledger = ReservationLedger()
    _reserve(ledger, store, count)
    outcome = settle_restaurant(store, ledger.pending_for(1))
    assert outcome['sold'] + outcome['waste'] == actual
    assert outcome['confirmed'] + outcome['cancelled'] == count


def test_end_of_day_applies_rating_drift_and_clears_ledger():
    good = make_store(1, rating=4.0, actual=10)
    bad = make_store(2, rating=4.0, actual=1)
    ledger = ReservationLedger()
    _reserve(ledger, good, 2)
    _reserve(ledger, bad, 3)

    outcomes = end_of_day_processing([good, bad], ledger)

    assert good.rating == pytest.approx(4.02)
    assert bad.rating == pytest.approx(4.0 + 0.01 - 0.10)
    assert outcomes[2]['cancelled'] == 2
    assert len(ledger) == 0


def test_rating_stays_on_star_scale():
    store = make_store(1, rating=1.02)
    store.apply_rating_drift(confirmed=0, cancelled=10)
    assert store.rating == 1.0
    store.rating = 4.995
    store.apply_rating_drift(confirmed=10, cancelled=0)
    assert store.rating == 5.0


def test_replenish_redraws_inventory_and_resets_reservations():
    stores = [make_store(1, est=10), make_store(2, est=0)]
    stores[0].reservation_count = 4
    initialize_day(stores, np.random.RandomState(1))
    assert 8 <= stores[0].actual_inventory <= 12
    assert stores[0].reservation_count == 0
    assert stores[1].actual_inventory == 0
    assert not stores[1].can_accept_reservation()


def test_reservation_makes_store_unavailable_once_full():
    store = make_store(1, est=10, actual=1)
    ledger = ReservationLedger()
    assert store.can_accept_reservation()
    ledger.create(make_customer(), store, 0.0)
    assert not store.can_accept_reservation()
    assert store.unsold_bags == 9
