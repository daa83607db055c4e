import pytest

from restaurant_api import Restaurant
from customer_api import Customer


def make_store(store_id, rating=4.0, price=100.0, est=10, lat=30.0, lon=31.2,
               category="restaurant", actual=None):
    store = Restaurant(store_id, f"Store {store_id}", category)
    store.rating = rating
    store.price = price
    store.est_inventory = est
    store.actual_inventory = est if actual is None else actual
    store.latitude = lat
    store.longitude = lon
    return store


def make_customer(customer_id=1, lat=30.0, lon=31.2, segment="regular", wtp=200.0,
                  loyalty=0.8, threshold=3.0):
    customer = Customer(customer_id)
    customer.latitude = lat
    customer.longitude = lon
    customer.segment = segment
    customer.willingness_to_pay = wtp
    customer.loyalty = loyalty
    customer.leaving_threshold = threshold
    return customer


@pytest.fixture
def customer():
    return make_customer()


@pytest.fixture
def stores():
    # all within travel range of (30.0, 31.2); store 1 is the nearest
    return [
        make_store(1, rating=3.5, price=60.0, est=12, lat=30.001, lon=31.2),
        make_store(2, rating=4.8, price=150.0, est=8, lat=30.010, lon=31.2),
        make_store(3, rating=4.2, price=90.0, est=15, lat=30.020, lon=31.2),
        make_store(4, rating=3.9, price=120.0, est=5, lat=30.005, lon=31.21),
        make_store(5, rating=4.5, price=80.0, est=20, lat=30.015, lon=31.21),
        make_store(6, rating=4.0, price=200.0, est=10, lat=30.030, lon=31.22),
        make_store(7, rating=3.2, price=50.0, est=18, lat=30.025, lon=31.205),
    ]
