# -*- coding: utf-8 -*-
"""
Data Loader Module
Handles loading stores and customers from CSV files (or already-parsed
records) and saving simulation results back to CSV.

Column names vary between data exports, so every field is looked up
through a list of accepted aliases. Missing or unparseable cells fall back
to the defaults in config.py rather than failing the load.
"""

import re
import math
from typing import List, Dict, Optional, Any

import pandas as pd

from config import (
    DEFAULT_ESTIMATED_BAGS, DEFAULT_RATING, DEFAULT_PRICE, DEFAULT_WILLINGNESS_TO_PAY,
    DEFAULT_LEAVING_THRESHOLD, DEFAULT_LONGITUDE, DEFAULT_LATITUDE, DEFAULT_CATEGORY,
    DEFAULT_SEGMENT, DEFAULT_LOYALTY, SEGMENTS
)
from restaurant_api import Restaurant
from customer_api import Customer

STORE_ID_COLUMNS = ['store_id', 'id']
STORE_NAME_COLUMNS = ['store_name', 'name', 'business_name']
ESTIMATED_BAGS_COLUMNS = ['average_bags_at_9AM', 'average_bags', 'estimated_bags', 'bags']
RATING_COLUMNS = ['average_overall_rating', 'rating', 'overall_rating']
PRICE_COLUMNS = ['price', 'price_per_bag']
LONGITUDE_COLUMNS = ['longitude', 'lon']
LATITUDE_COLUMNS = ['latitude', 'lat']
CATEGORY_COLUMNS = ['business_type', 'type']
CUSTOMER_ID_COLUMNS = ['Customer_ID', 'CustomerID', 'customerid', 'id']


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _first_present(row: Dict, columns: List[str]) -> Any:
    """Value of the first alias present in row with a non-empty cell"""
    for col in columns:
        if col in row and not _is_missing(row[col]):
            return row[col]
    return None


def _to_float(value: Any, default: float) -> float:
    if _is_missing(value):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    # inf and nan count as unparseable
    return result if math.isfinite(result) else default


def _to_int(value: Any, default: int) -> int:
    # "12.0" and 12.7 both count as 12, like a bag count column read as float
    result = _to_float(value, None)
    if result is None:
        return default
    return int(result)


def restaurants_from_records(records: List[Dict]) -> List[Restaurant]:
    """
    Build Restaurant objects from row dicts.

    Recognised columns (first alias found wins):
    - store_id | id (defaults to the 1-based row position)
    - store_name | name | business_name (defaults to "Store <id>")
    - branch
    - average_bags_at_9AM | average_bags | estimated_bags | bags
    - average_overall_rating | rating | overall_rating
    - price | price_per_bag
    - longitude | lon, latitude | lat
    - business_type | type
    """
    restaurants = []
    for idx, row in enumerate(records):
        store_id = _to_int(_first_present(row, STORE_ID_COLUMNS), idx + 1)
        name = _first_present(row, STORE_NAME_COLUMNS)
        name = str(name) if name is not None else f"Store {store_id}"
        branch = row.get('branch')
        category = _first_present(row, CATEGORY_COLUMNS)

        restaurant = Restaurant(store_id, name,
                                str(category) if category is not None else DEFAULT_CATEGORY,
                                branch=str(branch) if not _is_missing(branch) else "")
        restaurant.est_inventory = max(0, _to_int(_first_present(row, ESTIMATED_BAGS_COLUMNS),
                                                  DEFAULT_ESTIMATED_BAGS))
        restaurant.rating = _to_float(_first_present(row, RATING_COLUMNS), DEFAULT_RATING)
        restaurant.price = _to_float(_first_present(row, PRICE_COLUMNS), DEFAULT_PRICE)
        restaurant.longitude = _to_float(_first_present(row, LONGITUDE_COLUMNS), DEFAULT_LONGITUDE)
        restaurant.latitude = _to_float(_first_present(row, LATITUDE_COLUMNS), DEFAULT_LATITUDE)

        restaurants.append(restaurant)

    return restaurants


def _valuation_store_id(column: str) -> Optional[int]:
    """
    Store id encoded in a valuation column name, e.g. store3_id_valuation -> 3.
    Returns None for columns that aren't valuations.
    """
    key = column.lower().strip()
    if 'store' not in key or ('valuation' not in key and '_id_' not in key):
        return None
    match = re.search(r'\d+', column)
    return int(match.group(0)) if match else None


def customers_from_records(records: List[Dict]) -> List[Customer]:
    """
    Build Customer objects from row dicts.

    Recognised columns:
    - Customer_ID | CustomerID | customerid | id (defaults to the 1-based row position)
    - longitude | lon, latitude | lat
    - store<N>_id_valuation / store<N>_valuation: valuation of store N
    - optional segment, willingness_to_pay, loyalty, leaving_threshold
    """
    customers = []
    for idx, row in enumerate(records):
        customer_id = _to_int(_first_present(row, CUSTOMER_ID_COLUMNS), idx + 1)
        customer = Customer(customer_id)

        customer.longitude = _to_float(_first_present(row, LONGITUDE_COLUMNS), DEFAULT_LONGITUDE)
        customer.latitude = _to_float(_first_present(row, LATITUDE_COLUMNS), DEFAULT_LATITUDE)

        for col, value in row.items():
            store_id = _valuation_store_id(str(col))
            if store_id is not None:
                customer.store_valuations[store_id] = _to_float(value, 0.0)

        segment = row.get('segment')
        if not _is_missing(segment) and str(segment).strip().lower() in SEGMENTS:
            customer.segment = str(segment).strip().lower()
        else:
            customer.segment = DEFAULT_SEGMENT
        customer.willingness_to_pay = _to_float(row.get('willingness_to_pay'), DEFAULT_WILLINGNESS_TO_PAY)
        customer.loyalty = min(1.0, max(0.0, _to_float(row.get('loyalty'), DEFAULT_LOYALTY)))
        customer.leaving_threshold = _to_float(row.get('leaving_threshold'), DEFAULT_LEAVING_THRESHOLD)

        customers.append(customer)

    return customers


def load_stores_from_csv(csv_path: str = "stores.csv") -> List[Restaurant]:
    """Load stores from CSV file."""
    try:
        df = pd.read_csv(csv_path)
    except FileNotFoundError:
        raise FileNotFoundError(f"Stores CSV file not found: {csv_path}")

    return restaurants_from_records(df.to_dict('records'))


def load_customers_from_csv(csv_path: str = "customers.csv") -> List[Customer]:
    """Load customers from CSV file."""
    try:
        df = pd.read_csv(csv_path)
    except FileNotFoundError:
        raise FileNotFoundError(f"Customers CSV file not found: {csv_path}")

    return customers_from_records(df.to_dict('records'))


def save_results_to_csv(rows: List[Dict], filepath: str) -> pd.DataFrame:
    """Write a list of flat result dicts to CSV, one row each"""
    df = pd.DataFrame(rows)
    df.to_csv(filepath, index=False)
    return df


def save_stores_to_csv(stores: List[Restaurant], filepath: str = "generated_stores.csv") -> None:
    """
    Save list of stores to CSV in the format expected by load_stores_from_csv.
    """
    data = []
    for store in stores:
        data.append({
            'store_id': store.restaurant_id,
            'store_name': store.name,
            'branch': store.branch,
            'business_type': store.category,
            'average_bags_at_9AM': store.est_inventory,
            'average_overall_rating': round(store.rating, 5),
            'price': round(store.price, 5),
            'longitude': round(store.longitude, 5),
            'latitude': round(store.latitude, 5)
        })

    pd.DataFrame(data).to_csv(filepath, index=False)


def save_customers_to_csv(customers: List[Customer], filepath: str = "generated_customers.csv") -> None:
    """
    Save list of customers to CSV in the format expected by load_customers_from_csv.
    """
    data = []
    for customer in customers:
        row = {
            'Customer_ID': customer.customer_id,
            'longitude': round(customer.longitude, 5),
            'latitude': round(customer.latitude, 5),
            'segment': customer.segment,
            'willingness_to_pay': round(customer.willingness_to_pay, 5),
            'loyalty': round(customer.loyalty, 5),
            'leaving_threshold': round(customer.leaving_threshold, 5)
        }
        for store_id, valuation in sorted(customer.store_valuations.items()):
            row[f"store{store_id}_valuation"] = round(valuation, 5)
        data.append(row)

    pd.DataFrame(data).to_csv(filepath, index=False)
