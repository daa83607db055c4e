# -*- coding: utf-8 -*-
"""
Configuration Module
Simulation constants, record defaults and the run configuration model.
"""

from pydantic import BaseModel, Field, model_validator


# Customers will not travel further than this (flat lat/lon units)
MAX_TRAVEL_DISTANCE = 0.05

NUM_DAYS = 7
CUSTOMERS_PER_DAY = 100
N_DISPLAYED = 5
MAX_BAGS_PER_CUSTOMER = 3

# Defaults applied when an input record is missing a field or it can't be parsed
DEFAULT_ESTIMATED_BAGS = 10
DEFAULT_RATING = 4.0
DEFAULT_PRICE = 100.0
DEFAULT_WILLINGNESS_TO_PAY = 200.0
DEFAULT_LEAVING_THRESHOLD = 3.0
DEFAULT_LONGITUDE = 31.2
DEFAULT_LATITUDE = 30.0
DEFAULT_CATEGORY = "restaurant"
DEFAULT_SEGMENT = "regular"
DEFAULT_LOYALTY = 0.8
DEFAULT_WEIGHTS = {
    'rating_w': 1.0,
    'price_w': 1.0,
    'novelty_w': 0.5
}
DEFAULT_CATEGORY_PREFERENCE = {
    'bakery': 1.0,
    'cafe': 1.0,
    'restaurant': 1.0
}

SEGMENTS = ("budget", "premium", "regular")


class ConfigurationError(ValueError):
    """Raised when the simulation cannot start with the inputs it was given."""


class SimulationConfig(BaseModel):
    num_days: int = Field(default=NUM_DAYS, ge=1)
    customers_per_day: int = Field(default=CUSTOMERS_PER_DAY, ge=0)
    n_displayed: int = Field(default=N_DISPLAYED, ge=1)
    max_bags_per_customer: int = Field(default=MAX_BAGS_PER_CUSTOMER, ge=1)

    # actual bags today = floor(estimated * U(low, high))
    inventory_variance_low: float = Field(default=0.8, ge=0.0)
    inventory_variance_high: float = Field(default=1.2, ge=0.0)

    # rating drift per confirmed / cancelled reservation at settlement
    rating_confirm_step: float = Field(default=0.01, ge=0.0)
    rating_cancel_step: float = Field(default=0.05, ge=0.0)

    @model_validator(mode="after")
    def check_variance_bounds(self):
        if self.inventory_variance_low > self.inventory_variance_high:
            raise ValueError("inventory_variance_low must not exceed inventory_variance_high")
        return self

    @property
    def total_arrivals(self) -> int:
        return self.num_days * self.customers_per_day
