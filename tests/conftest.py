"""
Pytest configuration and shared fixtures for MDB_MANGO tests.

This module provides:
- The cars collection (5 documents keyed by `vin`)
- Entity models (Pydantic model and JSON schema)
- Finder and repository fixtures seeded with the cars collection
"""

import copy
from typing import Any, Dict, List

import pytest
from pydantic import BaseModel, Field

from mdb_mango import (MangoFinder, MangoFinderAsync, MangoRepository,
                       MangoRepositoryAsync)

# ============================================================================
# DATA
# ============================================================================

CARS_IDKEY = "vin"

CARS: List[Dict[str, Any]] = [
    {
        "make": "Scion",
        "model": "tC",
        "model_year": 2010,
        "vin": "3221085d-6f55-4d23-842a-aeb0e413fca8",
    },
    {
        "make": "Mitsubishi",
        "model": "3000GT",
        "model_year": 1999,
        "vin": "5b38c222-bf0c-4972-9810-d8cd7e399a56",
    },
    {
        "make": "Nissan",
        "model": "Quest",
        "model_year": 1994,
        "vin": "6e177f82-055d-464d-b118-cf36b10fb77d",
    },
    {
        "make": "Chevrolet",
        "model": "Aveo",
        "model_year": 2006,
        "vin": "e3df6457-3901-4c25-90cd-6aaabf3cdcb8",
    },
    {
        "make": "Subaru",
        "model": "Impreza",
        "model_year": 1994,
        "vin": "eda31c5a-7b59-4250-b365-e66661930bc8",
    },
]

CAR_UID = CARS[0]["vin"]


class Car(BaseModel):
    """Car entity model."""

    vin: str
    make: str
    model: str
    model_year: int = Field(ge=1886)


CAR_SCHEMA: Dict[str, Any] = {
    "title": "Car",
    "type": "object",
    "properties": {
        "vin": {"type": "string"},
        "make": {"type": "string"},
        "model": {"type": "string"},
        "model_year": {"type": "integer", "minimum": 1886},
    },
    "required": ["vin", "make", "model", "model_year"],
}


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no external services")


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def cars() -> List[Dict[str, Any]]:
    """Fresh copy of the cars collection."""
    return copy.deepcopy(CARS)


@pytest.fixture
def finder_options(cars) -> Dict[str, Any]:
    """Finder options seeded with the cars collection."""
    return {"cache": {"collection": cars}, "mingo": {"id_key": CARS_IDKEY}}


@pytest.fixture
def finder(finder_options) -> MangoFinder:
    """Synchronous finder over the cars collection."""
    return MangoFinder(finder_options)


@pytest.fixture
def finder_async(finder_options) -> MangoFinderAsync:
    """Asynchronous finder over the cars collection."""
    return MangoFinderAsync(finder_options)


@pytest.fixture
def repo(finder_options) -> MangoRepository:
    """Synchronous repository over the cars collection, validated by Car."""
    return MangoRepository(Car, finder_options)


@pytest.fixture
def repo_async(finder_options) -> MangoRepositoryAsync:
    """Asynchronous repository over the cars collection, validated by Car."""
    return MangoRepositoryAsync(Car, finder_options)


@pytest.fixture
def car_model() -> type:
    """Car Pydantic model."""
    return Car


@pytest.fixture
def car_schema() -> Dict[str, Any]:
    """Car JSON schema."""
    return copy.deepcopy(CAR_SCHEMA)


@pytest.fixture
def car_uid() -> str:
    """Identity of the first car."""
    return CAR_UID
