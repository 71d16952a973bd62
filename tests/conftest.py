"""
Pytest configuration and shared fixtures for the partner sync test suite.
"""
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from fakes import FIXED_NOW, InMemoryChannel, ScriptedRandom

# Run from the project root
PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)



@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="partner_sync_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with isolated directories."""
    from config import Config

    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))
    config = Config()
    # Override paths to use temp directory
    config.db_path = temp_dir / "data" / "catalog.db"
    config.scratch_db_path = temp_dir / "data" / "scratch.db"
    config.temp_dir = temp_dir / "tmp"
    config.ensure_local_dirs()
    return config


@pytest.fixture
def catalog(test_config) -> "CatalogDatabase":
    """
    A catalog seeded with one delivery center, one store, one user, two
    active products, one inactive product and purchase order PO1:

        PO1 -> 1 line: E1 x10 @ 2.00, tax 0.10
    """
    from models.purchase_order import PurchaseOrder, PurchaseOrderItem
    from pipeline.database import CatalogDatabase

    db = CatalogDatabase(test_config.db_path)
    db.upsert("taxes", {"code": "IVA_GENERAL", "name": "General", "tax_rate": 0.21})
    db.upsert("taxes", {"code": "IVA_REDUCIDO", "name": "Reducido", "tax_rate": 0.10})
    db.upsert("delivery_centers", {"code": "DC01", "name": "Madrid Norte"})
    db.upsert("stores", {
        "code": "ST01", "name": "Tienda Centro",
        "responsible_email": "jefe@example.com", "delivery_center_code": "DC01",
    })
    db.upsert("users", {
        "email": "ana@example.com", "store_id": "ST01", "name": "Ana",
        "password_hash": "$2b$12$secret",
    })
    db.upsert("products", {
        "ean": "S1", "ref": "REF-S1", "title": "Aceite de oliva 1L", "base_price": 5.00,
        "tax_code": "IVA_GENERAL", "unit_of_measure": "L", "quantity_measure": 1.0,
    })
    db.upsert("products", {
        "ean": "S2", "title": "Arroz 1kg", "base_price": 1.50,
        "tax_code": "IVA_REDUCIDO", "unit_of_measure": "kg", "quantity_measure": 1.0,
    })
    db.upsert("products", {
        "ean": "S9", "title": "Discontinued", "base_price": 9.99,
        "tax_code": "IVA_GENERAL", "unit_of_measure": "ud", "quantity_measure": 1.0,
        "is_active": False,
    })
    db.add_purchase_order(PurchaseOrder(
        purchase_order_id="PO1", user_email="ana@example.com", store_id="ST01",
        status="pending", created_at="2024-04-30T09:00:00+00:00",
        updated_at="2024-04-30T09:00:00+00:00",
    ))
    db.add_purchase_order_item(PurchaseOrderItem(
        purchase_order_id="PO1", item_ean="E1", item_ref="REF-E1", item_title="Leche 1L",
        quantity=10, base_price_at_order=2.00, tax_rate_at_order=0.10,
    ))
    return db


@pytest.fixture
def scratch(test_config) -> "SimulatedOrderStore":
    from pipeline.scratch_store import SimulatedOrderStore
    return SimulatedOrderStore(test_config.scratch_db_path)


@pytest.fixture
def channel() -> InMemoryChannel:
    """An empty in-memory partner endpoint."""
    return InMemoryChannel()


@pytest.fixture
def make_engine(catalog, scratch):
    """Factory for a simulation engine with scripted draws and a fixed clock."""
    from pipeline.simulation import OrderSimulationEngine

    def _make(draws=(), uniforms=(), now=FIXED_NOW):
        return OrderSimulationEngine(
            catalog, scratch, rng=ScriptedRandom(draws, uniforms), now=lambda: now,
        )
    return _make


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
