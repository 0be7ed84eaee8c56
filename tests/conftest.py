"""
Pytest Configuration and Fixtures
==================================
Shared fixtures for the marketing-mix analysis tests.
"""

import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import tempfile
import shutil
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / 'scripts'))

from generate_sample_data import generate_tables


@pytest.fixture(scope="session")
def sample_tables():
    """Synthetic (product, sales, marketing) tables with Z1/Z2 instruments."""
    return generate_tables(products_per_brand=4, n_weeks=20, seed=7)


@pytest.fixture
def mini_tables():
    """Hand-sized tables: 3 products, 2 brands, 2 weeks."""
    product = pd.DataFrame({
        'product_id': ['P1', 'P2', 'P3'],
        'brand': ['Acme', 'Acme', 'Bolt'],
        'category': ['tv', 'audio', 'tv'],
    })
    sales = pd.DataFrame({
        'product_id': ['P1', 'P2', 'P3', 'P1', 'P2', 'P3'],
        'week_id': [1, 1, 1, 2, 2, 2],
        'sales': [50, 20, 10, 40, 25, 12],
        'RRP': [100.0, 50.0, 200.0, 100.0, 50.0, 200.0],
        'discount': [0.2, 0.0, 0.1, 0.1, 0.5, 0.0],
    })
    marketing = pd.DataFrame({
        'brand': ['Acme', 'Bolt', 'Acme', 'Bolt'],
        'week_id': [1, 1, 2, 2],
        'marketing_expense': [1000.0, 500.0, 1200.0, 400.0],
    })
    return product, sales, marketing


def generate_regression_data(
    n_rows: int = 400,
    brands=('Apex', 'Beacon', 'Cobalt', 'Delta'),
    seed: int = 42
) -> pd.DataFrame:
    """
    Analysis-table shaped data with known coefficients.

    sales = 200 - 1.5 * final_price + 0.01 * marketing_expense + brand effect + noise
    final_price is driven by the instruments Z1, Z2 and marketing_expense.
    """
    rng = np.random.default_rng(seed)
    brand_effects = {b: -10.0 * i for i, b in enumerate(brands)}

    brand = rng.choice(list(brands), n_rows)
    z1 = rng.normal(0, 1, n_rows)
    z2 = rng.normal(0, 1, n_rows)
    marketing = rng.uniform(1000, 5000, n_rows)
    final_price = 50 + 5 * z1 - 3 * z2 + 0.001 * marketing + rng.normal(0, 1, n_rows)
    effect = np.array([brand_effects[b] for b in brand])
    sales = 200 - 1.5 * final_price + 0.01 * marketing + effect + rng.normal(0, 2, n_rows)

    return pd.DataFrame({
        'product_id': [f'P{i % 40:03d}' for i in range(n_rows)],
        'brand': brand,
        'week_id': np.arange(n_rows) // 40 + 1,
        'sales': sales,
        'final_price': final_price,
        'marketing_expense': marketing,
        'Z1': z1,
        'Z2': z2,
    })


@pytest.fixture
def regression_data():
    """Analysis-table shaped data with known coefficients and four brands."""
    return generate_regression_data()


@pytest.fixture(scope="function")
def temp_dir():
    """Create a temporary directory for test outputs."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp)
