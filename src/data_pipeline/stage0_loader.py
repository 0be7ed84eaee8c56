"""
Stage 0: Dataset Loader
=======================
Reads the product catalog, weekly sales and weekly brand marketing spend
into DataFrames and checks each against its required columns.

Inputs: product.csv, sales.csv, marketing.csv (paths or URLs)
"""

import logging
from typing import Dict, List, Tuple

import pandas as pd

from ..errors import DataIntegrityError

logger = logging.getLogger(__name__)


REQUIRED_COLUMNS: Dict[str, List[str]] = {
    'product': ['product_id', 'brand'],
    'sales': ['product_id', 'week_id', 'sales', 'RRP', 'discount'],
    'marketing': ['brand', 'week_id', 'marketing_expense'],
}

KEY_COLUMNS: Dict[str, List[str]] = {
    'product': ['product_id', 'brand'],
    'sales': ['product_id'],
    'marketing': ['brand'],
}

NUMERIC_COLUMNS: Dict[str, List[str]] = {
    'product': [],
    'sales': ['sales', 'RRP', 'discount'],
    'marketing': ['marketing_expense'],
}


def _key_as_text(values: pd.Series) -> pd.Series:
    # A blank key makes pandas read an integer id column as float (101 -> 101.0)
    if pd.api.types.is_float_dtype(values) and (values.dropna() % 1 == 0).all():
        values = values.astype('Int64')
    return values.astype(str).where(values.notna())


def validate_schema(df: pd.DataFrame, table: str) -> pd.DataFrame:
    """
    Check required columns and normalise join-key dtypes.

    Parameters
    ----------
    df : pd.DataFrame
        Table as read from disk
    table : str
        One of 'product', 'sales', 'marketing'

    Returns
    -------
    pd.DataFrame
        Copy with string ``product_id``/``brand`` keys and numeric measures
    """
    missing = [c for c in REQUIRED_COLUMNS[table] if c not in df.columns]
    if missing:
        raise DataIntegrityError(f"{table} table is missing required columns: {missing}")

    df = df.copy()

    # Keys compare as strings across tables; nulls stay null
    for key in ('product_id', 'brand'):
        if key in df.columns:
            df[key] = _key_as_text(df[key])

    if 'week_id' in df.columns and pd.api.types.is_float_dtype(df['week_id']):
        if df['week_id'].notna().all() and (df['week_id'] % 1 == 0).all():
            df['week_id'] = df['week_id'].astype('int64')

    for col in NUMERIC_COLUMNS[table]:
        if not pd.api.types.is_numeric_dtype(df[col]):
            coerced = pd.to_numeric(df[col], errors='coerce')
            n_bad = int((coerced.isna() & df[col].notna()).sum())
            if n_bad:
                raise DataIntegrityError(f"{table}.{col} has {n_bad} non-numeric values")
            df[col] = coerced

    return df


def load_table(source: str, table: str, **read_kwargs) -> pd.DataFrame:
    """Read one delimited table and validate it."""
    logger.info(f"Loading {table} table from {source}")
    # Keys are read as text so ids keep their spelling (leading zeros, no '.0')
    dtype = {key: str for key in KEY_COLUMNS[table]}
    extra_dtype = read_kwargs.pop('dtype', None)
    if isinstance(extra_dtype, dict):
        dtype.update(extra_dtype)
    elif extra_dtype is not None:
        dtype = extra_dtype
    df = pd.read_csv(source, dtype=dtype, **read_kwargs)
    df = validate_schema(df, table)
    logger.info(f"  - {table}: {len(df):,} rows, {len(df.columns)} columns")
    return df


def load_datasets(
    product_path: str,
    sales_path: str,
    marketing_path: str,
    **read_kwargs
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """
    Load all three input tables.

    Returns
    -------
    Tuple of (product, sales, marketing) DataFrames
    """
    product = load_table(product_path, 'product', **read_kwargs)
    sales = load_table(sales_path, 'sales', **read_kwargs)
    marketing = load_table(marketing_path, 'marketing', **read_kwargs)

    return product, sales, marketing
