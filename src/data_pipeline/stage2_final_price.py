"""
Stage 2: Final Price Derivation
===============================
Derives the realised transaction price from list price and discount rate:

    final_price = RRP - RRP * discount

Out-of-range inputs (discount outside [0, 1], negative RRP) are rejected or
flagged, never clamped. Missing inputs give a missing final price.
"""

import logging
import math
from typing import Any, Dict, Mapping

import numpy as np
import pandas as pd

from ..errors import DataIntegrityError

logger = logging.getLogger(__name__)

ON_INVALID_MODES = ('raise', 'flag')


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def derive_final_price_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Row-wise final price derivation.

    Returns a new dict with ``final_price`` added; the input is not modified.
    Raises DataIntegrityError for an out-of-range discount or negative RRP.
    """
    rrp = row['RRP']
    discount = row['discount']
    derived = dict(row)

    if _is_missing(rrp) or _is_missing(discount):
        derived['final_price'] = float('nan')
        return derived

    if rrp < 0:
        raise DataIntegrityError(f"Negative RRP {rrp} for row {dict(row)}")
    if not 0 <= discount <= 1:
        raise DataIntegrityError(f"Discount {discount} outside [0, 1] for row {dict(row)}")

    derived['final_price'] = rrp - rrp * discount
    return derived


class FinalPriceDeriver:
    """
    Vectorised final price derivation with validation.

    Parameters
    ----------
    on_invalid : str
        'raise' aborts on any invalid row. 'flag' sets final_price to NaN on
        invalid rows and records the reason in ``validation_flags``.
    """

    def __init__(self, on_invalid: str = 'raise'):
        if on_invalid not in ON_INVALID_MODES:
            raise ValueError(f"on_invalid must be one of {ON_INVALID_MODES}, got {on_invalid!r}")
        self.on_invalid = on_invalid
        self.n_flagged_ = 0

    def run(self, df: pd.DataFrame) -> pd.DataFrame:
        logger.info("Stage 2: Deriving final price")
        df = df.copy()

        rrp = df['RRP']
        discount = df['discount']

        # NaN comparisons are False, so missing values are never flagged
        validation_flags = [
            ('negative_rrp', rrp < 0),
            ('discount_out_of_range', (discount < 0) | (discount > 1)),
        ]
        invalid = pd.Series(False, index=df.index)
        for _, mask in validation_flags:
            invalid |= mask

        if invalid.any() and self.on_invalid == 'raise':
            counts = {name: int(mask.sum()) for name, mask in validation_flags if mask.any()}
            raise DataIntegrityError(
                f"{int(invalid.sum())} rows have out-of-range price inputs: {counts}"
            )

        flags = pd.Series('', index=df.index, dtype=object)
        for name, mask in validation_flags:
            flags[mask] = np.where(flags[mask] == '', name, flags[mask] + '|' + name)

        df['final_price'] = (rrp - rrp * discount).where(~invalid, np.nan)
        df['validation_flags'] = flags

        self.n_flagged_ = int(invalid.sum())
        if self.n_flagged_:
            logger.warning(f"  - Flagged {self.n_flagged_:,} rows with invalid RRP/discount")
        logger.info(f"  - Missing final price: {int(df['final_price'].isna().sum()):,} rows")

        return df


def derive_final_price(df: pd.DataFrame, on_invalid: str = 'raise') -> pd.DataFrame:
    """Add ``final_price`` and ``validation_flags`` columns."""
    return FinalPriceDeriver(on_invalid=on_invalid).run(df)
