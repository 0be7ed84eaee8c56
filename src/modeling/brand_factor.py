"""
Brand Factor Encoding
=====================
Categorical brand variable with an explicitly chosen reference level.

The reference is placed first in the category order, so patsy's default
treatment coding holds it out and every brand coefficient reads as a
differential against that named brand.
"""

from typing import Iterable, List, Optional

import pandas as pd

from ..errors import DataIntegrityError


class BrandFactor:
    """
    Parameters
    ----------
    levels : Iterable[str]
        All brand levels the factor may take
    reference : str
        Level held out of the regression
    """

    def __init__(self, levels: Iterable[str], reference: str):
        levels = list(dict.fromkeys(levels))
        if reference not in levels:
            raise DataIntegrityError(
                f"Reference brand {reference!r} is not among the brand levels {levels}"
            )
        self.reference = reference
        self.levels: List[str] = [reference] + [lvl for lvl in levels if lvl != reference]

    @classmethod
    def from_series(cls, brands: pd.Series, reference: str) -> 'BrandFactor':
        """Collect levels in first-appearance order, skipping nulls."""
        return cls(brands.dropna().unique().tolist(), reference)

    @property
    def non_reference_levels(self) -> List[str]:
        return self.levels[1:]

    def encode(self, brands: pd.Series) -> pd.Series:
        """
        Encode brand values as a Categorical ordered reference-first.

        Nulls stay null; values outside the known levels raise.
        """
        unknown = set(brands.dropna().unique()) - set(self.levels)
        if unknown:
            raise DataIntegrityError(f"Brands {sorted(map(str, unknown))} are not factor levels")

        return pd.Series(
            pd.Categorical(brands, categories=self.levels),
            index=brands.index,
            name=brands.name
        )

    def __repr__(self):
        return f"BrandFactor(reference={self.reference!r}, levels={self.levels!r})"


def level_for_term(term: str, column: str = 'brand_factor') -> Optional[str]:
    """Map a design column such as ``brand_factor[T.Acme]`` back to its level."""
    prefix = f'{column}[T.'
    if term.startswith(prefix) and term.endswith(']'):
        return term[len(prefix):-1]
    return None
