"""
Modeling Module
===============
Regression specifications over the analysis table.

Components:
- BrandFactor - Categorical brand with an explicit reference level
- fit_ols - Rank-checked OLS over a patsy formula
- Specifications - Base, brand-equity and two-stage least squares
"""

from .brand_factor import BrandFactor
from .regression import RegressionResult, fit_ols
from .specifications import (
    TwoStageLeastSquares,
    brand_equity_ranking,
    fit_base_model,
    fit_brand_equity_model,
    fit_iv2sls,
    run_specifications,
)

__all__ = [
    'BrandFactor',
    'RegressionResult',
    'fit_ols',
    'TwoStageLeastSquares',
    'brand_equity_ranking',
    'fit_base_model',
    'fit_brand_equity_model',
    'fit_iv2sls',
    'run_specifications',
]
