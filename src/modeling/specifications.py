"""
Model Specifications
====================
The three marketing-mix regressions fitted against the analysis table.

a. Base:          sales ~ final_price + marketing_expense
b. Brand equity:  sales ~ final_price + marketing_expense + brand_factor
c. Two-stage:     final_price ~ Z1 + Z2 + marketing_expense
                  sales ~ predicted_final_price + marketing_expense

The instruments Z1, Z2 are placeholders: the catalog carries no cost or
supply-side columns, so the two-stage model runs only when the caller
provides instrument columns.

Each specification is independent. A failure in one is recorded and the
others still run.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from linearmodels.iv import IV2SLS

from ..errors import AnalysisError, DataIntegrityError, ModelFitError, SequencingError
from .brand_factor import BrandFactor, level_for_term
from .regression import RegressionResult, fit_ols

logger = logging.getLogger(__name__)

BASE_FORMULA = 'sales ~ final_price + marketing_expense'
BRAND_EQUITY_FORMULA = 'sales ~ final_price + marketing_expense + brand_factor'


def fit_base_model(data: pd.DataFrame) -> RegressionResult:
    """Effect of price and marketing spend on unit sales."""
    return fit_ols(BASE_FORMULA, data, name='base')


# =============================================================================
# Brand equity
# =============================================================================

def add_brand_factor(
    data: pd.DataFrame,
    reference_brand: str,
    brand_col: str = 'brand'
) -> Tuple[pd.DataFrame, BrandFactor]:
    """
    Add a ``brand_factor`` column with ``reference_brand`` as held-out level.

    Levels are taken from rows that can enter the brand-equity regression, so
    no level ends up with an all-zero indicator column.
    """
    if brand_col not in data.columns:
        raise DataIntegrityError(f"Analysis table has no {brand_col!r} column")

    model_vars = ['sales', 'final_price', 'marketing_expense', brand_col]
    complete = data[model_vars].notna().all(axis=1)
    factor = BrandFactor.from_series(data.loc[complete, brand_col], reference_brand)

    data = data.copy()
    brands = data[brand_col].where(data[brand_col].isin(factor.levels))
    data['brand_factor'] = factor.encode(brands)

    return data, factor


def fit_brand_equity_model(
    data: pd.DataFrame,
    reference_brand: str,
    brand_col: str = 'brand'
) -> RegressionResult:
    """
    Sales differential of each brand versus ``reference_brand``, holding
    price and marketing spend fixed.
    """
    encoded, factor = add_brand_factor(data, reference_brand, brand_col)
    logger.info(f"Brand factor: reference={factor.reference}, {len(factor.non_reference_levels)} other levels")
    return fit_ols(BRAND_EQUITY_FORMULA, encoded, name='brand_equity')


def brand_coefficients(result: RegressionResult) -> pd.Series:
    """Brand indicator coefficients keyed by brand level."""
    coefs = {}
    for term, estimate in result.coefficients.items():
        level = level_for_term(term)
        if level is not None:
            coefs[level] = estimate
    return pd.Series(coefs, dtype=float)


def brand_equity_ranking(
    result: RegressionResult,
    reference_brand: str,
    reference_first: bool = False
) -> pd.DataFrame:
    """
    Brands ordered by estimated equity.

    The reference brand enters with equity 0.0; other brands carry their
    coefficient, so a less negative coefficient ranks closer to the reference.
    With ``reference_first`` the reference leads and the other brands follow
    by descending coefficient, whatever their sign.
    """
    coefs = brand_coefficients(result)
    if reference_brand in coefs.index:
        raise ModelFitError(
            f"Reference brand {reference_brand!r} has its own coefficient",
            formula=result.formula,
            term=f'brand_factor[T.{reference_brand}]'
        )

    above_reference = coefs[coefs > 0]
    if len(above_reference):
        logger.warning(
            f"Brands with positive equity versus {reference_brand}: {above_reference.index.tolist()}"
        )

    reference = pd.Series({reference_brand: 0.0})
    if reference_first:
        ranking = pd.concat([reference, coefs.sort_values(ascending=False, kind='stable')])
    else:
        ranking = pd.concat([reference, coefs]).sort_values(ascending=False, kind='stable')

    return pd.DataFrame({
        'brand': ranking.index,
        'equity': ranking.to_numpy(),
        'is_reference': ranking.index == reference_brand,
    })


# =============================================================================
# Two-stage least squares
# =============================================================================

class TwoStageLeastSquares:
    """
    Instrumented regression of sales on price, fitted as two explicit OLS
    stages.

    Stage 2 sees only the first-stage fitted values of the endogenous
    regressor; the raw column is removed from its input.

    Parameters
    ----------
    outcome : str
        Dependent variable of stage 2
    endogenous : str
        Regressor to instrument
    instruments : Sequence[str]
        Excluded instruments used only in stage 1
    exogenous : Sequence[str]
        Controls included in both stages
    """

    def __init__(
        self,
        outcome: str = 'sales',
        endogenous: str = 'final_price',
        instruments: Sequence[str] = ('Z1', 'Z2'),
        exogenous: Sequence[str] = ('marketing_expense',)
    ):
        if not instruments:
            raise ValueError("At least one instrument is required")
        self.outcome = outcome
        self.endogenous = endogenous
        self.instruments = tuple(instruments)
        self.exogenous = tuple(exogenous)

        self.first_stage_: Optional[RegressionResult] = None
        self.second_stage_: Optional[RegressionResult] = None
        self._first_stage_data: Optional[pd.DataFrame] = None

    @property
    def predicted_column(self) -> str:
        return f'predicted_{self.endogenous}'

    @property
    def first_stage_formula(self) -> str:
        return f"{self.endogenous} ~ {' + '.join(self.instruments + self.exogenous)}"

    @property
    def second_stage_formula(self) -> str:
        return f"{self.outcome} ~ {' + '.join((self.predicted_column,) + self.exogenous)}"

    def fit_first_stage(self, data: pd.DataFrame) -> Tuple[RegressionResult, pd.DataFrame]:
        """
        Regress the endogenous variable on instruments and controls.

        Returns
        -------
        Tuple of (first-stage result, copy of ``data`` with the predicted
        column filled for every row of the first-stage sample)
        """
        missing = [z for z in self.instruments if z not in data.columns]
        if missing:
            raise ModelFitError(
                f"Instrument columns not present in data: {missing}",
                formula=self.first_stage_formula,
                term=missing[0]
            )

        # A refit invalidates any earlier second stage
        self.second_stage_ = None

        result = fit_ols(self.first_stage_formula, data, name='first_stage')

        augmented = data.copy()
        augmented[self.predicted_column] = self._predictions(result, data)

        self.first_stage_ = result
        self._first_stage_data = augmented

        return result, augmented

    def fit_second_stage(self, data: Optional[pd.DataFrame] = None) -> RegressionResult:
        """
        Regress the outcome on first-stage fitted values and controls.

        Parameters
        ----------
        data : pd.DataFrame, optional
            Output of ``fit_first_stage``; defaults to the stored one
        """
        if self.first_stage_ is None:
            raise SequencingError("Second stage requested before the first stage was fitted")

        if data is None:
            data = self._first_stage_data

        if self.predicted_column not in data.columns:
            raise SequencingError(f"Data has no {self.predicted_column!r} column from the first stage")

        try:
            expected = self._predictions(self.first_stage_, data)
        except ModelFitError as e:
            raise SequencingError(f"First stage cannot be reproduced on these rows: {e}") from e
        supplied = data[self.predicted_column]
        if not np.allclose(
            supplied.to_numpy(dtype=float),
            expected.to_numpy(dtype=float),
            equal_nan=True
        ):
            raise SequencingError(
                f"{self.predicted_column!r} does not match the fitted first stage for these rows"
            )

        stage2_data = data.drop(columns=[self.endogenous], errors='ignore')
        self.second_stage_ = fit_ols(self.second_stage_formula, stage2_data, name='second_stage')

        return self.second_stage_

    def fit(self, data: pd.DataFrame) -> RegressionResult:
        """Run both stages in order and return the second-stage result."""
        self.fit_first_stage(data)
        return self.fit_second_stage()

    @property
    def predicted_values(self) -> pd.Series:
        if self._first_stage_data is None:
            raise SequencingError("First stage has not been fitted")
        return self._first_stage_data[self.predicted_column]

    def _predictions(self, result: RegressionResult, data: pd.DataFrame) -> pd.Series:
        # Restricted to the first-stage estimation sample
        predicted = result.predict(data)
        if self.endogenous in data.columns:
            predicted = predicted.where(data[self.endogenous].notna())
        return predicted.rename(self.predicted_column)


def fit_iv2sls(
    data: pd.DataFrame,
    outcome: str = 'sales',
    endogenous: str = 'final_price',
    instruments: Sequence[str] = ('Z1', 'Z2'),
    exogenous: Sequence[str] = ('marketing_expense',)
) -> RegressionResult:
    """
    Single-call 2SLS with linearmodels.

    Same point estimates as ``TwoStageLeastSquares`` on a complete sample,
    with standard errors that account for the generated regressor.
    """
    instruments = tuple(instruments)
    exogenous = tuple(exogenous)
    formula = (
        f"{outcome} ~ 1 + {' + '.join(exogenous)} "
        f"+ [{endogenous} ~ {' + '.join(instruments)}]"
    )

    columns = [outcome, endogenous, *exogenous, *instruments]
    missing = [c for c in columns if c not in data.columns]
    if missing:
        raise ModelFitError(f"Columns not present in data: {missing}", formula=formula, term=missing[0])

    sample = data[columns].dropna()
    try:
        model = IV2SLS.from_formula(formula, sample).fit(cov_type='unadjusted')
    except (ValueError, np.linalg.LinAlgError) as e:
        raise ModelFitError(f"IV2SLS estimation failed: {e}", formula=formula) from e

    return RegressionResult(
        name='iv2sls',
        formula=formula,
        coefficients=model.params,
        standard_errors=model.std_errors,
        p_values=model.pvalues,
        nobs=int(model.nobs),
        r_squared=float(model.rsquared),
        adj_r_squared=float(model.rsquared_adj),
        model=model
    )


# =============================================================================
# Runner
# =============================================================================

@dataclass
class SpecificationOutcome:
    """Result or error of one specification."""
    name: str
    result: Optional[RegressionResult] = None
    error: Optional[str] = None
    extras: Dict[str, object] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.result is not None


def _run_one(name, fit_fn, *args, **kwargs) -> SpecificationOutcome:
    try:
        value = fit_fn(*args, **kwargs)
    except AnalysisError as e:
        logger.error(f"Specification {name} failed: {e}")
        return SpecificationOutcome(name=name, error=str(e))
    return SpecificationOutcome(name=name, result=value)


def run_specifications(
    data: pd.DataFrame,
    reference_brand: str,
    instruments: Sequence[str] = ('Z1', 'Z2'),
    reference_first: bool = False
) -> Dict[str, SpecificationOutcome]:
    """
    Fit the base, brand-equity and two-stage specifications independently.

    Returns
    -------
    Dict mapping specification name to its outcome
    """
    outcomes = {}

    outcomes['base'] = _run_one('base', fit_base_model, data)

    brand = _run_one('brand_equity', fit_brand_equity_model, data, reference_brand)
    if brand.ok:
        brand.extras['ranking'] = brand_equity_ranking(
            brand.result, reference_brand, reference_first=reference_first
        )
    outcomes['brand_equity'] = brand

    tsls = TwoStageLeastSquares(instruments=instruments)
    two_stage = _run_one('two_stage', tsls.fit, data)
    if tsls.first_stage_ is not None:
        two_stage.extras['first_stage'] = tsls.first_stage_
        two_stage.extras['predicted_final_price'] = tsls.predicted_values
    outcomes['two_stage'] = two_stage

    return outcomes
