"""
Regression Fitting
==================
Ordinary least squares over a patsy formula.

The design matrix is checked for rank before estimation: a singular design
(perfectly collinear terms, a constant column alongside the intercept, a
factor encoded with every level) fails with the offending term named rather
than producing a degenerate fit.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

import numpy as np
import pandas as pd
import patsy
import statsmodels.api as sm

from ..errors import ModelFitError

logger = logging.getLogger(__name__)


@dataclass
class RegressionResult:
    """Coefficient table and fit statistics for one specification."""
    name: str
    formula: str
    coefficients: pd.Series
    standard_errors: pd.Series
    p_values: pd.Series
    nobs: int
    r_squared: float
    adj_r_squared: float
    design_info: Optional[Any] = field(default=None, repr=False)
    model: Optional[Any] = field(default=None, repr=False)

    def to_frame(self) -> pd.DataFrame:
        """Tidy coefficient table: term, estimate, std_error, p_value, n, r_squared."""
        return pd.DataFrame({
            'term': self.coefficients.index,
            'estimate': self.coefficients.to_numpy(),
            'std_error': self.standard_errors.reindex(self.coefficients.index).to_numpy(),
            'p_value': self.p_values.reindex(self.coefficients.index).to_numpy(),
            'n': self.nobs,
            'r_squared': self.r_squared,
        })

    def predict(self, data: pd.DataFrame) -> pd.Series:
        """
        Predictions for every row of ``data``.

        Rows missing any right-hand-side variable get NaN.
        """
        if self.design_info is None:
            raise ModelFitError(f"Result {self.name!r} carries no design to predict from", formula=self.formula)

        try:
            (X,) = patsy.build_design_matrices(
                [self.design_info], data, NA_action='drop', return_type='dataframe'
            )
        except patsy.PatsyError as e:
            raise ModelFitError(f"Could not build prediction design: {e}", formula=self.formula) from e
        params = self.coefficients.reindex(X.columns).to_numpy()
        predicted = pd.Series(X.to_numpy() @ params, index=X.index)
        return predicted.reindex(data.index)


def build_design(formula: str, data: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Evaluate ``formula`` against ``data``, dropping rows with missing values."""
    try:
        y, X = patsy.dmatrices(formula, data, NA_action='drop', return_type='dataframe')
    except patsy.PatsyError as e:
        raise ModelFitError(f"Could not build design matrix: {e}", formula=formula) from e

    if y.shape[1] != 1:
        raise ModelFitError("Outcome must be a single numeric column", formula=formula)

    return y, X


def find_dependent_column(X: pd.DataFrame) -> Optional[str]:
    """
    First design column that is a linear combination of the columns before it.

    Returns None when the design has full column rank.
    """
    values = X.to_numpy(dtype=float)
    rank = 0
    for i, column in enumerate(X.columns):
        new_rank = np.linalg.matrix_rank(values[:, :i + 1])
        if new_rank <= rank:
            return column
        rank = new_rank
    return None


def _term_for_column(X: pd.DataFrame, column: str) -> str:
    design_info = X.design_info
    position = list(X.columns).index(column)
    for term_name, columns in design_info.term_name_slices.items():
        if columns.start <= position < columns.stop:
            return term_name
    return column


def check_identified(formula: str, y: pd.DataFrame, X: pd.DataFrame) -> None:
    """Raise ModelFitError unless the design can be estimated by OLS."""
    n_obs, n_params = X.shape

    if n_obs == 0:
        raise ModelFitError("No complete observations for the formula's variables", formula=formula)

    if not (np.isfinite(X.to_numpy(dtype=float)).all() and np.isfinite(y.to_numpy(dtype=float)).all()):
        raise ModelFitError("Design contains non-finite values", formula=formula)

    if n_obs <= n_params:
        raise ModelFitError(
            f"Only {n_obs} observations for {n_params} parameters",
            formula=formula
        )

    dependent = find_dependent_column(X)
    if dependent is not None:
        term = _term_for_column(X, dependent)
        raise ModelFitError(
            f"Singular design matrix: column {dependent!r} is collinear with earlier terms",
            formula=formula,
            term=term
        )


def fit_ols(formula: str, data: pd.DataFrame, name: Optional[str] = None) -> RegressionResult:
    """
    Fit ``formula`` by OLS.

    Parameters
    ----------
    formula : str
        patsy formula, e.g. ``'sales ~ final_price + marketing_expense'``
    data : pd.DataFrame
        Analysis table; rows missing any formula variable are dropped
    name : str, optional
        Label carried on the result

    Returns
    -------
    RegressionResult
    """
    name = name or formula
    y, X = build_design(formula, data)
    check_identified(formula, y, X)

    model = sm.OLS(y.iloc[:, 0], X).fit()

    result = RegressionResult(
        name=name,
        formula=formula,
        coefficients=model.params,
        standard_errors=model.bse,
        p_values=model.pvalues,
        nobs=int(model.nobs),
        r_squared=float(model.rsquared),
        adj_r_squared=float(model.rsquared_adj),
        design_info=X.design_info,
        model=model
    )

    dropped = len(data) - result.nobs
    logger.info(f"Fitted {name}: n={result.nobs:,} (dropped {dropped:,}), R^2={result.r_squared:.3f}")

    return result
