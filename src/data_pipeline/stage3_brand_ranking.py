"""
Stage 3: Brand Ranking
======================
Ranks brands by average weekly dollar sales:

    weekly_dollar_sales = final_price * sales

The ranking is descriptive. It does not control for price or marketing spend
and says nothing about brand equity; see the brand-equity regression for that.
"""

import logging
import warnings

import pandas as pd

from ..errors import MissingValueError

logger = logging.getLogger(__name__)


def add_weekly_dollar_sales(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy with ``weekly_dollar_sales = final_price * sales``."""
    df = df.copy()
    df['weekly_dollar_sales'] = df['final_price'] * df['sales']
    return df


class BrandRanker:
    """
    Mean weekly dollar sales per brand, sorted descending.

    Rows with a missing metric or brand are excluded from the means rather
    than failing the aggregation. Ties keep the order in which brands first
    appear in the input.
    """

    def __init__(self, metric: str = 'weekly_dollar_sales', group_col: str = 'brand'):
        self.metric = metric
        self.group_col = group_col
        self.excluded_rows_ = 0

    def run(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Parameters
        ----------
        df : pd.DataFrame
            Analysis table with final_price and sales (or the metric column)

        Returns
        -------
        pd.DataFrame
            brand, avg_weekly_dollar_sales, n_observations
        """
        logger.info("Stage 3: Ranking brands by average weekly dollar sales")

        if self.metric not in df.columns:
            df = add_weekly_dollar_sales(df)

        usable = df[self.group_col].notna() & df[self.metric].notna()
        self.excluded_rows_ = int((~usable).sum())
        if self.excluded_rows_:
            message = (
                f"Excluded {self.excluded_rows_:,} of {len(df):,} rows with missing "
                f"{self.group_col} or {self.metric} from brand averages"
            )
            logger.warning(f"  - {message}")
            warnings.warn(message, MissingValueError, stacklevel=2)

        # sort=False keeps first-appearance order for the stable sort below
        ranking = df.loc[usable].groupby(self.group_col, sort=False).agg(
            avg_weekly_dollar_sales=(self.metric, 'mean'),
            n_observations=(self.metric, 'count')
        ).reset_index()

        ranking = ranking.sort_values(
            'avg_weekly_dollar_sales', ascending=False, kind='stable'
        ).reset_index(drop=True)

        if len(ranking):
            top = ranking.iloc[0]
            logger.info(
                f"  - Brands ranked: {len(ranking):,} "
                f"(top: {top[self.group_col]}, {top['avg_weekly_dollar_sales']:,.2f})"
            )

        return ranking


def rank_brands(df: pd.DataFrame) -> pd.DataFrame:
    """Rank brands by mean weekly dollar sales."""
    return BrandRanker().run(df)
