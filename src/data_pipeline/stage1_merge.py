"""
Stage 1: Dataset Merge
======================
Builds the denormalised analysis table, one row per (product, week) sales
record.

Steps:
1. Sales x Product on product_id (sales anchored, left join)
2. Step-1 result x Marketing on (brand, week_id) (step-1 anchored, left join)

Brand-level marketing spend fans out to every product row of that brand and
week. Duplicate keys in the lookup tables raise instead of fanning out rows.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Tuple

import pandas as pd

from ..errors import DataIntegrityError

logger = logging.getLogger(__name__)

JOIN_MODES = ('left', 'right', 'inner', 'outer')


@dataclass(frozen=True)
class JoinSpec:
    """
    One join with an explicit anchor.

    The anchor is always the left side of the pandas merge, so ``how`` is
    read relative to it regardless of how the caller names the tables.
    """
    anchor: str
    other: str
    keys: Tuple[str, ...]
    how: str = 'left'

    def __post_init__(self):
        if self.how not in JOIN_MODES:
            raise ValueError(f"Unknown join mode {self.how!r}, expected one of {JOIN_MODES}")


SALES_PRODUCT_JOIN = JoinSpec(anchor='sales', other='product', keys=('product_id',), how='left')
SALES_MARKETING_JOIN = JoinSpec(anchor='sales_product', other='marketing', keys=('brand', 'week_id'), how='left')


def check_unique_keys(df: pd.DataFrame, keys: Tuple[str, ...], table: str) -> None:
    """Raise DataIntegrityError if ``keys`` do not identify rows of ``df``."""
    dupes = df.duplicated(subset=list(keys), keep=False)
    if dupes.any():
        sample = df.loc[dupes, list(keys)].drop_duplicates().head(5)
        raise DataIntegrityError(
            f"{table} table has {int(dupes.sum())} rows with duplicate {list(keys)}; "
            f"joining would change row cardinality. Examples: {sample.to_dict('records')}"
        )


class DatasetMerger:
    """
    Merge sales, product catalog and marketing spend.

    The sales table is the fact table of record: the output has exactly one
    row per sales row, in sales order.
    """

    def __init__(
        self,
        product_join: JoinSpec = SALES_PRODUCT_JOIN,
        marketing_join: JoinSpec = SALES_MARKETING_JOIN
    ):
        self.product_join = product_join
        self.marketing_join = marketing_join
        self.merge_stats_: Dict[str, int] = {}

    def run(
        self,
        sales: pd.DataFrame,
        product: pd.DataFrame,
        marketing: pd.DataFrame
    ) -> pd.DataFrame:
        """
        Execute both joins.

        Parameters
        ----------
        sales : pd.DataFrame
            product_id, week_id, sales, RRP, discount
        product : pd.DataFrame
            product_id (unique), brand, specification attributes
        marketing : pd.DataFrame
            brand, week_id (unique together), marketing_expense

        Returns
        -------
        pd.DataFrame
            Analysis table with len(sales) rows
        """
        logger.info("Stage 1: Merging datasets")
        n_sales = len(sales)

        # Step 1: attach product attributes
        step1 = self._join(sales, product, self.product_join, n_sales)
        self.merge_stats_['sales_rows'] = n_sales
        self.merge_stats_['unmatched_product'] = int((step1['_merge'] == 'left_only').sum())
        step1 = step1.drop(columns='_merge')

        # Step 2: attach brand-week marketing spend
        merged = self._join(step1, marketing, self.marketing_join, n_sales)
        self.merge_stats_['unmatched_marketing'] = int((merged['_merge'] == 'left_only').sum())
        merged = merged.drop(columns='_merge')

        if self.merge_stats_['unmatched_product']:
            logger.warning(
                f"  - {self.merge_stats_['unmatched_product']:,} sales rows have no catalog entry"
            )
        if self.merge_stats_['unmatched_marketing']:
            logger.warning(
                f"  - {self.merge_stats_['unmatched_marketing']:,} rows have no marketing spend for their brand-week"
            )
        logger.info(f"  - Analysis table: {len(merged):,} rows, {len(merged.columns)} columns")

        return merged

    def _join(
        self,
        anchor_df: pd.DataFrame,
        other_df: pd.DataFrame,
        spec: JoinSpec,
        expected_rows: int
    ) -> pd.DataFrame:
        keys = list(spec.keys)
        for table_name, df in ((spec.anchor, anchor_df), (spec.other, other_df)):
            missing = [k for k in keys if k not in df.columns]
            if missing:
                raise DataIntegrityError(f"{table_name} table is missing join keys {missing}")

        check_unique_keys(other_df, spec.keys, spec.other)

        try:
            joined = anchor_df.merge(
                other_df,
                on=keys,
                how=spec.how,
                validate='many_to_one',
                suffixes=('', f'_{spec.other}'),
                indicator=True
            )
        except pd.errors.MergeError as e:
            raise DataIntegrityError(f"Join {spec.anchor} x {spec.other} failed validation: {e}") from e

        if spec.how == 'left' and len(joined) != expected_rows:
            raise DataIntegrityError(
                f"Join {spec.anchor} x {spec.other} changed row count "
                f"from {expected_rows:,} to {len(joined):,}"
            )

        return joined


def merge_datasets(
    sales: pd.DataFrame,
    product: pd.DataFrame,
    marketing: pd.DataFrame
) -> pd.DataFrame:
    """Merge with the default sales-anchored joins."""
    return DatasetMerger().run(sales, product, marketing)
