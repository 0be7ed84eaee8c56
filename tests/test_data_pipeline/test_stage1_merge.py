"""
Tests for Stage 1: Dataset Merge
================================
"""

import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from src.data_pipeline.stage1_merge import DatasetMerger, JoinSpec, merge_datasets
from src.errors import DataIntegrityError


class TestDatasetMerger:
    """Test suite for DatasetMerger."""

    def test_init(self):
        """Test default joins are sales-anchored left joins."""
        merger = DatasetMerger()
        assert merger.product_join.anchor == 'sales'
        assert merger.product_join.how == 'left'
        assert merger.marketing_join.keys == ('brand', 'week_id')
        assert merger.marketing_join.how == 'left'

    def test_row_count_preserved(self, mini_tables):
        """Test one analysis row per sales row."""
        product, sales, marketing = mini_tables
        merged = merge_datasets(sales, product, marketing)

        assert len(merged) == len(sales)

    def test_sales_order_preserved(self, mini_tables):
        """Test rows come out in sales-table order."""
        product, sales, marketing = mini_tables
        merged = merge_datasets(sales, product, marketing)

        assert merged['product_id'].tolist() == sales['product_id'].tolist()
        assert merged['week_id'].tolist() == sales['week_id'].tolist()

    def test_marketing_fans_out_by_brand_week(self, mini_tables):
        """Test brand spend is repeated on every product of that brand and week."""
        product, sales, marketing = mini_tables
        merged = merge_datasets(sales, product, marketing)

        acme_week1 = merged[(merged['brand'] == 'Acme') & (merged['week_id'] == 1)]
        assert len(acme_week1) == 2
        assert (acme_week1['marketing_expense'] == 1000.0).all()

    def test_output_columns(self, mini_tables):
        """Test product attributes and spend are attached."""
        product, sales, marketing = mini_tables
        merged = merge_datasets(sales, product, marketing)

        for col in ['product_id', 'week_id', 'sales', 'RRP', 'discount',
                    'brand', 'category', 'marketing_expense']:
            assert col in merged.columns, f"Missing column: {col}"
        assert '_merge' not in merged.columns

    def test_inputs_not_modified(self, mini_tables):
        """Test the merge is a pure transformation."""
        product, sales, marketing = mini_tables
        sales_before = sales.copy()
        merge_datasets(sales, product, marketing)

        pd.testing.assert_frame_equal(sales, sales_before)


class TestUnmatchedRows:
    """Test rows without a match are kept, not dropped."""

    def test_sales_without_product_kept(self, mini_tables):
        """Test a sales row for an unknown product survives with no brand."""
        product, sales, marketing = mini_tables
        extra = pd.DataFrame({
            'product_id': ['P9'], 'week_id': [1], 'sales': [5],
            'RRP': [10.0], 'discount': [0.0]
        })
        sales = pd.concat([sales, extra], ignore_index=True)

        merger = DatasetMerger()
        merged = merger.run(sales, product, marketing)

        assert len(merged) == len(sales)
        assert merged['brand'].isna().sum() == 1
        assert merger.merge_stats_['unmatched_product'] == 1

    def test_week_without_spend_kept(self, mini_tables):
        """Test rows for a week with no recorded spend survive with NaN spend."""
        product, sales, marketing = mini_tables
        marketing = marketing[marketing['week_id'] == 1]

        merger = DatasetMerger()
        merged = merger.run(sales, product, marketing)

        assert len(merged) == len(sales)
        assert merged.loc[merged['week_id'] == 2, 'marketing_expense'].isna().all()
        assert merger.merge_stats_['unmatched_marketing'] == 3


class TestCardinalityChecks:
    """Test duplicate keys are rejected rather than fanned out."""

    def test_duplicate_product_id_raises(self, mini_tables):
        """Test two catalog rows sharing a product_id are an integrity error."""
        product, sales, marketing = mini_tables
        product = pd.concat([product, product.iloc[[0]]], ignore_index=True)

        with pytest.raises(DataIntegrityError, match='product'):
            merge_datasets(sales, product, marketing)

    def test_duplicate_brand_week_raises(self, mini_tables):
        """Test two spend rows for one brand-week are an integrity error."""
        product, sales, marketing = mini_tables
        marketing = pd.concat([marketing, marketing.iloc[[0]]], ignore_index=True)

        with pytest.raises(DataIntegrityError, match='marketing'):
            merge_datasets(sales, product, marketing)

    def test_missing_join_key_raises(self, mini_tables):
        """Test a lookup table without the join key is rejected."""
        product, sales, marketing = mini_tables

        with pytest.raises(DataIntegrityError):
            merge_datasets(sales, product, marketing.drop(columns='week_id'))

    def test_synthetic_row_count(self, sample_tables):
        """Test count(analysis rows) == count(sales rows) on generated data."""
        product, sales, marketing = sample_tables
        merged = merge_datasets(sales, product, marketing)

        assert len(merged) == len(sales)
        assert merged['marketing_expense'].notna().all()


class TestJoinSpec:
    """Test explicit join descriptions."""

    def test_unknown_mode_rejected(self):
        """Test only named pandas join modes are accepted."""
        with pytest.raises(ValueError):
            JoinSpec(anchor='sales', other='product', keys=('product_id',), how='preserve_x')

    def test_named_modes_accepted(self):
        """Test every named mode constructs."""
        for how in ['left', 'right', 'inner', 'outer']:
            spec = JoinSpec(anchor='a', other='b', keys=('k',), how=how)
            assert spec.how == how
