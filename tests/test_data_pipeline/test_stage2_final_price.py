"""
Tests for Stage 2: Final Price Derivation
=========================================
"""

import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from src.data_pipeline.stage2_final_price import (
    FinalPriceDeriver,
    derive_final_price,
    derive_final_price_row,
)
from src.errors import DataIntegrityError


class TestDeriveFinalPriceRow:
    """Test the row-wise contract."""

    def test_example_row(self):
        """Test RRP 100 at 20% discount gives 80."""
        row = derive_final_price_row({'RRP': 100.0, 'discount': 0.2, 'sales': 50})

        assert row['final_price'] == pytest.approx(80.0)
        assert row['final_price'] * row['sales'] == pytest.approx(4000.0)

    def test_input_not_modified(self):
        """Test a new dict is returned."""
        original = {'RRP': 100.0, 'discount': 0.2}
        derive_final_price_row(original)

        assert 'final_price' not in original

    @pytest.mark.parametrize('discount', [-0.1, 1.5])
    def test_discount_out_of_range_raises(self, discount):
        """Test discounts outside [0, 1] are rejected."""
        with pytest.raises(DataIntegrityError):
            derive_final_price_row({'RRP': 100.0, 'discount': discount})

    def test_negative_rrp_raises(self):
        """Test a negative list price is rejected."""
        with pytest.raises(DataIntegrityError):
            derive_final_price_row({'RRP': -5.0, 'discount': 0.1})

    def test_missing_input_gives_nan(self):
        """Test a missing discount gives a missing price, not an error."""
        row = derive_final_price_row({'RRP': 100.0, 'discount': None})
        assert np.isnan(row['final_price'])

    def test_bounds_hold_on_grid(self):
        """Test 0 <= final_price <= RRP for valid inputs."""
        for rrp in [0.0, 0.01, 19.99, 1500.0]:
            for discount in np.linspace(0, 1, 11):
                price = derive_final_price_row({'RRP': rrp, 'discount': discount})['final_price']
                assert 0 <= price <= rrp + 1e-9


class TestFinalPriceDeriver:
    """Test the vectorised frame version."""

    def test_init(self):
        """Test default mode raises on invalid rows."""
        deriver = FinalPriceDeriver()
        assert deriver.on_invalid == 'raise'

    def test_unknown_mode_rejected(self):
        """Test only raise/flag are accepted."""
        with pytest.raises(ValueError):
            FinalPriceDeriver(on_invalid='clamp')

    def test_values(self, mini_tables):
        """Test final_price = RRP * (1 - discount) on every row."""
        _, sales, _ = mini_tables
        result = derive_final_price(sales)

        expected = sales['RRP'] * (1 - sales['discount'])
        np.testing.assert_allclose(result['final_price'], expected)
        assert (result['validation_flags'] == '').all()

    def test_bounds(self, sample_tables):
        """Test final price lies within [0, RRP] on generated data."""
        _, sales, _ = sample_tables
        result = derive_final_price(sales)

        assert (result['final_price'] >= 0).all()
        assert (result['final_price'] <= result['RRP'] + 1e-9).all()

    def test_raise_mode(self, mini_tables):
        """Test any invalid row aborts in raise mode."""
        _, sales, _ = mini_tables
        sales = sales.copy()
        sales.loc[2, 'discount'] = 1.2

        with pytest.raises(DataIntegrityError, match='discount_out_of_range'):
            derive_final_price(sales, on_invalid='raise')

    def test_flag_mode(self, mini_tables):
        """Test invalid rows are flagged with NaN price, not clamped."""
        _, sales, _ = mini_tables
        sales = sales.copy()
        sales.loc[2, 'discount'] = 1.2
        sales.loc[3, 'RRP'] = -1.0

        deriver = FinalPriceDeriver(on_invalid='flag')
        result = deriver.run(sales)

        assert deriver.n_flagged_ == 2
        assert np.isnan(result.loc[2, 'final_price'])
        assert np.isnan(result.loc[3, 'final_price'])
        assert result.loc[2, 'validation_flags'] == 'discount_out_of_range'
        assert result.loc[3, 'validation_flags'] == 'negative_rrp'
        assert result.loc[0, 'final_price'] == pytest.approx(80.0)

    def test_both_flags_joined(self):
        """Test a row failing both rules carries both flags."""
        sales = pd.DataFrame({'RRP': [-10.0], 'discount': [2.0]})
        result = derive_final_price(sales, on_invalid='flag')

        assert result.loc[0, 'validation_flags'] == 'negative_rrp|discount_out_of_range'

    def test_missing_not_flagged(self):
        """Test missing inputs give NaN without a validation flag."""
        sales = pd.DataFrame({'RRP': [100.0, np.nan], 'discount': [np.nan, 0.1]})
        result = derive_final_price(sales)

        assert result['final_price'].isna().all()
        assert (result['validation_flags'] == '').all()
