"""
Analysis Pipeline Runner
========================
Runs load -> merge -> final price -> brand ranking -> regressions.

Usage:
    python -m src.data_pipeline.run_pipeline
    python -m src.data_pipeline.run_pipeline --reference-brand Sony --on-invalid flag
    python -m src.data_pipeline.run_pipeline --config config.json

Output files (in data/processed/):
    - analysis_table.parquet
    - brand_ranking.csv
    - brand_equity_ranking.csv
    - coefficients_<specification>.csv
    - predicted_final_price.csv
    - model_summary.json
"""

import argparse
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from ..config import AnalysisConfig
from ..modeling.specifications import run_specifications
from .stage0_loader import load_datasets
from .stage1_merge import DatasetMerger
from .stage2_final_price import FinalPriceDeriver
from .stage3_brand_ranking import BrandRanker, add_weekly_dollar_sales

logger = logging.getLogger(__name__)


def build_analysis_table(
    sales: pd.DataFrame,
    product: pd.DataFrame,
    marketing: pd.DataFrame,
    on_invalid: str = 'raise'
) -> pd.DataFrame:
    """Merge the inputs and add final_price and weekly_dollar_sales."""
    merged = DatasetMerger().run(sales, product, marketing)
    priced = FinalPriceDeriver(on_invalid=on_invalid).run(merged)
    return add_weekly_dollar_sales(priced)


def run_analysis(
    sales: pd.DataFrame,
    product: pd.DataFrame,
    marketing: pd.DataFrame,
    config: Optional[AnalysisConfig] = None
) -> Dict[str, Any]:
    """
    Run the in-memory analysis on loaded tables.

    Returns
    -------
    Dict with 'analysis_table', 'brand_ranking', 'reference_brand' and
    'models' (specification name -> SpecificationOutcome)
    """
    config = config or AnalysisConfig()

    analysis_df = build_analysis_table(sales, product, marketing, on_invalid=config.on_invalid)
    ranking = BrandRanker().run(analysis_df)

    reference_brand = config.reference_brand
    if reference_brand is None:
        if ranking.empty:
            raise ValueError("No reference brand configured and no brand could be ranked")
        reference_brand = ranking['brand'].iloc[0]
        logger.info(f"No reference brand configured; using top-ranked brand {reference_brand}")

    models = run_specifications(
        analysis_df,
        reference_brand,
        instruments=config.instruments,
        reference_first=config.reference_first
    )

    return {
        'analysis_table': analysis_df,
        'brand_ranking': ranking,
        'reference_brand': reference_brand,
        'models': models,
    }


def save_outputs(results: Dict[str, Any], output_dir: Path) -> Dict[str, Any]:
    """Write tables and the model summary; returns the summary."""
    output_dir.mkdir(parents=True, exist_ok=True)

    results['analysis_table'].to_parquet(output_dir / 'analysis_table.parquet', index=False)
    results['brand_ranking'].to_csv(output_dir / 'brand_ranking.csv', index=False)

    summary = {'reference_brand': results['reference_brand'], 'specifications': {}}
    for name, outcome in results['models'].items():
        if outcome.ok:
            outcome.result.to_frame().to_csv(output_dir / f'coefficients_{name}.csv', index=False)
            summary['specifications'][name] = {
                'status': 'ok',
                'formula': outcome.result.formula,
                'nobs': outcome.result.nobs,
                'r_squared': outcome.result.r_squared,
            }
        else:
            summary['specifications'][name] = {'status': 'failed', 'error': outcome.error}

        if 'ranking' in outcome.extras:
            outcome.extras['ranking'].to_csv(output_dir / 'brand_equity_ranking.csv', index=False)
        if 'predicted_final_price' in outcome.extras:
            outcome.extras['predicted_final_price'].to_frame().to_csv(
                output_dir / 'predicted_final_price.csv', index_label='row'
            )

    with open(output_dir / 'model_summary.json', 'w') as f:
        json.dump(summary, f, indent=2, default=str)

    return summary


def run_full_pipeline(config: AnalysisConfig) -> Dict[str, Any]:
    """Load inputs from disk, run the analysis and save outputs."""
    print("=" * 70)
    print("Electronics Marketing-Mix Analysis")
    print("=" * 70)

    total_start = time.time()

    product, sales, marketing = load_datasets(
        config.products_path, config.sales_path, config.marketing_path
    )
    print(f"\nLoaded {len(sales):,} sales rows")
    print(f"  - Products: {product['product_id'].nunique():,}")
    print(f"  - Brands: {product['brand'].nunique():,}")
    print(f"  - Weeks: {sales['week_id'].nunique():,}")

    results = run_analysis(sales, product, marketing, config)

    print("\n" + "=" * 70)
    print("Brand ranking (average weekly dollar sales)")
    print("=" * 70)
    print(results['brand_ranking'].to_string(index=False))

    for name, outcome in results['models'].items():
        print("\n" + "=" * 70)
        print(f"Model: {name}")
        print("=" * 70)
        if outcome.ok:
            print(f"Formula: {outcome.result.formula}")
            print(outcome.result.to_frame().to_string(index=False))
        else:
            print(f"FAILED: {outcome.error}")

    output_dir = Path(config.output_dir)
    save_outputs(results, output_dir)

    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"\nTotal time: {time.time() - total_start:.1f}s")
    print(f"Outputs written to: {output_dir}")

    return results


def main():
    parser = argparse.ArgumentParser(description='Run the electronics marketing-mix analysis')
    parser.add_argument('--config', type=str, help='JSON file with AnalysisConfig overrides')
    parser.add_argument('--products', type=str, help='Product catalog CSV')
    parser.add_argument('--sales', type=str, help='Weekly sales CSV')
    parser.add_argument('--marketing', type=str, help='Weekly brand marketing CSV')
    parser.add_argument('--output-dir', type=str, help='Directory for output tables')
    parser.add_argument(
        '--reference-brand',
        type=str,
        help='Brand held out in the brand-equity model (default: top-ranked brand)'
    )
    parser.add_argument(
        '--reference-first',
        action='store_true',
        default=None,
        help='List the reference brand first in the brand-equity ranking'
    )
    parser.add_argument('--instruments', nargs='+', help='Instrument columns for the two-stage model')
    parser.add_argument(
        '--on-invalid',
        choices=['raise', 'flag'],
        help='Abort on out-of-range RRP/discount, or flag and exclude those rows'
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    config = AnalysisConfig.from_json(args.config) if args.config else AnalysisConfig()
    overrides = {
        'products_path': args.products,
        'sales_path': args.sales,
        'marketing_path': args.marketing,
        'output_dir': args.output_dir,
        'reference_brand': args.reference_brand,
        'reference_first': args.reference_first,
        'instruments': tuple(args.instruments) if args.instruments else None,
        'on_invalid': args.on_invalid,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)

    run_full_pipeline(config)


if __name__ == '__main__':
    main()
