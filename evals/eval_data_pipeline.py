"""
Evaluation Script: Analysis Pipeline
====================================
Evaluates quality and consistency of the pipeline outputs.

Metrics:
- Analysis table coverage and price validity
- Brand ranking ordering and coverage
- Model fit status and sample sizes
"""

import json
from pathlib import Path
from typing import Any, Dict

import numpy as np
import pandas as pd


def evaluate_analysis_table(analysis_df: pd.DataFrame) -> Dict[str, Any]:
    """
    Evaluate the merged analysis table.

    Returns metrics on coverage, join completeness and price validity.
    """
    metrics = {}

    # Coverage
    metrics['total_records'] = len(analysis_df)
    metrics['unique_products'] = int(analysis_df['product_id'].nunique())
    metrics['unique_brands'] = int(analysis_df['brand'].nunique())
    metrics['unique_weeks'] = int(analysis_df['week_id'].nunique())

    # Join completeness
    metrics['missing_brand'] = int(analysis_df['brand'].isna().sum())
    metrics['missing_marketing'] = int(analysis_df['marketing_expense'].isna().sum())

    # Price validity
    final_price = analysis_df['final_price']
    metrics['nan_final_price'] = int(final_price.isna().sum())
    metrics['negative_final_price'] = int((final_price < 0).sum())
    metrics['final_price_above_rrp'] = int((final_price > analysis_df['RRP'] + 1e-9).sum())
    if 'validation_flags' in analysis_df.columns:
        metrics['flagged_rows'] = int((analysis_df['validation_flags'] != '').sum())

    if metrics['total_records']:
        metrics['final_price_mean'] = float(final_price.mean())
        metrics['avg_discount'] = float(analysis_df['discount'].mean())

    # Quality score (0-100)
    quality_score = 100
    if metrics['total_records'] == 0:
        quality_score = 0
    else:
        if metrics['negative_final_price'] > 0 or metrics['final_price_above_rrp'] > 0:
            quality_score -= 30
        if metrics['missing_brand'] > metrics['total_records'] * 0.05:
            quality_score -= 20
        if metrics['missing_marketing'] > metrics['total_records'] * 0.1:
            quality_score -= 10
        if metrics['nan_final_price'] > metrics['total_records'] * 0.1:
            quality_score -= 10

    metrics['quality_score'] = quality_score

    return metrics


def evaluate_brand_ranking(ranking_df: pd.DataFrame) -> Dict[str, Any]:
    """Check the ranking is sorted and covers the brands it should."""
    metrics = {}

    metrics['num_brands'] = len(ranking_df)
    averages = ranking_df['avg_weekly_dollar_sales'].to_numpy()
    metrics['is_sorted'] = bool(np.all(averages[:-1] >= averages[1:])) if len(averages) > 1 else True
    metrics['nan_averages'] = int(np.isnan(averages).sum())

    if len(ranking_df):
        metrics['top_brand'] = str(ranking_df['brand'].iloc[0])
        metrics['top_to_bottom_ratio'] = (
            float(averages[0] / averages[-1]) if averages[-1] > 0 else float('inf')
        )

    quality_score = 100
    if metrics['num_brands'] == 0:
        quality_score = 0
    else:
        if not metrics['is_sorted']:
            quality_score -= 50
        if metrics['nan_averages'] > 0:
            quality_score -= 20

    metrics['quality_score'] = quality_score

    return metrics


def evaluate_models(model_summary: Dict[str, Any]) -> Dict[str, Any]:
    """Summarise which specifications fitted and how well."""
    metrics = {}
    specs = model_summary.get('specifications', {})

    metrics['num_specifications'] = len(specs)
    metrics['num_fitted'] = sum(1 for s in specs.values() if s.get('status') == 'ok')
    metrics['failed'] = sorted(name for name, s in specs.items() if s.get('status') != 'ok')

    for name, spec in specs.items():
        if spec.get('status') == 'ok':
            metrics[f'{name}_nobs'] = spec['nobs']
            metrics[f'{name}_r_squared'] = spec['r_squared']

    # The two-stage model needs instrument columns, so only base and brand
    # equity count against the score
    quality_score = 100
    for required in ('base', 'brand_equity'):
        if specs.get(required, {}).get('status') != 'ok':
            quality_score -= 40
    if metrics['num_specifications'] == 0:
        quality_score = 0

    metrics['quality_score'] = quality_score

    return metrics


def run_evaluation(output_dir: Path) -> Dict[str, Dict[str, Any]]:
    """
    Run complete pipeline evaluation.

    Parameters
    ----------
    output_dir : Path
        Directory the pipeline runner wrote its outputs to

    Returns
    -------
    Dict containing evaluation results for each output
    """
    output_dir = Path(output_dir)
    results = {}

    print("=" * 60)
    print("Analysis Pipeline Evaluation")
    print("=" * 60)

    print("\n--- Analysis Table ---")
    table_path = output_dir / 'analysis_table.parquet'
    if table_path.exists():
        results['analysis_table'] = evaluate_analysis_table(pd.read_parquet(table_path))
        print(f"  Records: {results['analysis_table']['total_records']:,}")
        print(f"  Brands: {results['analysis_table']['unique_brands']:,}")
        print(f"  Quality Score: {results['analysis_table']['quality_score']}/100")
    else:
        print("  [MISSING] analysis_table.parquet")
        results['analysis_table'] = {'quality_score': 0, 'error': 'file not found'}

    print("\n--- Brand Ranking ---")
    ranking_path = output_dir / 'brand_ranking.csv'
    if ranking_path.exists():
        results['brand_ranking'] = evaluate_brand_ranking(pd.read_csv(ranking_path))
        print(f"  Brands: {results['brand_ranking']['num_brands']:,}")
        print(f"  Sorted: {results['brand_ranking']['is_sorted']}")
        print(f"  Quality Score: {results['brand_ranking']['quality_score']}/100")
    else:
        print("  [MISSING] brand_ranking.csv")
        results['brand_ranking'] = {'quality_score': 0, 'error': 'file not found'}

    print("\n--- Models ---")
    summary_path = output_dir / 'model_summary.json'
    if summary_path.exists():
        with open(summary_path) as f:
            results['models'] = evaluate_models(json.load(f))
        print(f"  Fitted: {results['models']['num_fitted']}/{results['models']['num_specifications']}")
        print(f"  Quality Score: {results['models']['quality_score']}/100")
    else:
        print("  [MISSING] model_summary.json")
        results['models'] = {'quality_score': 0, 'error': 'file not found'}

    scores = [r['quality_score'] for r in results.values() if 'quality_score' in r]
    overall_score = float(np.mean(scores)) if scores else 0.0

    print("\n" + "=" * 60)
    print(f"Overall Quality Score: {overall_score:.1f}/100")
    print("=" * 60)

    results['overall'] = {
        'quality_score': overall_score,
        'outputs_evaluated': len(scores),
        'all_files_present': all('error' not in r for r in results.values())
    }

    return results


def main():
    """Run evaluation and save results."""
    project_root = Path(__file__).parent.parent
    results = run_evaluation(project_root / 'data' / 'processed')

    output_path = project_root / 'evals' / 'data_pipeline_results.json'
    with open(output_path, 'w') as f:
        json.dump(results, f, indent=2, default=str)

    print(f"\nResults saved to: {output_path}")

    return results


if __name__ == '__main__':
    main()
