"""
Generate Sample Data
====================
Writes synthetic product, sales and marketing tables with the schema the
pipeline expects, for local runs without the marketplace extract.

Price is made endogenous through an unobserved demand shock, and two cost
shifters (Z1, Z2) are added to the sales table so the two-stage model has
instruments to work with.

Usage:
    python scripts/generate_sample_data.py
    python scripts/generate_sample_data.py --products-per-brand 8 --weeks 52 --output-dir raw_data
"""

import argparse
from pathlib import Path
from typing import Dict, Tuple

import numpy as np
import pandas as pd

BRANDS = {
    # brand: (base demand, list price level)
    'Sony': (60.0, 450.0),
    'Samsung': (55.0, 400.0),
    'LG': (45.0, 350.0),
    'Philips': (35.0, 250.0),
    'Panasonic': (30.0, 300.0),
}
CATEGORIES = ['television', 'headphones', 'soundbar', 'monitor']


def generate_tables(
    products_per_brand: int = 6,
    n_weeks: int = 40,
    seed: int = 42
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """
    Build (product, sales, marketing) tables.

    Demand model:
        sales = base_demand - 0.08 * final_price + 0.002 * marketing + u
    where u also raises the discount-adjusted price, biasing naive OLS.
    """
    rng = np.random.default_rng(seed)

    products = []
    for brand in BRANDS:
        for i in range(products_per_brand):
            products.append({
                'product_id': f'{brand[:3].upper()}{i:04d}',
                'brand': brand,
                'category': CATEGORIES[i % len(CATEGORIES)],
                'screen_size_in': float(rng.choice([0, 24, 32, 43, 55, 65])),
                'warranty_years': int(rng.integers(1, 4)),
            })
    product_df = pd.DataFrame(products)

    weeks = np.arange(1, n_weeks + 1)
    marketing = []
    for brand in BRANDS:
        level = rng.uniform(5_000, 20_000)
        for week in weeks:
            marketing.append({
                'brand': brand,
                'week_id': int(week),
                'marketing_expense': round(max(0.0, level + rng.normal(0, 2_000)), 2),
            })
    marketing_df = pd.DataFrame(marketing)
    spend: Dict[Tuple[str, int], float] = {
        (r.brand, r.week_id): r.marketing_expense for r in marketing_df.itertuples()
    }

    sales = []
    for prod in product_df.itertuples():
        base_demand, price_level = BRANDS[prod.brand]
        rrp = round(price_level * rng.uniform(0.7, 1.3), 2)
        for week in weeks:
            z1 = rng.normal(0, 1)   # component cost shock
            z2 = rng.normal(0, 1)   # freight cost shock
            u = rng.normal(0, 5)    # unobserved demand shock
            discount = float(np.clip(0.15 - 0.04 * z1 - 0.03 * z2 - 0.01 * u + rng.normal(0, 0.02), 0, 0.6))
            final_price = rrp * (1 - discount)
            units = base_demand - 0.08 * final_price + 0.002 * spend[(prod.brand, int(week))] + u
            sales.append({
                'product_id': prod.product_id,
                'week_id': int(week),
                'sales': max(0, int(round(units))),
                'RRP': rrp,
                'discount': round(discount, 4),
                'Z1': round(z1, 4),
                'Z2': round(z2, 4),
            })
    sales_df = pd.DataFrame(sales)

    return product_df, sales_df, marketing_df


def main():
    parser = argparse.ArgumentParser(description='Generate synthetic marketing-mix inputs')
    parser.add_argument('--products-per-brand', type=int, default=6)
    parser.add_argument('--weeks', type=int, default=40)
    parser.add_argument('--seed', type=int, default=42)
    parser.add_argument('--output-dir', type=str, default=None,
                        help='Output directory (default: <project>/raw_data)')
    args = parser.parse_args()

    output_dir = Path(args.output_dir) if args.output_dir else Path(__file__).parent.parent / 'raw_data'
    output_dir.mkdir(parents=True, exist_ok=True)

    product_df, sales_df, marketing_df = generate_tables(
        products_per_brand=args.products_per_brand,
        n_weeks=args.weeks,
        seed=args.seed
    )

    product_df.to_csv(output_dir / 'product.csv', index=False)
    sales_df.to_csv(output_dir / 'sales.csv', index=False)
    marketing_df.to_csv(output_dir / 'marketing.csv', index=False)

    print(f"Wrote {len(product_df):,} products, {len(sales_df):,} sales rows, "
          f"{len(marketing_df):,} marketing rows to {output_dir}")


if __name__ == '__main__':
    main()
