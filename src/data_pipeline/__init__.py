"""
Data Pipeline Module
====================
Builds the analysis table and the descriptive brand ranking.

Stages:
0. Loader - Read product, sales and marketing tables
1. Merge - Sales-anchored joins to product and marketing spend
2. Final Price - RRP net of discount, with range validation
3. Brand Ranking - Mean weekly dollar sales per brand
"""

from .stage0_loader import load_datasets
from .stage1_merge import DatasetMerger, JoinSpec, merge_datasets
from .stage2_final_price import FinalPriceDeriver, derive_final_price, derive_final_price_row
from .stage3_brand_ranking import BrandRanker, add_weekly_dollar_sales, rank_brands

__all__ = [
    'load_datasets',
    'DatasetMerger',
    'JoinSpec',
    'merge_datasets',
    'FinalPriceDeriver',
    'derive_final_price',
    'derive_final_price_row',
    'BrandRanker',
    'add_weekly_dollar_sales',
    'rank_brands',
]
