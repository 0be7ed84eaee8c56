"""
Analysis Configuration
======================
Paths and model settings shared by the pipeline runner.
"""

import json
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Tuple, Union


@dataclass
class AnalysisConfig:
    """Configuration for one pipeline run."""
    # Inputs
    products_path: str = 'raw_data/product.csv'
    sales_path: str = 'raw_data/sales.csv'
    marketing_path: str = 'raw_data/marketing.csv'

    # Outputs
    output_dir: str = 'data/processed'

    # Feature derivation
    on_invalid: str = 'raise'  # 'raise' or 'flag'

    # Brand-equity model; None means the top brand of the ranking
    reference_brand: Optional[str] = None
    # Pin the reference to the top of the equity ranking
    reference_first: bool = False

    # Two-stage model
    instruments: Tuple[str, ...] = field(default_factory=lambda: ('Z1', 'Z2'))

    def __post_init__(self):
        if self.on_invalid not in ('raise', 'flag'):
            raise ValueError(f"on_invalid must be 'raise' or 'flag', got {self.on_invalid!r}")
        self.instruments = tuple(self.instruments)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> 'AnalysisConfig':
        """Load config overrides from a JSON file."""
        with open(path) as f:
            overrides = json.load(f)

        unknown = set(overrides) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        return cls(**overrides)

    def to_dict(self) -> dict:
        config = asdict(self)
        config['instruments'] = list(self.instruments)
        return config
