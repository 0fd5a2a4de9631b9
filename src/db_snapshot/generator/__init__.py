"""Synthetic, referentially consistent test data."""

from db_snapshot.generator.context import GeneratorContext
from db_snapshot.generator.dataset import (
    Dataset,
    build_key_pools,
    generate_dataset,
    with_placeholder_enums,
    write_dataset,
)

__all__ = [
    "GeneratorContext",
    "Dataset",
    "build_key_pools",
    "generate_dataset",
    "with_placeholder_enums",
    "write_dataset",
]
