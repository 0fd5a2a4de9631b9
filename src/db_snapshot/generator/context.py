"""Per-run generator state."""

import random
from dataclasses import dataclass, field
from typing import Any

from faker import Faker


@dataclass
class GeneratorContext:
    """State owned by one generation run.

    Holds the key pools (``table.column`` -> values), per-table integer id
    counters, per-column uniqueness sets, and the seeded random sources.
    ``reset`` clears everything except the configuration; ``generate_dataset``
    calls it at the start of every run so nothing leaks between runs.

    Args:
        seed: Seed for ``random.Random`` and ``Faker``; ``None`` for a random run.
        null_probability: Chance of ``NULL`` for an ordinary nullable column.
        max_unique_attempts: Retry budget before a unique value falls back to
            a row-index suffix.
        locale: Faker locale.

    Example:
        >>> ctx = GeneratorContext(seed=42)
        >>> ctx.next_id("users")
        1
    """

    seed: int | None = None
    null_probability: float = 0.1
    max_unique_attempts: int = 1000
    locale: str = "en_US"
    key_pools: dict[str, list[Any]] = field(default_factory=dict, init=False)
    id_counters: dict[str, int] = field(default_factory=dict, init=False)
    unique_values: dict[str, set] = field(default_factory=dict, init=False)
    rng: random.Random = field(init=False, repr=False)
    faker: Faker = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.rng = random.Random(self.seed)
        self.faker = Faker(self.locale)
        if self.seed is not None:
            self.faker.seed_instance(self.seed)

    def reset(self) -> None:
        """Clear pools, counters and uniqueness sets; re-seed the random sources."""
        self.key_pools.clear()
        self.id_counters.clear()
        self.unique_values.clear()
        self.rng.seed(self.seed)
        if self.seed is not None:
            self.faker.seed_instance(self.seed)

    def next_id(self, table: str) -> int:
        self.id_counters[table] = self.id_counters.get(table, 0) + 1
        return self.id_counters[table]

    def seen(self, key: str) -> set:
        """Uniqueness set for ``table.column``."""
        return self.unique_values.setdefault(key, set())
