"""Configuration knobs for the assembly engine.

Pools, bonus points, edge, effort, cypher limits and shins are catalog
data and never live here.
"""

from dataclasses import dataclass


@dataclass(slots=True)
class AssemblyConfig:
    """Tuneable parameters that aren't part of the game data."""

    max_name_length: int = 64
    max_random_artifacts: int = 1    # Random strategy rolls 0..N artifacts
    max_random_purchases: int = 3    # Random strategy buys at most N items
