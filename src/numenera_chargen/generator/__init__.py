"""Random character generation."""

from numenera_chargen.generator.random_strategy import (
    RandomAssembler,
    distribute_bonus,
    generate_batch,
)

__all__ = [
    "RandomAssembler",
    "distribute_bonus",
    "generate_batch",
]
