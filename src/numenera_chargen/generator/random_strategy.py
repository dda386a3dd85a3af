"""Random character generation over the assembly engine.

Drives the same step sequence the interactive path uses, picking
uniformly among the options the engine offers at each step. Every draw
goes through the injected RandomSource (only ``randint`` is used), so a
fixed seed or scripted sequence reproduces a character exactly.

A catalog that passed ``require_valid_catalog`` always yields a sheet
with zero validation errors.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from numenera_chargen.engine.assembly import AssemblyEngine
from numenera_chargen.engine.build_config import AssemblyConfig
from numenera_chargen.engine.dice import RandomSource
from numenera_chargen.models.catalog import Catalog, Origin
from numenera_chargen.models.character import CharacterSheet, Pools
from numenera_chargen.models.constants import ATTRIBUTES, Gender


logger = logging.getLogger(__name__)

T = TypeVar("T")

FIRST_NAMES: tuple[str, ...] = (
    "Aric", "Beren", "Calla", "Dara", "Elara", "Finn", "Galen", "Hela",
    "Ira", "Joren", "Kael", "Luna", "Mira", "Nox", "Orion", "Pyra",
    "Quinn", "Rhen", "Sera", "Tal", "Uma", "Vex", "Wren", "Xander",
    "Yara", "Zephyr", "Ash", "Blade", "Crow", "Drake",
)

SURNAMES: tuple[str, ...] = (
    "Ashworth", "Blackwood", "Cloudstrider", "Dawnbringer", "Emberforge",
    "Frostwhisper", "Goldleaf", "Hawkwind", "Ironheart", "Jadewing",
    "Keenedge", "Lightbringer", "Moonshadow", "Nightfall", "Oakenshield",
    "Proudfoot", "Quicksilver", "Ravenwood", "Starfire", "Thornblade",
    "Undercroft", "Valeheart", "Windrunner", "Wyrmcaller", "Yellowhammer",
    "Zenithar",
)

FULL_NAME_PERCENT = 70


def choose(rng: RandomSource, options: Sequence[T]) -> T:
    """Uniform pick from a non-empty sequence."""
    if not options:
        raise ValueError("Cannot choose from an empty option list")
    return options[rng.randint(0, len(options) - 1)]


def sample(rng: RandomSource, options: Sequence[T], k: int) -> list[T]:
    """*k* distinct picks, in draw order (partial Fisher-Yates)."""
    if k > len(options):
        raise ValueError(f"Cannot pick {k} of {len(options)} options")
    pool = list(options)
    for i in range(k):
        j = rng.randint(i, len(pool) - 1)
        pool[i], pool[j] = pool[j], pool[i]
    return pool[:k]


def distribute_bonus(rng: RandomSource, base: Pools, allotment: int) -> Pools:
    """Spend exactly *allotment* points, first lifting every pool to 1.

    Raises ValueError if the deficit alone exceeds the allotment (the
    catalog check reports such type/origin pairs up front).
    """
    values = {attr: max(0, 1 - base.get(attr)) for attr in ATTRIBUTES}
    left = allotment - sum(values.values())
    if left < 0:
        raise ValueError(f"Pools {base} cannot all be made positive with {allotment} points")
    for _ in range(left):
        values[choose(rng, ATTRIBUTES)] += 1
    return Pools.from_mapping(values)


class RandomAssembler:
    """Builds complete characters without user input."""

    __slots__ = ("_catalog", "_rng", "_config")

    def __init__(
        self,
        catalog: Catalog,
        rng: RandomSource,
        config: AssemblyConfig | None = None,
    ) -> None:
        self._catalog = catalog
        self._rng = rng
        self._config = config or AssemblyConfig()

    def random_name(self) -> str:
        first = choose(self._rng, FIRST_NAMES)
        if self._rng.randint(1, 100) <= FULL_NAME_PERCENT:
            return f"{first} {choose(self._rng, SURNAMES)}"
        return first

    def _resolve_origin(self, origin_name: str | None, engine: AssemblyEngine) -> Origin:
        if origin_name is None:
            return choose(self._rng, engine.available_origins())
        origin = self._catalog.find_origin(origin_name)
        if origin is None:
            raise ValueError(f"Unknown descriptor or species {origin_name!r}")
        return origin

    def generate(
        self,
        type_name: str | None = None,
        origin_name: str | None = None,
    ) -> CharacterSheet:
        """Run one session from NAME_ENTRY to a finalized sheet.

        *type_name* / *origin_name* pin those choices instead of drawing them.
        """
        rng = self._rng
        cfg = self._config
        engine = AssemblyEngine(self._catalog, rng, cfg)

        engine.set_name(self.random_name())
        engine.advance()

        engine.set_gender(choose(rng, list(Gender)))
        engine.advance()

        if type_name is None:
            char_type = engine.select_type(choose(rng, engine.available_types()).name)
        else:
            char_type = engine.select_type(type_name)
        engine.advance()

        origin = engine.select_origin(self._resolve_origin(origin_name, engine))
        engine.advance()

        focus = choose(rng, engine.available_foci())
        connection = choose(rng, focus.connections) if focus.connections else None
        engine.select_focus(focus.name, connection)
        engine.advance()

        bonus = distribute_bonus(
            rng, char_type.base_pools + origin.modifiers, engine.bonus_allotment()
        )
        engine.allocate_bonus(bonus.might, bonus.speed, bonus.intellect)
        engine.advance()

        for ability in sample(rng, engine.available_abilities(), char_type.ability_count):
            engine.select_ability(ability.name)
        engine.advance()

        cyphers = engine.available_cyphers()
        limit = char_type.cypher_limit
        if limit > 0 and cyphers:
            count = min(rng.randint(limit - 1, limit), len(cyphers))
            for cypher in sample(rng, cyphers, count):
                engine.select_cypher(cypher.name)
        artifacts = engine.available_artifacts()
        if artifacts and cfg.max_random_artifacts > 0:
            count = min(rng.randint(0, cfg.max_random_artifacts), len(artifacts))
            for artifact in sample(rng, artifacts, count):
                engine.select_artifact(artifact.name)
        engine.advance()

        engine.select_oddity(choose(rng, engine.available_oddities()).name)
        engine.advance()

        for _ in range(rng.randint(0, cfg.max_random_purchases)):
            affordable = engine.shop_items(affordable_only=True)
            if not affordable:
                break
            engine.purchase(choose(rng, affordable).name)
        engine.advance()

        return engine.finalize()


def generate_batch(
    catalog: Catalog,
    count: int,
    seed: int | None = None,
    workers: int = 1,
    config: AssemblyConfig | None = None,
    type_name: str | None = None,
    origin_name: str | None = None,
) -> list[CharacterSheet]:
    """Generate *count* characters, optionally across worker threads.

    Each session gets its own engine, ledger and ``random.Random`` seeded
    from a master generator, so the result list is identical for a given
    *seed* whatever the worker count.
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    master = random.Random(seed)
    seeds = [master.getrandbits(64) for _ in range(count)]

    def _one(session_seed: int) -> CharacterSheet:
        assembler = RandomAssembler(catalog, random.Random(session_seed), config)
        return assembler.generate(type_name=type_name, origin_name=origin_name)

    if workers == 1:
        sheets = [_one(s) for s in seeds]
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            sheets = list(pool.map(_one, seeds))
    logger.info("generated %d character(s) with %d worker(s)", len(sheets), workers)
    return sheets
