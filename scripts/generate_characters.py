"""Generate random characters from a JSON catalog and save them as JSON.

Usage:
    python -m scripts.generate_characters --catalog data/catalog.json \
        [--count N] [--seed S] [--type Glaive] [--origin Tough] \
        [--workers W] [--out DIR] [-v]

The catalog file holds one object keyed by category (types, descriptors,
species, foci, cyphers, artifacts, oddities, equipment). It is validated
before anything is generated; an inconsistent catalog aborts the run.
Without --out, each sheet's character sentence is printed instead.
"""

import argparse
import json
import logging
import re
import sys
from pathlib import Path

from numenera_chargen.engine.validator import require_valid_catalog
from numenera_chargen.generator import generate_batch
from numenera_chargen.models.errors import CatalogError, PersistenceError
from numenera_chargen.parser.catalog_records import catalog_from_records
from numenera_chargen.persistence.codec import CharacterCodec, save_sheet


logger = logging.getLogger("generate_characters")


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_") or "character"


def output_path(out_dir: Path, index: int, name: str) -> Path:
    return out_dir / f"{index:03d}_{_slug(name)}.json"


def load_catalog(path: Path):
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise CatalogError(f"{path}: catalog must be a JSON object")
    catalog = catalog_from_records(payload)
    require_valid_catalog(catalog)
    return catalog


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate random characters")
    parser.add_argument("--catalog", type=Path, required=True, help="Catalog JSON file.")
    parser.add_argument("--count", type=int, default=1, help="Number of characters.")
    parser.add_argument("--seed", type=int, default=None, help="Master seed for reproducible runs.")
    parser.add_argument("--type", dest="type_name", help="Fix the character type.")
    parser.add_argument("--origin", dest="origin_name", help="Fix the descriptor or species.")
    parser.add_argument("--workers", type=int, default=1, help="Parallel generation threads.")
    parser.add_argument("--out", type=Path, help="Directory for saved sheets.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        catalog = load_catalog(args.catalog)
    except (OSError, json.JSONDecodeError, CatalogError) as exc:
        logger.error("cannot use catalog %s: %s", args.catalog, exc)
        return 2

    try:
        sheets = generate_batch(
            catalog,
            args.count,
            seed=args.seed,
            workers=args.workers,
            type_name=args.type_name,
            origin_name=args.origin_name,
        )
    except ValueError as exc:
        logger.error("generation failed: %s", exc)
        return 2

    if args.out is None:
        for sheet in sheets:
            print(f"{sheet.name}: {sheet.character_sentence()}")
        return 0

    codec = CharacterCodec(catalog)
    failures = 0
    for i, sheet in enumerate(sheets, start=1):
        try:
            path = save_sheet(codec, sheet, output_path(args.out, i, sheet.name))
        except PersistenceError as exc:
            logger.error("%s", exc)
            failures += 1
            continue
        print(path)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
