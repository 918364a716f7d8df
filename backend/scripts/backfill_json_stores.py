from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from studyplan.db.session import get_engine, session_scope
from studyplan.models import PerformanceStore
from studyplan.persistence import DATA_DIR
from studyplan.repositories.task_performance import task_performance


logger = logging.getLogger("backfill")


def _load_json(path: Path) -> object:
    with path.open(encoding="utf-8") as handle:
        return json.load(handle)


def backfill_performance_stores(path: Path, *, overwrite: bool = False) -> int:
    """Import every plan document from a JSON file store into the database."""
    if not path.exists():
        logger.info("No performance stores found at %s", path)
        return 0
    payload = _load_json(path)
    if not isinstance(payload, dict):
        logger.warning("Performance store payload was not a mapping; skipping")
        return 0

    stores: Dict[str, PerformanceStore] = {}
    for plan_id, document in payload.items():
        if not str(plan_id).strip():
            logger.warning("Skipping performance store with an empty plan id")
            continue
        try:
            stores[plan_id] = PerformanceStore.model_validate(document)
        except ValidationError as exc:
            logger.warning("Skipping invalid performance store for %s: %s", plan_id, exc)

    imported = 0
    with session_scope() as session:
        for plan_id, store in stores.items():
            if not overwrite and task_performance.get(session, plan_id) is not None:
                logger.info("Plan %s already has database records; skipping", plan_id)
                continue
            task_performance.replace(session, plan_id, store)
            imported += 1
    logger.info("Imported %d performance stores", imported)
    return imported


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Backfill JSON performance stores into the database.")
    parser.add_argument("--source", type=Path, default=DATA_DIR / "task_performance.json")
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace plans that already have records in the database.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = parse_args(argv)
    get_engine()
    total = backfill_performance_stores(args.source, overwrite=args.overwrite)
    logger.info("Backfill completed: %d performance stores", total)
    return total


if __name__ == "__main__":
    main()
