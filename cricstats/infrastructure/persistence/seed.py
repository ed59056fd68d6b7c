"""
Loads the player statistics CSV exports into the record collections.

Each collection is replaced wholesale. Cells that parse as numbers are stored
as numbers so that range filters (``{"Runs": {"$gt": 10000}}``) work; the
unnamed index column pandas writes into exported CSVs is dropped.
"""

import asyncio
import csv
from pathlib import Path
from typing import Any, Dict, List, Union

import structlog

from .document_store import DocumentStore

logger = structlog.get_logger(__name__)

SEED_FILES = [
    {"file": "test_players.csv", "collection": "test", "name": "Test"},
    {"file": "odi_players.csv", "collection": "odi", "name": "ODI"},
    {"file": "t20_players.csv", "collection": "t20", "name": "T20"},
]


def coerce_value(value: Any) -> Any:
    """Convert numeric-looking CSV cells to int/float, leave everything else untouched"""

    if not isinstance(value, str) or not value.strip():
        return value
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return value
    # nan/inf parse as floats but are not statistics
    if number != number or number in (float("inf"), float("-inf")):
        return value
    return number


def read_player_rows(path: Union[str, Path]) -> List[Dict[str, Any]]:
    rows = []
    with open(path, newline="", encoding="utf-8-sig") as handle:
        for row in csv.DictReader(handle):
            rows.append({
                key: coerce_value(value)
                for key, value in row.items()
                if key is not None and key.strip() != ""
            })
    return rows


async def seed_collections(store: DocumentStore, data_dir: Union[str, Path]) -> List[Dict[str, Any]]:
    """Replace the three record collections with the CSV contents found in ``data_dir``"""

    data_path = Path(data_dir)
    results: List[Dict[str, Any]] = []

    for entry in SEED_FILES:
        file_path = data_path / entry["file"]
        if not file_path.exists():
            logger.warning("Seed file not found", path=str(file_path))
            results.append({"format": entry["name"], "status": "File Not Found"})
            continue

        logger.info("Seeding collection", collection=entry["collection"], path=str(file_path))
        collection = store.collection(entry["collection"])
        await collection.delete_many({})

        rows = await asyncio.to_thread(read_player_rows, file_path)
        if not rows:
            logger.warning("No data in seed file", path=str(file_path))
            results.append({"format": entry["name"], "count": 0, "status": "No Data"})
            continue

        inserted = await collection.insert_many(rows)
        logger.info("Seeded collection", collection=entry["collection"], count=inserted)
        results.append({"format": entry["name"], "count": inserted, "status": "Success"})

    return results
