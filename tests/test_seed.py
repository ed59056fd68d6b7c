"""
Tests for loading the player CSV exports into the record store.
"""

import threading

import pytest

from cricstats.infrastructure.persistence import InMemoryDocumentStore
from cricstats.infrastructure.persistence import seed
from cricstats.infrastructure.persistence.seed import coerce_value, read_player_rows, seed_collections


TEST_CSV = """,Player,Span,Mat,Runs,HS,Avg,100
0,SR Tendulkar (INDIA),1989-2013,200,15921,248*,53.78,51
1,JE Root (ENG),2012-2025,153,13006,262,50.8,36
"""


@pytest.mark.parametrize("raw, expected", [
    ("15921", 15921),
    (" 53.78 ", 53.78),
    ("248*", "248*"),
    ("1989-2013", "1989-2013"),
    ("nan", "nan"),
    ("inf", "inf"),
    ("", ""),
    ("-", "-"),
])
def test_coerce_value(raw, expected):
    assert coerce_value(raw) == expected


def test_read_player_rows_drops_index_column(tmp_path):
    path = tmp_path / "test_players.csv"
    path.write_text(TEST_CSV, encoding="utf-8")

    rows = read_player_rows(path)

    assert len(rows) == 2
    assert list(rows[0]) == ["Player", "Span", "Mat", "Runs", "HS", "Avg", "100"]
    assert rows[0]["Runs"] == 15921
    assert rows[1]["HS"] == 262


@pytest.mark.asyncio
async def test_seed_collections_reports_each_format(tmp_path):
    (tmp_path / "test_players.csv").write_text(TEST_CSV, encoding="utf-8")
    (tmp_path / "odi_players.csv").write_text("Player,Runs\n", encoding="utf-8")
    store = InMemoryDocumentStore()

    results = await seed_collections(store, tmp_path)

    assert results == [
        {"format": "Test", "count": 2, "status": "Success"},
        {"format": "ODI", "count": 0, "status": "No Data"},
        {"format": "T20", "status": "File Not Found"},
    ]
    found = await store.collection("test").find({"Runs": {"$gt": 14000}})
    assert [row["Player"] for row in found] == ["SR Tendulkar (INDIA)"]


@pytest.mark.asyncio
async def test_seeding_replaces_existing_records(tmp_path):
    (tmp_path / "test_players.csv").write_text(TEST_CSV, encoding="utf-8")
    store = InMemoryDocumentStore({"test": [{"Player": "Stale"}]})

    await seed_collections(store, tmp_path)
    await seed_collections(store, tmp_path)

    assert await store.collection("test").count_documents({}) == 2
    assert await store.collection("test").find_one({"Player": "Stale"}) is None


@pytest.mark.asyncio
async def test_csv_is_read_off_the_event_loop_thread(tmp_path, monkeypatch):
    (tmp_path / "test_players.csv").write_text(TEST_CSV, encoding="utf-8")
    reader_threads = []

    def recording_reader(path):
        reader_threads.append(threading.get_ident())
        return read_player_rows(path)

    monkeypatch.setattr(seed, "read_player_rows", recording_reader)

    results = await seed_collections(InMemoryDocumentStore(), tmp_path)

    assert results[0]["count"] == 2
    assert reader_threads and reader_threads[0] != threading.get_ident()
