"""
Test Suite for Batch Generation and Search

Tests:
1. NDJSON parsing (English and Portuguese keys, invalid lines)
2. A batch persists each item and links its playlists
3. A failing item is reported and the batch continues
4. A newer search supersedes the one in flight
5. A storage error fails its item and the batch continues
"""

import asyncio
import sys
sys.path.insert(0, '.')

from fakes import FakeFieldClient, FakeRepository, make_session


def make_runner(session, repository):
    from studio.services.batch_runner import BatchRunner

    progress = []
    runner = BatchRunner(session, repository, progress=lambda i, n, item: progress.append((i, n, item.ok)))
    runner.speech_wait = 1.0
    runner.speech_grace = 0.05
    runner.image_wait = 0.05
    return runner, progress


def test_parse_ndjson():
    """Test 1: Seed lines in both key sets; bad lines carry an error."""
    print("\n[TEST 1] NDJSON Parsing")
    print("-" * 50)

    from studio.services.batch_runner import parse_ndjson

    text = "\n".join([
        '{"title": "Morning Peace", "biblical_base": "Salmos 4:8", "topic": "Peace", "playlists": ["Mornings", " "]}',
        '{"Título da Oração": "Força", "Base bíblica": "Isaías 40:31", "Tema central": "Strength", "Playlist": "Coragem"}',
        '',
        '{"title": "No topic", "biblical_base": "João 14:27"}',
        'not json at all',
        '["a", "list"]',
    ])
    lines = parse_ndjson(text)

    assert len(lines) == 5
    assert lines[0].title == "Morning Peace" and lines[0].playlists == ["Mornings"]
    assert lines[0].error is None
    print("  ✓ English keys parsed, blank playlist names dropped")

    assert lines[1].title == "Força" and lines[1].biblical_base == "Isaías 40:31"
    assert lines[1].topic == "Strength" and lines[1].playlists == ["Coragem"]
    print("  ✓ Portuguese keys parsed, single playlist string accepted")

    assert lines[2].error == "Missing required fields"
    assert lines[3].error == "Invalid JSON" and lines[4].error == "Invalid JSON"
    print("  ✓ Incomplete and invalid lines flagged")


def test_batch_persists_items():
    """Test 2: Every valid item is stored and linked to its playlists."""
    print("\n[TEST 2] Batch Run")
    print("-" * 50)

    from studio.services.batch_runner import parse_ndjson

    text = "\n".join([
        '{"title": "Morning Peace", "biblical_base": "Salmos 4:8", "topic": "Peace", "playlists": ["Mornings", "Peace"]}',
        '{"title": "Evening Rest", "biblical_base": "Mateus 11:28", "topic": "Rest", "playlists": ["mornings"]}',
        'broken',
    ])

    async def scenario():
        repository = FakeRepository()
        session = make_session(repository=repository)
        runner, progress = make_runner(session, repository)
        results = await runner.run(parse_ndjson(text), category_id="cat-7")
        return repository, results, progress

    repository, results, progress = asyncio.run(scenario())

    assert [r.ok for r in results] == [True, True], f"Got {results}"
    assert progress == [(1, 2, True), (2, 2, True)]
    print("  ✓ Two items generated, invalid line skipped")

    first, second = (repository.records[r.asset_id] for r in results)
    assert first["title"] == "Morning Peace" and second["title"] == "Evening Rest"
    assert first["biblical_base"] == "Salmos 4:8" and second["biblical_base"] == "Mateus 11:28"
    assert first["category_id"] == "cat-7"
    assert first["created_by"] == "admin-1"
    print("  ✓ Seed title and biblical base stored on each record")

    assert results[0].playlists == ["Mornings", "Peace"]
    assert len(repository.playlists) == 2
    assert repository.playlist_links == [
        ("playlist-1", results[0].asset_id),
        ("playlist-2", results[0].asset_id),
        ("playlist-1", results[1].asset_id),
    ]
    print("  ✓ Playlists created once and matched case-insensitively")


def test_failing_item_does_not_stop_batch():
    """Test 3: An item whose root never generates fails alone."""
    print("\n[TEST 3] Failing Item")
    print("-" * 50)

    from studio.models.draft import FieldName
    from studio.services.batch_runner import BatchLine

    def main_text(context):
        if context["topic"] == "Broken":
            return None
        return "Lord, thank you for this new day. Amen."

    lines = [
        BatchLine(raw="{}", title="Broken Prayer", biblical_base="Salmos 1", topic="Broken"),
        BatchLine(raw="{}", title="Working Prayer", biblical_base="Salmos 2", topic="Working"),
    ]

    async def scenario():
        repository = FakeRepository()
        field_client = FakeFieldClient({FieldName.MAIN_TEXT: main_text})
        session = make_session(field_client=field_client, repository=repository)
        runner, _ = make_runner(session, repository)
        results = await runner.run(lines)
        return repository, field_client, results

    repository, field_client, results = asyncio.run(scenario())

    broken, working = results
    assert not broken.ok and "main_text" in broken.error
    assert field_client.fields_called().count(FieldName.MAIN_TEXT) == 3
    print(f"  ✓ Failed after one retry: {broken.error}")

    assert working.ok
    assert list(repository.records) == [working.asset_id]
    assert repository.records[working.asset_id]["transcript"].count("Lord, thank you for this new day.") == 1
    print("  ✓ Next item generated from a clean draft")


def test_search_supersedes_previous():
    """Test 4: Only the latest search returns results."""
    print("\n[TEST 4] Cancellable Search")
    print("-" * 50)

    from studio.clients.search_client import SearchClient

    async def scenario():
        repository = FakeRepository()
        repository.records = {
            "audio-1": {"title": "Gratitude for Family"},
            "audio-2": {"title": "Grace in Trials"},
        }
        repository.search_gates["gra"] = asyncio.Event()
        client = SearchClient(repository)

        first = asyncio.create_task(client.search("gra"))
        await asyncio.sleep(0)
        second = await client.search("grat")
        superseded = await first
        idle_cancel = client.cancel()
        return superseded, second, idle_cancel

    superseded, second, idle_cancel = asyncio.run(scenario())
    assert superseded is None
    assert [r["id"] for r in second] == ["audio-1"]
    assert not idle_cancel
    print("  ✓ Stale search returned None, latest search answered")


def test_storage_error_does_not_stop_batch():
    """Test 5: A storage failure ends its own item; the next item is stored."""
    print("\n[TEST 5] Storage Error Mid-Batch")
    print("-" * 50)

    from studio.services.batch_runner import BatchLine

    lines = [
        BatchLine(raw="{}", title="Broken Prayer", biblical_base="Salmos 1", topic="Healing"),
        BatchLine(raw="{}", title="Working Prayer", biblical_base="Salmos 2", topic="Hope"),
    ]

    async def scenario():
        repository = FakeRepository(broken_titles=["Broken Prayer"])
        session = make_session(repository=repository)
        runner, progress = make_runner(session, repository)
        results = await runner.run(lines)
        return repository, results, progress

    repository, results, progress = asyncio.run(scenario())

    broken, working = results
    assert not broken.ok and broken.error == "Insert returned no rows", f"Got {broken}"
    assert progress == [(1, 2, False), (2, 2, True)]
    print(f"  ✓ Storage error reported on its item: {broken.error}")

    assert working.ok
    assert [r["title"] for r in repository.records.values()] == ["Working Prayer"]
    print("  ✓ Following item still persisted")


def main():
    print("=" * 60)
    print("BATCH GENERATION & SEARCH TEST SUITE")
    print("=" * 60)

    tests = [
        test_parse_ndjson,
        test_batch_persists_items,
        test_failing_item_does_not_stop_batch,
        test_search_supersedes_previous,
        test_storage_error_does_not_stop_batch,
    ]

    results = []
    for index, test in enumerate(tests, start=1):
        try:
            test()
            results.append(True)
        except Exception as e:
            print(f"  ✗ TEST {index} FAILED: {e}")
            results.append(False)

    print("\n" + "=" * 60)
    print(f"RESULTS: {sum(results)}/{len(results)} tests passed")
    print("=" * 60)
    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(main())
