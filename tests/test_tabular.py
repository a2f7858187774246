import pytest

from arena.database.database import Database
from arena.database.tabular import InMemoryTabularStore, RowRange, normalize_row
from arena.utils.exceptions import NotFoundError, RateLimitError


def test_normalize_row_renders_cells_as_strings():
    assert normalize_row(['p1', None, 1500, True]) == ['p1', '', '1500', 'True']


def test_row_range_bounds():
    assert RowRange.all().bounds(5) == (0, 5)
    assert RowRange.header().bounds(5) == (0, 1)
    assert RowRange.body().bounds(5) == (1, 5)
    assert RowRange(2, 10).bounds(4) == (2, 4)
    assert RowRange.header().bounds(0) == (0, 0)


@pytest.mark.asyncio
async def test_in_memory_read_write_append():
    store = InMemoryTabularStore({'Sheet': [['id', 'name'], ['1', 'a']]})

    await store.append_rows('Sheet', [['2', 'b']])
    await store.write_range('Sheet', RowRange(1, None), [['1', 'A']])

    assert await store.read_range('Sheet') == [['id', 'name'], ['1', 'A'], ['2', 'b']]
    assert await store.read_range('Sheet', RowRange.body()) == [['1', 'A'], ['2', 'b']]


@pytest.mark.asyncio
async def test_in_memory_clear_keeps_rows_and_append_fills_blank_tail():
    store = InMemoryTabularStore({'Sheet': [['id'], ['1'], ['2']]})

    await store.clear_range('Sheet', RowRange(2, None))
    assert await store.read_range('Sheet') == [['id'], ['1']]

    await store.append_rows('Sheet', [['3']])
    assert await store.read_range('Sheet') == [['id'], ['1'], ['3']]


@pytest.mark.asyncio
async def test_in_memory_delete_shifts_rows():
    store = InMemoryTabularStore({'Sheet': [['id'], ['1'], ['2'], ['3']]})
    await store.delete_row_range('Sheet', 1, 3)
    assert await store.read_range('Sheet') == [['id'], ['3']]


@pytest.mark.asyncio
async def test_in_memory_missing_sheet_and_failure_injection():
    store = InMemoryTabularStore()
    with pytest.raises(NotFoundError):
        await store.read_range('Nope')

    assert await store.ensure_sheet_exists('Sheet', ['id']) is True
    assert await store.ensure_sheet_exists('Sheet', ['id']) is False

    store.fail_next('Sheet')
    with pytest.raises(RateLimitError):
        await store.read_range('Sheet')
    # One-shot
    assert await store.read_range('Sheet') == [['id']]


@pytest.fixture
def sql_url(tmp_path):
    return f"sqlite:///{tmp_path / 'arena_test.db'}"


@pytest.mark.asyncio
async def test_database_store_round_trip(sql_url):
    db = Database(sql_url)
    await db.initialize()
    try:
        assert await db.ensure_sheet_exists('Players', ['id', 'nickname']) is True
        assert await db.ensure_sheet_exists('Players', ['id', 'nickname']) is False

        await db.append_rows('Players', [['p1', 'Alice'], ['p2', 'Bob'], ['p3', 'Carol']])
        assert await db.read_range('Players', RowRange.header()) == [['id', 'nickname']]
        assert await db.read_range('Players', RowRange.body()) == [
            ['p1', 'Alice'], ['p2', 'Bob'], ['p3', 'Carol']
        ]

        await db.write_range('Players', RowRange(2, None), [['p2', 'Bobby']])
        await db.delete_row_range('Players', 1, 2)
        assert await db.read_range('Players', RowRange.body()) == [['p2', 'Bobby'], ['p3', 'Carol']]

        await db.clear_range('Players', RowRange.body())
        assert await db.read_range('Players') == [['id', 'nickname']]

        await db.append_rows('Players', [['p4', 'Dan']])
        assert await db.read_range('Players') == [['id', 'nickname'], ['p4', 'Dan']]
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_database_write_past_end_fills_gap(sql_url):
    db = Database(sql_url)
    await db.initialize()
    try:
        await db.ensure_sheet_exists('Sheet', ['id'])
        await db.write_range('Sheet', RowRange(3, None), [['x']])
        assert await db.read_range('Sheet') == [['id'], [], [], ['x']]
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_database_missing_sheet(sql_url):
    db = Database(sql_url)
    await db.initialize()
    try:
        with pytest.raises(NotFoundError):
            await db.read_range('Missing')
        with pytest.raises(NotFoundError):
            await db.append_rows('Missing', [['1']])
    finally:
        await db.close()
