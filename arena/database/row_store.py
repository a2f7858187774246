"""
Generic row CRUD over a named table.

Rows are exchanged as dicts keyed by logical field name (see models.py); the
header row decides where each field lives. Columns missing from the sheet are
skipped on write and omitted on read.

The backing store has no row locking, so every update is a whole-range
read-modify-write. Writers to the same table are serialized through a per-table
asyncio.Lock; this only protects writers inside one process.
"""

import asyncio
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from arena.config import Config
from arena.database.models import TableSchema
from arena.database.schema import HeaderMap, SchemaResolver
from arena.database.tabular import TabularStoreClient, RowRange
from arena.utils.exceptions import NotFoundError, RateLimitError, SchemaError, StoreError
from arena.utils.logger import setup_logger

logger = setup_logger(__name__)

Row = Dict[str, str]
RowPredicate = Callable[[Row], bool]
RowMutator = Callable[[Row], Optional[Row]]


class RowStore:
    """Table-level reads and writes on top of a TabularStoreClient."""

    def __init__(self, client: TabularStoreClient, resolver: Optional[SchemaResolver] = None):
        self.client = client
        self.resolver = resolver or SchemaResolver(client)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock_for(self, schema: TableSchema) -> asyncio.Lock:
        return self._locks[schema.sheet_name]

    async def _call(self, operation: str, schema: TableSchema, func: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run a store call, retrying once after a throttling response.

        Store-level failures are re-raised as the same type with the operation
        and sheet prefixed to the message.
        """
        context = f"{operation} on '{schema.sheet_name}'"
        try:
            return await func()
        except RateLimitError as e:
            logger.warning(f"Rate limited during {context}, retrying in {Config.RATE_LIMIT_BACKOFF}s: {e}")
        except (StoreError, NotFoundError) as e:
            logger.error(f"Store call failed during {context}: {e}")
            raise e.with_context(context) from e
        await asyncio.sleep(Config.RATE_LIMIT_BACKOFF)
        try:
            return await func()
        except RateLimitError as e:
            logger.error(f"Rate limited again during {context}")
            raise e.with_context(context) from e
        except (StoreError, NotFoundError) as e:
            logger.error(f"Store call failed during {context}: {e}")
            raise e.with_context(context) from e

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_dict(indices: Dict[str, int], cells: List[str]) -> Row:
        row = {}
        for field_name, index in indices.items():
            if index < 0:
                continue
            row[field_name] = cells[index] if index < len(cells) else ''
        return row

    @staticmethod
    def _dict_to_cells(header_map: HeaderMap, indices: Dict[str, int], data: Row,
                       base: Optional[List[str]] = None) -> List[str]:
        cells = list(base or [])
        if len(cells) < len(header_map):
            cells.extend([''] * (len(header_map) - len(cells)))
        for field_name, value in data.items():
            index = indices.get(field_name, -1)
            if index < 0:
                continue
            cells[index] = '' if value is None else str(value)
        return cells

    async def _load(self, schema: TableSchema) -> Tuple[HeaderMap, Dict[str, int], List[List[str]]]:
        rows = await self._call(
            'read', schema, lambda: self.client.read_range(schema.sheet_name, RowRange.all())
        )
        header_map = HeaderMap(rows[0] if rows else [])
        return header_map, header_map.field_indices(schema), [list(r) for r in rows[1:]]

    @staticmethod
    def _require_key_column(schema: TableSchema, indices: Dict[str, int], key_field: str):
        if indices.get(key_field, -1) < 0:
            raise SchemaError(f"Sheet '{schema.sheet_name}' has no '{key_field}' column")

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def read_all(self, schema: TableSchema) -> List[Row]:
        """All non-blank body rows of the table."""
        _, indices, body = await self._load(schema)
        return [
            self._row_to_dict(indices, cells)
            for cells in body
            if any(cell != '' for cell in cells)
        ]

    async def find_by_key(self, schema: TableSchema, key_value: str,
                          key_field: Optional[str] = None) -> Optional[Row]:
        key_field = key_field or schema.key_field
        for row in await self.read_all(schema):
            if row.get(key_field) == key_value:
                return row
        return None

    async def append_rows(self, schema: TableSchema, rows: List[Row]) -> int:
        if not rows:
            return 0
        async with self.lock_for(schema):
            header_map = await self._call(
                'resolve_headers', schema, lambda: self.resolver.resolve_headers(schema.sheet_name)
            )
            indices = header_map.field_indices(schema)
            self._require_key_column(schema, indices, schema.key_field)
            cells = [self._dict_to_cells(header_map, indices, row) for row in rows]
            await self._call('append', schema, lambda: self.client.append_rows(schema.sheet_name, cells))
        logger.debug(f"Appended {len(rows)} row(s) to '{schema.sheet_name}'")
        return len(rows)

    async def update_by_key(self, schema: TableSchema, key_value: str, mutator: RowMutator,
                            key_field: Optional[str] = None) -> Row:
        """
        Apply `mutator` to the first row whose key matches.

        The mutator receives the row dict and may modify it in place or return a
        dict of fields to set. Raises NotFoundError when no row has the key.
        """
        key_field = key_field or schema.key_field
        async with self.lock_for(schema):
            header_map, indices, body = await self._load(schema)
            self._require_key_column(schema, indices, key_field)
            key_index = indices[key_field]

            for position, cells in enumerate(body):
                if key_index < len(cells) and cells[key_index] == key_value:
                    row = self._row_to_dict(indices, cells)
                    updated = self._apply(mutator, row)
                    body[position] = self._dict_to_cells(header_map, indices, updated, cells)
                    await self._call(
                        'update', schema,
                        lambda: self.client.write_range(schema.sheet_name, RowRange.body(), body)
                    )
                    return updated

        raise NotFoundError(
            f"No row with {key_field}='{key_value}' in '{schema.sheet_name}'",
            "The requested record was not found."
        )

    async def update_where(self, schema: TableSchema, predicate: RowPredicate, mutator: RowMutator) -> int:
        """Apply `mutator` to every matching row in one write. Returns the count."""
        async with self.lock_for(schema):
            header_map, indices, body = await self._load(schema)
            changed = 0
            for position, cells in enumerate(body):
                if not any(cell != '' for cell in cells):
                    continue
                row = self._row_to_dict(indices, cells)
                if not predicate(row):
                    continue
                updated = self._apply(mutator, row)
                body[position] = self._dict_to_cells(header_map, indices, updated, cells)
                changed += 1

            if changed:
                await self._call(
                    'update_where', schema,
                    lambda: self.client.write_range(schema.sheet_name, RowRange.body(), body)
                )
        if changed:
            logger.debug(f"Updated {changed} row(s) in '{schema.sheet_name}'")
        return changed

    async def delete_rows(self, schema: TableSchema, predicate: RowPredicate) -> int:
        """Remove every matching row. Returns the count."""
        async with self.lock_for(schema):
            _, indices, body = await self._load(schema)
            doomed = [
                position + 1  # sheet row index, header is row 0
                for position, cells in enumerate(body)
                if any(cell != '' for cell in cells) and predicate(self._row_to_dict(indices, cells))
            ]
            # Delete contiguous runs bottom-up so earlier indices stay valid
            for start, end in reversed(self._runs(doomed)):
                await self._call(
                    'delete', schema,
                    lambda: self.client.delete_row_range(schema.sheet_name, start, end)
                )
        if doomed:
            logger.info(f"Deleted {len(doomed)} row(s) from '{schema.sheet_name}'")
        return len(doomed)

    async def clear(self, schema: TableSchema):
        """Blank every body row, keeping the header."""
        async with self.lock_for(schema):
            await self._call('clear', schema, lambda: self.client.clear_range(schema.sheet_name, RowRange.body()))
        logger.info(f"Cleared '{schema.sheet_name}'")

    @staticmethod
    def _apply(mutator: RowMutator, row: Row) -> Row:
        result = mutator(row)
        if result is not None and result is not row:
            row.update(result)
        return row

    @staticmethod
    def _runs(indices: List[int]) -> List[Tuple[int, int]]:
        runs: List[Tuple[int, int]] = []
        for index in indices:
            if runs and runs[-1][1] == index:
                runs[-1] = (runs[-1][0], index + 1)
            else:
                runs.append((index, index + 1))
        return runs
