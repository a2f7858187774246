"""
Tabular store contract and in-memory implementation.

A tabular store holds named sheets. Each sheet is a list of rows, each row a
list of string cells; row 0 is the header row. Callers address rows through a
RowRange (start row, exclusive end row or None for "to the end").

Backends translate their native failures into the typed errors from
arena.utils.exceptions so the layers above never see store-specific types.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, NamedTuple, Optional

from arena.utils.exceptions import NotFoundError, RateLimitError


class RowRange(NamedTuple):
    """Half-open row interval inside a sheet."""
    start: int = 0
    end: Optional[int] = None

    @classmethod
    def all(cls) -> 'RowRange':
        return cls(0, None)

    @classmethod
    def header(cls) -> 'RowRange':
        return cls(0, 1)

    @classmethod
    def body(cls) -> 'RowRange':
        return cls(1, None)

    def bounds(self, length: int):
        end = length if self.end is None else min(self.end, length)
        return max(self.start, 0), max(end, 0)


def normalize_row(row) -> List[str]:
    """Render a row as a list of cell strings, None becoming an empty cell."""
    return ['' if value is None else str(value) for value in row]


def _trim_trailing_empty(rows: List[List[str]]) -> List[List[str]]:
    """Drop trailing blank rows, the way a spreadsheet read omits them."""
    end = len(rows)
    while end > 0 and not any(cell != '' for cell in rows[end - 1]):
        end -= 1
    return rows[:end]


class TabularStoreClient(ABC):
    """Contract every backing store must satisfy."""

    @abstractmethod
    async def read_range(self, sheet_name: str, range_spec: RowRange = RowRange.all()) -> List[List[str]]:
        """Return the rows of `sheet_name` inside `range_spec`."""

    @abstractmethod
    async def write_range(self, sheet_name: str, range_spec: RowRange, rows: List[List[str]]) -> None:
        """Overwrite rows starting at `range_spec.start`."""

    @abstractmethod
    async def append_rows(self, sheet_name: str, rows: List[List[str]]) -> None:
        """Append rows after the last non-empty row."""

    @abstractmethod
    async def clear_range(self, sheet_name: str, range_spec: RowRange) -> None:
        """Blank every cell in `range_spec` without shifting rows."""

    @abstractmethod
    async def delete_row_range(self, sheet_name: str, start_index: int, end_index: int) -> None:
        """Remove rows [start_index, end_index) and shift the rest up."""

    @abstractmethod
    async def ensure_sheet_exists(self, sheet_name: str, headers: List[str]) -> bool:
        """Create the sheet with `headers` if missing. Returns True when created."""

    async def close(self) -> None:
        """Release backend resources."""
        return None


class InMemoryTabularStore(TabularStoreClient):
    """
    Process-local tabular store.

    Used by the test suite and for local runs. It can simulate throttling:
    `fail_next(sheet_name, error)` makes the next call touching that sheet raise
    `error` once.
    """

    def __init__(self, sheets: Optional[Dict[str, List[List[str]]]] = None):
        self._sheets: Dict[str, List[List[str]]] = {}
        self._pending_failures: Dict[str, List[Exception]] = {}
        self.calls: List[tuple] = []
        for name, rows in (sheets or {}).items():
            self._sheets[name] = [normalize_row(r) for r in rows]

    def fail_next(self, sheet_name: str, error: Exception = None):
        """Queue a one-shot failure for the next operation on `sheet_name`."""
        self._pending_failures.setdefault(sheet_name, []).append(error or RateLimitError())

    def _check(self, operation: str, sheet_name: str):
        self.calls.append((operation, sheet_name))
        failures = self._pending_failures.get(sheet_name)
        if failures:
            raise failures.pop(0)

    def _sheet(self, sheet_name: str) -> List[List[str]]:
        if sheet_name not in self._sheets:
            raise NotFoundError(f"Sheet '{sheet_name}' not found")
        return self._sheets[sheet_name]

    def sheet_names(self) -> List[str]:
        return list(self._sheets.keys())

    async def read_range(self, sheet_name: str, range_spec: RowRange = RowRange.all()) -> List[List[str]]:
        self._check('read_range', sheet_name)
        rows = _trim_trailing_empty(self._sheet(sheet_name))
        start, end = range_spec.bounds(len(rows))
        # Yield to the loop like a real network call would
        await asyncio.sleep(0)
        return [list(row) for row in rows[start:end]]

    async def write_range(self, sheet_name: str, range_spec: RowRange, rows: List[List[str]]) -> None:
        self._check('write_range', sheet_name)
        sheet = self._sheet(sheet_name)
        await asyncio.sleep(0)
        for offset, row in enumerate(rows):
            index = range_spec.start + offset
            while len(sheet) <= index:
                sheet.append([])
            sheet[index] = normalize_row(row)

    async def append_rows(self, sheet_name: str, rows: List[List[str]]) -> None:
        self._check('append_rows', sheet_name)
        sheet = self._sheet(sheet_name)
        await asyncio.sleep(0)
        trimmed = _trim_trailing_empty(sheet)
        del sheet[len(trimmed):]
        sheet.extend(normalize_row(row) for row in rows)

    async def clear_range(self, sheet_name: str, range_spec: RowRange) -> None:
        self._check('clear_range', sheet_name)
        sheet = self._sheet(sheet_name)
        await asyncio.sleep(0)
        start, end = range_spec.bounds(len(sheet))
        for index in range(start, end):
            sheet[index] = [''] * len(sheet[index])

    async def delete_row_range(self, sheet_name: str, start_index: int, end_index: int) -> None:
        self._check('delete_row_range', sheet_name)
        sheet = self._sheet(sheet_name)
        await asyncio.sleep(0)
        del sheet[start_index:end_index]

    async def ensure_sheet_exists(self, sheet_name: str, headers: List[str]) -> bool:
        self.calls.append(('ensure_sheet_exists', sheet_name))
        if sheet_name in self._sheets:
            sheet = self._sheets[sheet_name]
            if not sheet or not any(sheet[0]):
                if sheet:
                    sheet[0] = list(headers)
                else:
                    sheet.append(list(headers))
            return False
        self._sheets[sheet_name] = [list(headers)]
        return True
