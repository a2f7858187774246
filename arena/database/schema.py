from typing import Dict, List

from arena.database.models import TableSchema
from arena.database.tabular import TabularStoreClient, RowRange
from arena.utils.exceptions import SchemaError
from arena.utils.logger import setup_logger

logger = setup_logger(__name__)


class HeaderMap:
    """Header row of a sheet, indexed by column name."""

    def __init__(self, headers: List[str]):
        self.headers = [str(h).strip() for h in headers]
        self._index: Dict[str, int] = {}
        for i, name in enumerate(self.headers):
            # First occurrence wins when a header is duplicated
            if name and name not in self._index:
                self._index[name] = i

    def index_of(self, name: str) -> int:
        return self._index.get(name.strip(), -1)

    def pick(self, *candidates: str) -> int:
        """Index of the first candidate present in the header row, or -1."""
        for candidate in candidates:
            index = self.index_of(candidate)
            if index >= 0:
                return index
        return -1

    def field_indices(self, schema: TableSchema) -> Dict[str, int]:
        """Map each logical field of `schema` to its column index (-1 if absent)."""
        return {name: self.pick(*spec.candidates) for name, spec in schema.fields.items()}

    def missing_fields(self, schema: TableSchema) -> List[str]:
        return [name for name, index in self.field_indices(schema).items() if index < 0]

    def __len__(self):
        return len(self.headers)

    def __repr__(self):
        return f"<HeaderMap(columns={len(self.headers)})>"


class SchemaResolver:
    """Resolves sheet headers and checks them against table schemas."""

    def __init__(self, client: TabularStoreClient):
        self.client = client

    async def resolve_headers(self, sheet_name: str) -> HeaderMap:
        rows = await self.client.read_range(sheet_name, RowRange.header())
        return HeaderMap(rows[0] if rows else [])

    async def validate(self, schema: TableSchema) -> HeaderMap:
        """
        Check a sheet's header row against its schema.

        Raises SchemaError listing every missing required field. Missing optional
        fields are only logged; writers skip them.
        """
        header_map = await self.resolve_headers(schema.sheet_name)
        missing = header_map.missing_fields(schema)
        required = set(schema.required_fields)

        missing_required = [name for name in missing if name in required]
        missing_optional = [name for name in missing if name not in required]

        if missing_optional:
            logger.warning(
                f"Sheet '{schema.sheet_name}' lacks optional columns: {', '.join(missing_optional)}"
            )
        if missing_required:
            raise SchemaError(
                f"Sheet '{schema.sheet_name}' is missing required columns: {', '.join(missing_required)}"
            )
        return header_map
