import json
from contextlib import asynccontextmanager
from typing import List, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, Index, select, update, delete, func
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from arena.config import Config
from arena.database.tabular import TabularStoreClient, RowRange, normalize_row
from arena.utils.exceptions import (
    ArenaError, AuthError, NotFoundError, RateLimitError, StoreError, StorePermissionError
)
from arena.utils.logger import setup_logger

Base = declarative_base()


class Sheet(Base):
    __tablename__ = 'sheets'

    name = Column(String(100), primary_key=True)
    created_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<Sheet(name='{self.name}')>"


class SheetRow(Base):
    __tablename__ = 'sheet_rows'

    id = Column(Integer, primary_key=True)
    sheet_name = Column(String(100), nullable=False)
    row_index = Column(Integer, nullable=False)
    cells = Column(Text, nullable=False, default='[]')  # JSON array of strings

    # Not unique: deleting a row range shifts indices with one UPDATE
    __table_args__ = (Index('ix_sheet_rows_sheet_row', 'sheet_name', 'row_index'),)

    def values(self) -> List[str]:
        return json.loads(self.cells or '[]')

    def __repr__(self):
        return f"<SheetRow(sheet='{self.sheet_name}', row={self.row_index})>"


class Database(TabularStoreClient):
    """
    Tabular store backed by SQLAlchemy's async engine.

    Each sheet is a set of SheetRow records ordered by row_index. Any async
    SQLAlchemy URL works; plain sqlite URLs are rewritten to aiosqlite.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url or Config.DATABASE_URL
        self.engine = None
        self.async_session = None

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing tabular database...")

        # Convert sqlite URL to async if needed
        database_url = self.database_url
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')

        self.engine = create_async_engine(
            database_url,
            echo=Config.DEBUG,
            future=True
        )

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        async with self._translate_errors('initialize', '*'):
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Tabular database initialized successfully")

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        if self.async_session is None:
            raise StoreError("Database used before initialize()")
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """
        Session whose work is committed together on success and rolled back
        together on failure.
        """
        async with self._translate_errors('transaction', '*'):
            async with self.get_session() as session:
                yield session
                await session.commit()

    @asynccontextmanager
    async def _translate_errors(self, operation: str, sheet_name: str):
        """Map SQLAlchemy failures onto the arena error taxonomy."""
        try:
            yield
        except ArenaError:
            raise
        except (OperationalError, ProgrammingError) as e:
            text = str(e).lower()
            context = f"{operation} on '{sheet_name}'"
            if 'locked' in text or 'busy' in text or 'too many connections' in text:
                raise RateLimitError(f"{context}: {e}") from e
            if 'authentication' in text or 'password' in text:
                raise AuthError(f"{context}: {e}") from e
            if 'permission denied' in text or 'readonly' in text or 'read-only' in text:
                raise StorePermissionError(f"{context}: {e}") from e
            raise StoreError(f"{context}: {e}") from e
        except SQLAlchemyError as e:
            raise StoreError(f"{operation} on '{sheet_name}': {e}") from e

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

    async def _require_sheet(self, session: AsyncSession, sheet_name: str):
        sheet = await session.get(Sheet, sheet_name)
        if sheet is None:
            raise NotFoundError(f"Sheet '{sheet_name}' not found")

    async def _load_rows(self, session: AsyncSession, sheet_name: str) -> List[SheetRow]:
        result = await session.execute(
            select(SheetRow)
            .where(SheetRow.sheet_name == sheet_name)
            .order_by(SheetRow.row_index)
        )
        return list(result.scalars().all())

    async def read_range(self, sheet_name: str, range_spec: RowRange = RowRange.all()) -> List[List[str]]:
        async with self._translate_errors('read_range', sheet_name):
            async with self.get_session() as session:
                await self._require_sheet(session, sheet_name)
                records = await self._load_rows(session, sheet_name)

        rows = [record.values() for record in records]
        while rows and not any(cell != '' for cell in rows[-1]):
            rows.pop()
        start, end = range_spec.bounds(len(rows))
        return rows[start:end]

    async def write_range(self, sheet_name: str, range_spec: RowRange, rows: List[List[str]]) -> None:
        async with self.transaction() as session:
            await self._require_sheet(session, sheet_name)
            existing = {record.row_index: record for record in await self._load_rows(session, sheet_name)}
            last_index = max(existing.keys(), default=-1)

            # Fill any gap between the current end of the sheet and the write start
            for index in range(last_index + 1, range_spec.start):
                session.add(SheetRow(sheet_name=sheet_name, row_index=index, cells='[]'))

            for offset, row in enumerate(rows):
                index = range_spec.start + offset
                cells = json.dumps(normalize_row(row))
                if index in existing:
                    existing[index].cells = cells
                else:
                    session.add(SheetRow(sheet_name=sheet_name, row_index=index, cells=cells))

    async def append_rows(self, sheet_name: str, rows: List[List[str]]) -> None:
        async with self.transaction() as session:
            await self._require_sheet(session, sheet_name)
            records = await self._load_rows(session, sheet_name)

            last_used = -1
            for record in records:
                if any(cell != '' for cell in record.values()):
                    last_used = record.row_index

            # Blank tail rows are overwritten by the append
            await session.execute(
                delete(SheetRow)
                .where(SheetRow.sheet_name == sheet_name, SheetRow.row_index > last_used)
            )
            for offset, row in enumerate(rows):
                session.add(SheetRow(
                    sheet_name=sheet_name,
                    row_index=last_used + 1 + offset,
                    cells=json.dumps(normalize_row(row))
                ))

    async def clear_range(self, sheet_name: str, range_spec: RowRange) -> None:
        async with self.transaction() as session:
            await self._require_sheet(session, sheet_name)
            query = (
                update(SheetRow)
                .where(SheetRow.sheet_name == sheet_name, SheetRow.row_index >= range_spec.start)
                .values(cells='[]')
            )
            if range_spec.end is not None:
                query = query.where(SheetRow.row_index < range_spec.end)
            await session.execute(query)

    async def delete_row_range(self, sheet_name: str, start_index: int, end_index: int) -> None:
        if end_index <= start_index:
            return
        async with self.transaction() as session:
            await self._require_sheet(session, sheet_name)
            await session.execute(
                delete(SheetRow)
                .where(
                    SheetRow.sheet_name == sheet_name,
                    SheetRow.row_index >= start_index,
                    SheetRow.row_index < end_index
                )
            )
            await session.execute(
                update(SheetRow)
                .where(SheetRow.sheet_name == sheet_name, SheetRow.row_index >= end_index)
                .values(row_index=SheetRow.row_index - (end_index - start_index))
            )

    async def ensure_sheet_exists(self, sheet_name: str, headers: List[str]) -> bool:
        async with self.transaction() as session:
            sheet = await session.get(Sheet, sheet_name)
            if sheet is not None:
                result = await session.execute(
                    select(SheetRow).where(SheetRow.sheet_name == sheet_name, SheetRow.row_index == 0)
                )
                header_row = result.scalars().first()
                if header_row is None:
                    session.add(SheetRow(sheet_name=sheet_name, row_index=0, cells=json.dumps(list(headers))))
                elif not any(header_row.values()):
                    header_row.cells = json.dumps(list(headers))
                return False

            session.add(Sheet(name=sheet_name))
            session.add(SheetRow(sheet_name=sheet_name, row_index=0, cells=json.dumps(list(headers))))

        self.logger.info(f"Created sheet '{sheet_name}' with {len(headers)} columns")
        return True
