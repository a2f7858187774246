import logging

import pytest

from arena.database.models import PLAYERS, TOURNAMENT_MATCHES, TableSchema, FieldSpec
from arena.database.schema import HeaderMap, SchemaResolver
from arena.database.tabular import InMemoryTabularStore
from arena.main import ArenaCore
from arena.services.cache import TTLCache
from arena.utils.exceptions import SchemaError


def test_header_map_pick_returns_first_candidate_or_minus_one():
    headers = HeaderMap(['player_id', 'nickname', ' rating '])

    assert headers.index_of('nickname') == 1
    assert headers.pick('id', 'player_id') == 0
    assert headers.pick('rating') == 2
    assert headers.pick('missing', 'also_missing') == -1
    assert HeaderMap([]).pick('id') == -1


def test_header_map_field_indices_use_candidates():
    headers = HeaderMap(['nickname', 'player_id', 'tournament_active', 'rating'])
    indices = headers.field_indices(PLAYERS)

    assert indices['id'] == 1
    assert indices['current_rating'] == 3
    assert indices['email'] == -1


def test_table_schema_requires_key_field():
    with pytest.raises(ValueError):
        TableSchema('Broken', 'id', {'name': FieldSpec(('name',))})


@pytest.mark.asyncio
async def test_validate_accepts_reordered_headers_and_warns_on_optional(caplog):
    store = InMemoryTabularStore({'Players': [['tournament_active', 'current_rating', 'nickname', 'id']]})
    resolver = SchemaResolver(store)

    with caplog.at_level(logging.WARNING):
        header_map = await resolver.validate(PLAYERS)

    assert header_map.pick('id') == 3
    assert 'lacks optional columns' in caplog.text


@pytest.mark.asyncio
async def test_validate_lists_missing_required_fields():
    store = InMemoryTabularStore({'TournamentMatches': [['match_id', 'tournament_id', 'player1_id']]})

    with pytest.raises(SchemaError) as exc_info:
        await SchemaResolver(store).validate(TOURNAMENT_MATCHES)

    assert 'player2_id' in exc_info.value.message
    assert 'status' in exc_info.value.message


@pytest.mark.asyncio
async def test_core_initialize_rejects_broken_sheet():
    store = InMemoryTabularStore({'Players': [['nickname', 'email']]})
    core = ArenaCore(store, TTLCache(default_ttl=0))

    with pytest.raises(SchemaError) as exc_info:
        await core.initialize()
    assert 'Players' in exc_info.value.message


@pytest.mark.asyncio
async def test_core_initialize_creates_every_sheet(core, store):
    assert set(store.sheet_names()) == {
        'Players', 'Tournaments', 'TournamentParticipants', 'TournamentMatches',
        'MatchResults', 'TournamentDailyArchive', 'YearlyArchive',
    }
    assert (await store.read_range('Players'))[0] == PLAYERS.default_headers
