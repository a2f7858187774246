from unittest.mock import AsyncMock

import pytest

from arena.database.models import MATCH_RESULTS, TOURNAMENT_MATCHES
from arena.utils.exceptions import InvalidStateTransitionError, NotFoundError, StoreError, ValidationError


async def rating(core, player_id):
    return (await core.get_player(player_id))['current_rating']


async def record(core, player_id):
    player = await core.get_player(player_id)
    return player['annual_wins'], player['annual_losses']


async def snapshot(store):
    return {name: await store.read_range(name) for name in store.sheet_names()}


@pytest.fixture
def arena(seeded):
    return seeded


async def new_match(arena, game_type='trump'):
    return await arena['core'].create_match(arena['tournament'], arena['alice'], arena['bob'], game_type)


async def approved_match(arena, winner_key='alice'):
    core = arena['core']
    match = await new_match(arena)
    report = await core.submit_match_result(match['match_id'], arena[winner_key], 'win')
    await core.approve_match_result(report['result_id'], True)
    return match


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_numbers_matches_within_tournament(arena):
    first = await new_match(arena)
    second = await arena['core'].create_match(arena['tournament'], arena['alice'], arena['carol'])

    assert first['status'] == 'scheduled'
    assert first['match_number'] == '1'
    assert second['match_number'] == '2'
    assert first['player1_name'] == 'Alice'
    assert first['game_type'] == 'trump'


@pytest.mark.asyncio
async def test_create_normalizes_game_type(arena):
    assert (await new_match(arena, 'カード+'))['game_type'] == 'cardplus'
    assert (await new_match(arena, ''))['game_type'] == 'trump'


@pytest.mark.asyncio
async def test_create_validation(arena):
    core = arena['core']
    with pytest.raises(ValidationError):
        await core.create_match(arena['tournament'], arena['alice'], arena['alice'])
    with pytest.raises(ValidationError):
        await new_match(arena, 'chess')
    with pytest.raises(NotFoundError):
        await core.create_match(arena['tournament'], arena['alice'], 'ghost')
    with pytest.raises(NotFoundError):
        await core.create_match('no_such_tournament', arena['alice'], arena['bob'])


# ---------------------------------------------------------------------------
# Report and approval
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_submit_marks_match_completed_with_claimed_winner(arena):
    core = arena['core']
    match = await new_match(arena)

    report = await core.submit_match_result(match['match_id'], arena['bob'], 'lose')

    assert report['status'] == 'pending_approval'
    assert report['opponent_id'] == arena['alice']
    stored = (await core.get_tournament_matches(arena['tournament']))[0]
    assert stored['status'] == 'completed'
    assert stored['winner_id'] == arena['alice']
    assert stored['loser_id'] == arena['bob']


@pytest.mark.asyncio
async def test_submit_validation(arena):
    core = arena['core']
    match = await new_match(arena)
    with pytest.raises(ValidationError):
        await core.submit_match_result(match['match_id'], arena['carol'], 'win')
    with pytest.raises(ValidationError):
        await core.submit_match_result(match['match_id'], arena['alice'], 'draw')
    with pytest.raises(ValidationError):
        await core.submit_match_result(match['match_id'], arena['alice'], 'win', opponent_id=arena['carol'])
    with pytest.raises(NotFoundError):
        await core.submit_match_result('missing', arena['alice'], 'win')


@pytest.mark.asyncio
async def test_approve_applies_ratings_counters_and_badges(arena):
    core = arena['core']
    match = await new_match(arena)
    report = await core.submit_match_result(match['match_id'], arena['alice'], 'win')

    outcome = await core.approve_match_result(report['result_id'], True)

    assert outcome['status'] == 'approved'
    assert outcome['rating_update']['winner_after'] == 1516
    assert outcome['rating_update']['loser_after'] == 1484
    assert await rating(core, arena['alice']) == 1516
    assert await rating(core, arena['bob']) == 1484
    assert await record(core, arena['alice']) == (1, 0)
    assert await record(core, arena['bob']) == (0, 1)

    stored = (await core.get_tournament_matches(arena['tournament']))[0]
    assert stored['status'] == 'approved'
    assert stored['player1_rating_change'] == 16
    assert stored['player2_rating_change'] == -16
    assert stored['approved_by'] == 'admin'

    assert (await core.get_player(arena['alice']))['trump_rule_experienced'] is True
    assert (await core.get_player(arena['bob']))['trump_rule_experienced'] is True


@pytest.mark.asyncio
async def test_approve_twice_is_rejected(arena):
    core = arena['core']
    match = await new_match(arena)
    report = await core.submit_match_result(match['match_id'], arena['alice'], 'win')
    await core.approve_match_result(report['result_id'], True)

    with pytest.raises(InvalidStateTransitionError):
        await core.approve_match_result(report['result_id'], True)
    assert await rating(core, arena['alice']) == 1516


@pytest.mark.asyncio
async def test_approval_supersedes_other_reports(arena):
    core = arena['core']
    match = await new_match(arena)
    first = await core.submit_match_result(match['match_id'], arena['alice'], 'win')
    second = await core.submit_match_result(match['match_id'], arena['bob'], 'lose')

    await core.approve_match_result(first['result_id'], True)

    statuses = {r['result_id']: r['status'] for r in await core.rows.read_all(MATCH_RESULTS)}
    assert statuses[first['result_id']] == 'approved'
    assert statuses[second['result_id']] == 'superseded'
    assert await core.get_pending_results() == []

    with pytest.raises(InvalidStateTransitionError):
        await core.approve_match_result(second['result_id'], True)


@pytest.mark.asyncio
async def test_reject_clears_claimed_winner_once_no_report_remains(arena):
    core = arena['core']
    match = await new_match(arena)
    first = await core.submit_match_result(match['match_id'], arena['alice'], 'win')
    second = await core.submit_match_result(match['match_id'], arena['bob'], 'win')

    await core.approve_match_result(first['result_id'], False)
    stored = (await core.get_tournament_matches(arena['tournament']))[0]
    assert stored['status'] == 'completed'
    assert stored['winner_id'] == arena['bob']

    await core.approve_match_result(second['result_id'], False)
    stored = (await core.get_tournament_matches(arena['tournament']))[0]
    assert stored['status'] == 'completed'
    assert stored['winner_id'] == ''
    assert await rating(core, arena['alice']) == 1500


@pytest.mark.asyncio
async def test_start_only_from_scheduled(arena, store):
    core = arena['core']
    match = await new_match(arena)

    started = await core.start_match(match['match_id'])
    assert started['status'] == 'in_progress'
    assert started['match_start_time']

    before = await snapshot(store)
    with pytest.raises(InvalidStateTransitionError):
        await core.start_match(match['match_id'])
    assert await snapshot(store) == before


@pytest.mark.asyncio
async def test_rejected_approval_leaves_every_sheet_unchanged(arena, store):
    core = arena['core']
    match = await new_match(arena)
    report = await core.submit_match_result(match['match_id'], arena['alice'], 'win')
    await core.invalidate_match(match['match_id'], 'table mix-up')
    before = await snapshot(store)

    with pytest.raises(InvalidStateTransitionError):
        await core.approve_match_result(report['result_id'], True)

    assert await snapshot(store) == before


@pytest.mark.asyncio
async def test_failed_player_write_leaves_report_pending(arena, monkeypatch):
    core = arena['core']
    match = await new_match(arena)
    report = await core.submit_match_result(match['match_id'], arena['alice'], 'win')

    with monkeypatch.context() as patched:
        patched.setattr(
            core.players, 'adjust_players', AsyncMock(side_effect=StoreError('players sheet unavailable'))
        )
        with pytest.raises(StoreError):
            await core.approve_match_result(report['result_id'], True)

    statuses = {r['result_id']: r['status'] for r in await core.rows.read_all(MATCH_RESULTS)}
    assert statuses[report['result_id']] == 'pending_approval'
    assert (await core.get_tournament_matches(arena['tournament']))[0]['status'] == 'completed'
    assert await rating(core, arena['alice']) == 1500

    outcome = await core.approve_match_result(report['result_id'], True)
    assert outcome['status'] == 'approved'
    assert await rating(core, arena['alice']) == 1516
    assert await record(core, arena['alice']) == (1, 0)


# ---------------------------------------------------------------------------
# Admin input, edit, invalidate
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_admin_direct_input(arena):
    core = arena['core']
    match = await new_match(arena)
    pending = await core.submit_match_result(match['match_id'], arena['alice'], 'win')

    outcome = await core.admin_direct_match_result(match['match_id'], arena['bob'], arena['alice'])

    assert outcome['rating_update']['winner_id'] == arena['bob']
    assert await rating(core, arena['bob']) == 1516
    statuses = {r['result_id']: r['status'] for r in await core.rows.read_all(MATCH_RESULTS)}
    assert statuses[pending['result_id']] == 'superseded'
    assert statuses[outcome['result_id']] == 'approved'

    with pytest.raises(InvalidStateTransitionError):
        await core.admin_direct_match_result(match['match_id'], arena['alice'])


@pytest.mark.asyncio
async def test_admin_direct_input_validates_players(arena, store):
    core = arena['core']
    match = await new_match(arena)
    before = await snapshot(store)
    with pytest.raises(ValidationError):
        await core.admin_direct_match_result(match['match_id'], arena['carol'])
    with pytest.raises(ValidationError):
        await core.admin_direct_match_result(match['match_id'], arena['alice'], arena['carol'])
    assert await snapshot(store) == before


@pytest.mark.asyncio
async def test_edit_winner_round_trip(arena):
    core = arena['core']
    match = await approved_match(arena)

    swapped = await core.edit_completed_match(match['match_id'], new_winner_id=arena['bob'])
    assert swapped['changed'] is True
    assert await rating(core, arena['alice']) == 1484
    assert await rating(core, arena['bob']) == 1516
    assert await record(core, arena['alice']) == (0, 1)
    assert await record(core, arena['bob']) == (1, 0)

    await core.edit_completed_match(match['match_id'], new_winner_id=arena['alice'])
    assert await rating(core, arena['alice']) == 1516
    assert await rating(core, arena['bob']) == 1484
    assert await record(core, arena['alice']) == (1, 0)
    assert await record(core, arena['bob']) == (0, 1)


@pytest.mark.asyncio
async def test_edit_rule_only_keeps_ratings(arena):
    core = arena['core']
    match = await approved_match(arena)

    outcome = await core.edit_completed_match(match['match_id'], new_game_type='cardplus')

    assert outcome['changed'] is True
    assert outcome['match']['game_type'] == 'cardplus'
    assert 'rating_update' not in outcome
    assert await rating(core, arena['alice']) == 1516
    assert (await core.get_player(arena['bob']))['cardplus_rule_experienced'] is True


@pytest.mark.asyncio
async def test_edit_without_changes(arena):
    core = arena['core']
    match = await approved_match(arena)
    outcome = await core.edit_completed_match(match['match_id'], new_winner_id=arena['alice'], new_game_type='trump')
    assert outcome['changed'] is False


@pytest.mark.asyncio
async def test_edit_guards(arena):
    core = arena['core']
    match = await new_match(arena)
    with pytest.raises(InvalidStateTransitionError):
        await core.edit_completed_match(match['match_id'], new_winner_id=arena['alice'])

    await core.submit_match_result(match['match_id'], arena['alice'], 'win')
    with pytest.raises(ValidationError):
        await core.edit_completed_match(match['match_id'], new_winner_id=arena['carol'])
    with pytest.raises(ValidationError):
        await core.edit_completed_match(match['match_id'], new_game_type='chess')


@pytest.mark.asyncio
async def test_corrupted_winner_is_treated_as_no_winner(arena):
    core = arena['core']
    match = await new_match(arena)
    await core.submit_match_result(match['match_id'], arena['alice'], 'win')
    # A status string leaked into the winner column
    await core.rows.update_by_key(TOURNAMENT_MATCHES, match['match_id'], lambda r: {'winner_id': 'approved'})

    assert (await core.get_tournament_matches(arena['tournament']))[0]['winner_id'] == ''

    outcome = await core.edit_completed_match(match['match_id'], new_winner_id=arena['alice'])
    assert outcome['changed'] is True
    assert outcome['match']['status'] == 'approved'
    assert await rating(core, arena['alice']) == 1516
    assert await rating(core, arena['bob']) == 1484


@pytest.mark.asyncio
async def test_edit_recovers_corrupted_winner_of_approved_match(arena):
    core = arena['core']
    match = await approved_match(arena, 'alice')
    await core.rows.update_by_key(TOURNAMENT_MATCHES, match['match_id'], lambda r: {'winner_id': 'approved'})

    # Confirming the winner the rating changes point at only repairs the row
    repaired = await core.edit_completed_match(match['match_id'], new_winner_id=arena['alice'])
    assert repaired['changed'] is True
    assert 'rating_update' not in repaired
    assert repaired['match']['winner_id'] == arena['alice']
    assert await record(core, arena['alice']) == (1, 0)
    assert await rating(core, arena['alice']) == 1516

    await core.rows.update_by_key(TOURNAMENT_MATCHES, match['match_id'], lambda r: {'winner_id': 'approved'})
    swapped = await core.edit_completed_match(match['match_id'], new_winner_id=arena['bob'])
    assert swapped['rating_update']['winner_id'] == arena['bob']
    assert await record(core, arena['alice']) == (0, 1)
    assert await record(core, arena['bob']) == (1, 0)
    assert await rating(core, arena['bob']) == 1516

    for key in ('alice', 'bob'):
        derived = await core.get_player_record(arena[key])
        assert (derived['wins'], derived['losses']) == await record(core, arena[key])


@pytest.mark.asyncio
async def test_invalidate_with_corrupted_winner_reverses_counters(arena):
    core = arena['core']
    match = await approved_match(arena, 'alice')
    await core.rows.update_by_key(TOURNAMENT_MATCHES, match['match_id'], lambda r: {'winner_id': ''})

    await core.invalidate_match(match['match_id'], 'void')

    assert await record(core, arena['alice']) == (0, 0)
    assert await record(core, arena['bob']) == (0, 0)
    assert await rating(core, arena['alice']) == 1500


@pytest.mark.asyncio
async def test_unknown_status_blocks_every_transition(arena):
    core = arena['core']
    match = await new_match(arena)
    await core.rows.update_by_key(TOURNAMENT_MATCHES, match['match_id'], lambda r: {'status': 'archived??'})

    assert (await core.get_tournament_matches(arena['tournament']))[0]['status'] == 'unknown'
    with pytest.raises(InvalidStateTransitionError):
        await core.delete_match(match['match_id'])
    with pytest.raises(InvalidStateTransitionError):
        await core.start_match(match['match_id'])
    stored = await core.rows.find_by_key(TOURNAMENT_MATCHES, match['match_id'])
    assert stored['status'] == 'archived??'


@pytest.mark.asyncio
async def test_invalidate_reverses_approved_match(arena):
    core = arena['core']
    match = await approved_match(arena)

    invalidated = await core.invalidate_match(match['match_id'], 'wrong players reported')

    assert invalidated['status'] == 'invalidated'
    assert invalidated['winner_id'] == ''
    assert invalidated['invalidation_reason'] == 'wrong players reported'
    assert await rating(core, arena['alice']) == 1500
    assert await rating(core, arena['bob']) == 1500
    assert await record(core, arena['alice']) == (0, 0)
    assert await record(core, arena['bob']) == (0, 0)

    with pytest.raises(InvalidStateTransitionError):
        await core.invalidate_match(match['match_id'], 'again')


@pytest.mark.asyncio
async def test_invalidate_completed_supersedes_pending(arena):
    core = arena['core']
    match = await new_match(arena)
    report = await core.submit_match_result(match['match_id'], arena['alice'], 'win')

    await core.invalidate_match(match['match_id'], 'duplicate')

    statuses = {r['result_id']: r['status'] for r in await core.rows.read_all(MATCH_RESULTS)}
    assert statuses[report['result_id']] == 'superseded'
    assert await rating(core, arena['alice']) == 1500


@pytest.mark.asyncio
async def test_invalidate_rejected_from_scheduled(arena):
    match = await new_match(arena)
    with pytest.raises(InvalidStateTransitionError):
        await arena['core'].invalidate_match(match['match_id'], 'nope')


@pytest.mark.asyncio
async def test_cancel_and_delete(arena):
    core = arena['core']
    scheduled = await new_match(arena)
    other = await new_match(arena)

    cancelled = await core.cancel_match(scheduled['match_id'], 'no show')
    assert cancelled['status'] == 'cancelled'
    with pytest.raises(InvalidStateTransitionError):
        await core.cancel_match(scheduled['match_id'])

    await core.start_match(other['match_id'])
    with pytest.raises(InvalidStateTransitionError):
        await core.delete_match(other['match_id'])

    third = await new_match(arena)
    await core.delete_match(third['match_id'])
    remaining = [m['match_id'] for m in await core.get_tournament_matches(arena['tournament'])]
    assert third['match_id'] not in remaining
    assert len(remaining) == 2


@pytest.mark.asyncio
async def test_save_pairings_replaces_only_scheduled(arena):
    core = arena['core']
    started = await new_match(arena)
    await core.start_match(started['match_id'])
    await new_match(arena)

    created = await core.save_pairings(arena['tournament'], [
        (arena['alice'], arena['carol']),
        {'player1_id': arena['bob'], 'player2_id': arena['carol'], 'game_type': 'cardplus'},
    ])

    assert len(created) == 2
    matches = await core.get_tournament_matches(arena['tournament'])
    assert len(matches) == 3
    assert [m['status'] for m in matches].count('in_progress') == 1
    assert created[1]['game_type'] == 'cardplus'


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_derived_record_matches_counters(arena):
    core = arena['core']
    await approved_match(arena, 'alice')
    await approved_match(arena, 'bob')
    await approved_match(arena, 'alice')
    invalid = await approved_match(arena, 'bob')
    await core.invalidate_match(invalid['match_id'], 'void')

    for key in ('alice', 'bob'):
        derived = await core.get_player_record(arena[key])
        wins, losses = await record(core, arena[key])
        assert (derived['wins'], derived['losses']) == (wins, losses)
    assert (await core.get_player_record(arena['alice']))['wins'] == 2


@pytest.mark.asyncio
async def test_player_match_history(arena):
    core = arena['core']
    await approved_match(arena, 'alice')
    await new_match(arena)

    history = await core.get_player_match_history(arena['bob'])

    assert len(history) == 2
    results = sorted(entry['result'] for entry in history)
    assert results == ['lose', 'pending']
    lost = next(entry for entry in history if entry['result'] == 'lose')
    assert lost['rating_change'] == -16
    assert lost['opponent'] == {'id': arena['alice'], 'name': 'Alice'}
