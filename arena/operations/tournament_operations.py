"""
Tournament Operations Module

Tournament CRUD, player entry, participation reset and archival.

Key functionality:
- create/update/activate/end/delete tournaments (status only moves forward)
- enter(): a player may be active in one running tournament at a time
- reset_all_tournament_active(): archive today's active players, then clear
  every tournament_active flag
- archive_year(): snapshot the annual standings and reset ratings/counters
"""

import asyncio
import time
import uuid
from datetime import date, datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from arena.config import Config
from arena.database.models import (
    DAILY_ARCHIVE, PLAYERS, TOURNAMENTS, TOURNAMENT_MATCHES, TOURNAMENT_PARTICIPANTS, TOURNAMENT_STATUS_ORDER,
    YEARLY_ARCHIVE, DailyArchiveRecord, MatchStatus, ParticipantStatus, PlayerRecord, TournamentParticipantRecord,
    TournamentRecord, TournamentStatus, YearlyArchiveRecord, format_bool, parse_bool, parse_int,
    tournament_today, utc_now_iso
)
from arena.database.row_store import RowStore
from arena.operations.player_operations import PlayerOperations, PLAYER_CACHE_KEYS
from arena.services.cache import TTLCache
from arena.utils.exceptions import InvalidStateTransitionError, NotFoundError, ValidationError
from arena.utils.logger import setup_logger

logger = setup_logger(__name__)

# Fields update_tournament() accepts
UPDATABLE_FIELDS = {
    'tournament_name', 'date', 'start_time', 'location', 'status',
    'max_participants', 'tournament_type', 'description',
}


class TournamentOperations:
    """Business logic for the tournament participation lifecycle."""

    def __init__(self, row_store: RowStore, cache: TTLCache, players: PlayerOperations,
                 operation_lock: Optional[asyncio.Lock] = None):
        self.rows = row_store
        self.cache = cache
        self.players = players
        self._lock = operation_lock or asyncio.Lock()
        self.logger = logger

    def _invalidate(self):
        self.cache.invalidate('tournaments', *PLAYER_CACHE_KEYS)

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    async def _load_tournaments(self) -> List[TournamentRecord]:
        return [TournamentRecord.from_row(row) for row in await self.rows.read_all(TOURNAMENTS) if row.get('id')]

    async def get_tournaments(self) -> List[TournamentRecord]:
        return await self.cache.cached('tournaments', self._load_tournaments)

    async def get_tournament(self, tournament_id: str) -> TournamentRecord:
        row = await self.rows.find_by_key(TOURNAMENTS, tournament_id)
        if row is None:
            raise NotFoundError(f"Tournament {tournament_id} not found", "Tournament not found.")
        return TournamentRecord.from_row(row)

    async def create_tournament(self, tournament_name: str, date: str = '', start_time: str = '',
                                location: str = '', max_participants: Optional[int] = None,
                                tournament_type: Optional[str] = None, description: str = '',
                                created_by: str = Config.ADMIN_ACTOR) -> TournamentRecord:
        """
        Create an upcoming tournament.

        Raises:
            ValidationError: Blank name or non-positive capacity
        """
        tournament_name = (tournament_name or '').strip()
        if not tournament_name:
            raise ValidationError("Tournament name is required", "Please enter a tournament name.")
        capacity = Config.DEFAULT_MAX_PARTICIPANTS if max_participants is None else int(max_participants)
        if capacity <= 0:
            raise ValidationError(f"Invalid max_participants: {capacity}", "Capacity must be at least 1.")

        tournament = TournamentRecord(
            id=f"tournament_{int(time.time() * 1000)}_{uuid.uuid4().hex[:4]}",
            tournament_name=tournament_name,
            date=date or tournament_today(),
            start_time=start_time,
            location=location,
            status=TournamentStatus.UPCOMING,
            max_participants=capacity,
            tournament_type=tournament_type or Config.DEFAULT_TOURNAMENT_TYPE,
            description=description,
            created_by=created_by,
            created_at=utc_now_iso(),
        )
        await self.rows.append_rows(TOURNAMENTS, [tournament.to_row()])
        self.cache.invalidate('tournaments')
        self.logger.info(f"Created tournament {tournament.id} ({tournament_name})")
        return tournament

    async def update_tournament(self, tournament_id: str, **updates) -> TournamentRecord:
        """
        Update tournament fields.

        Raises:
            ValidationError: Unknown field or bad value
            InvalidStateTransitionError: Status moved backwards
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {sorted(unknown)}", "Some fields cannot be changed.")

        async with self._lock:
            tournament = await self.get_tournament(tournament_id)
            row_updates = {}
            for field_name, value in updates.items():
                if field_name == 'status':
                    new_status = self._parse_status(value)
                    self._require_forward(tournament, new_status)
                    row_updates['status'] = new_status.value
                elif field_name == 'max_participants':
                    capacity = parse_int(value, None)
                    if capacity is None or capacity <= 0:
                        raise ValidationError(f"Invalid max_participants: {value!r}", "Capacity must be at least 1.")
                    row_updates['max_participants'] = str(capacity)
                else:
                    row_updates[field_name] = '' if value is None else str(value)

            row = await self.rows.update_by_key(TOURNAMENTS, tournament_id, lambda r: row_updates)
        self.cache.invalidate('tournaments')
        self.logger.info(f"Updated tournament {tournament_id}: {', '.join(row_updates)}")
        return TournamentRecord.from_row(row)

    @staticmethod
    def _parse_status(value) -> TournamentStatus:
        if isinstance(value, TournamentStatus):
            return value
        try:
            return TournamentStatus(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown tournament status: {value!r}", "Unknown tournament status.")

    @staticmethod
    def _require_forward(tournament: TournamentRecord, new_status: TournamentStatus):
        current = TOURNAMENT_STATUS_ORDER.index(tournament.status)
        target = TOURNAMENT_STATUS_ORDER.index(new_status)
        if target < current:
            raise InvalidStateTransitionError(
                f"Tournament {tournament.id} cannot move from {tournament.status.value} to {new_status.value}",
                "Tournament status cannot go backwards."
            )

    async def activate_tournament(self, tournament_id: str) -> TournamentRecord:
        """upcoming -> active"""
        async with self._lock:
            tournament = await self.get_tournament(tournament_id)
            if tournament.status != TournamentStatus.UPCOMING:
                raise InvalidStateTransitionError(
                    f"Tournament {tournament_id} is {tournament.status.value}, not upcoming",
                    "Only upcoming tournaments can be started."
                )
            row = await self.rows.update_by_key(
                TOURNAMENTS, tournament_id, lambda r: {'status': TournamentStatus.ACTIVE.value}
            )
        self.cache.invalidate('tournaments')
        self.logger.info(f"Activated tournament {tournament_id}")
        return TournamentRecord.from_row(row)

    async def end_tournament(self, tournament_id: str) -> Dict:
        """
        Mark a tournament completed and release its participants.

        Returns:
            Dict with the tournament and the number of participants deactivated
        """
        async with self._lock:
            tournament = await self.get_tournament(tournament_id)
            if tournament.status == TournamentStatus.COMPLETED:
                raise InvalidStateTransitionError(
                    f"Tournament {tournament_id} is already completed", "This tournament has already ended."
                )
            row = await self.rows.update_by_key(TOURNAMENTS, tournament_id, lambda r: {
                'status': TournamentStatus.COMPLETED.value,
                'ended_at': utc_now_iso(),
            })
            deactivated = await self._deactivate_participants(tournament_id)

        self._invalidate()
        self.logger.info(f"Ended tournament {tournament_id}, released {deactivated} participant(s)")
        return {'tournament': TournamentRecord.from_row(row), 'deactivated_count': deactivated}

    async def delete_tournament(self, tournament_id: str) -> Dict:
        """
        Delete a tournament.

        Participants are deactivated first, then the tournament's still-scheduled
        matches are dropped, then the tournament row is removed. Matches that
        have left scheduled are kept.
        """
        async with self._lock:
            await self.get_tournament(tournament_id)
            deactivated = await self._deactivate_participants(tournament_id)
            removed_matches = await self.rows.delete_rows(
                TOURNAMENT_MATCHES,
                lambda r: r.get('tournament_id') == tournament_id
                and (r.get('status') or 'scheduled') == MatchStatus.SCHEDULED.value
            )
            await self.rows.delete_rows(TOURNAMENTS, lambda r: r.get('id') == tournament_id)

        self._invalidate()
        self.logger.info(
            f"Deleted tournament {tournament_id} ({deactivated} participant(s) released, "
            f"{removed_matches} scheduled match(es) removed)"
        )
        return {'deactivated_count': deactivated, 'removed_matches': removed_matches}

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    async def get_participants(self, tournament_id: Optional[str] = None,
                               active_only: bool = False) -> List[TournamentParticipantRecord]:
        participants = [
            TournamentParticipantRecord.from_row(row)
            for row in await self.rows.read_all(TOURNAMENT_PARTICIPANTS)
            if row.get('participant_id')
        ]
        if tournament_id is not None:
            participants = [p for p in participants if p.tournament_id == tournament_id]
        if active_only:
            participants = [p for p in participants if p.status == ParticipantStatus.ACTIVE]
        return participants

    async def _deactivate_participants(self, tournament_id: str) -> int:
        released = set()

        def is_active_here(row):
            return (
                row.get('tournament_id') == tournament_id
                and TournamentParticipantRecord.from_row(row).status == ParticipantStatus.ACTIVE
            )

        def deactivate(row):
            released.add(row.get('player_id'))
            return {'status': ParticipantStatus.INACTIVE.value}

        count = await self.rows.update_where(TOURNAMENT_PARTICIPANTS, is_active_here, deactivate)
        if released:
            await self.rows.update_where(
                PLAYERS,
                lambda r: r.get('id') in released and parse_bool(r.get('tournament_active')),
                lambda r: {'tournament_active': format_bool(False)}
            )
        return count

    async def enter_tournament(self, player_id: str, tournament_id: str) -> Dict:
        """
        Enter a player into a tournament.

        Idempotent for the same tournament. Adds a participant row or
        reactivates an inactive one, sets tournament_active and refreshes
        current_participants.

        Raises:
            NotFoundError: Player or tournament missing
            ValidationError: Tournament closed or full, player inactive, or
                player already active in another tournament
        """
        async with self._lock:
            player = await self.players.require_player(player_id)
            if not player.is_active:
                raise ValidationError(f"Player {player_id} is deactivated", "This player account is inactive.")
            tournament = await self.get_tournament(tournament_id)
            if tournament.status == TournamentStatus.COMPLETED:
                raise ValidationError(
                    f"Tournament {tournament_id} is completed", "This tournament is no longer accepting entries."
                )

            participants = await self.get_participants()
            mine = [p for p in participants if p.player_id == player_id]
            elsewhere = [
                p for p in mine if p.status == ParticipantStatus.ACTIVE and p.tournament_id != tournament_id
            ]
            if elsewhere:
                raise ValidationError(
                    f"Player {player_id} is already active in tournament {elsewhere[0].tournament_id}",
                    "You are already entered in another tournament."
                )

            here = next((p for p in mine if p.tournament_id == tournament_id), None)
            if here is not None and here.status == ParticipantStatus.ACTIVE:
                if not player.tournament_active:
                    await self.players.set_tournament_active(player_id, True)
                self.logger.debug(f"Player {player_id} already entered in {tournament_id}")
                return {'participant': here, 'already_entered': True}

            active_count = sum(
                1 for p in participants
                if p.tournament_id == tournament_id and p.status == ParticipantStatus.ACTIVE
            )
            if active_count >= tournament.max_participants:
                raise ValidationError(
                    f"Tournament {tournament_id} is full ({tournament.max_participants})", "This tournament is full."
                )

            now = utc_now_iso()
            if here is not None:
                await self.rows.update_by_key(TOURNAMENT_PARTICIPANTS, here.participant_id, lambda r: {
                    'status': ParticipantStatus.ACTIVE.value,
                    'joined_at': now,
                })
                here.status = ParticipantStatus.ACTIVE
                here.joined_at = now
                participant = here
            else:
                participant = TournamentParticipantRecord(
                    participant_id=f"participant_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}",
                    tournament_id=tournament_id,
                    player_id=player_id,
                    status=ParticipantStatus.ACTIVE,
                    joined_at=now,
                )
                await self.rows.append_rows(TOURNAMENT_PARTICIPANTS, [participant.to_row()])

            await self.players.set_tournament_active(player_id, True)
            await self.rows.update_by_key(
                TOURNAMENTS, tournament_id, lambda r: {'current_participants': str(active_count + 1)}
            )

        self._invalidate()
        self.logger.info(f"Player {player_id} entered tournament {tournament_id}")
        return {'participant': participant, 'already_entered': False}

    # ------------------------------------------------------------------
    # Reset and archival
    # ------------------------------------------------------------------

    async def reset_all_tournament_active(self) -> Dict:
        """
        End-of-day reset.

        Archives every active player into the daily archive (best-effort), then
        sets tournament_active false for every player and deactivates all
        participant rows. Only called explicitly by an admin or scheduled job.

        Returns:
            Dict with updated_count, archived_count and the archive outcome
        """
        async with self._lock:
            active_players = await self.players.get_active_tournament_players()
            archive = await self.archive_tournament_day(active_players)

            updated = await self.rows.update_where(
                PLAYERS,
                lambda r: parse_bool(r.get('tournament_active')),
                lambda r: {'tournament_active': format_bool(False)}
            )
            released = await self.rows.update_where(
                TOURNAMENT_PARTICIPANTS,
                lambda r: TournamentParticipantRecord.from_row(r).status == ParticipantStatus.ACTIVE,
                lambda r: {'status': ParticipantStatus.INACTIVE.value}
            )

        self._invalidate()
        self.logger.info(
            f"Reset tournament_active for {updated} player(s), released {released} participant row(s), "
            f"archived {archive['archived_count']}"
        )
        return {
            'updated_count': updated,
            'archived_count': archive['archived_count'],
            'archive': archive,
        }

    async def archive_tournament_day(self, active_players: List[PlayerRecord],
                                     tournament_date: Optional[str] = None) -> Dict:
        """
        Append one daily archive row per active player.

        Best-effort: failures are logged and reported in the returned dict,
        never raised.
        """
        tournament_date = tournament_date or tournament_today()
        if not active_players:
            return {'success': True, 'archived_count': 0, 'date': tournament_date}

        try:
            now = utc_now_iso()
            await self.rows.client.ensure_sheet_exists(DAILY_ARCHIVE.sheet_name, DAILY_ARCHIVE.default_headers)
            records = [
                DailyArchiveRecord(
                    archive_id=f"archive_{int(time.time() * 1000)}_{player.id}_{uuid.uuid4().hex[:4]}",
                    tournament_date=tournament_date,
                    player_id=player.id,
                    player_nickname=player.nickname,
                    rating=player.current_rating,
                    entry_timestamp=now,
                    total_participants_that_day=len(active_players),
                    created_at=now,
                )
                for player in active_players
            ]
            await self.rows.append_rows(DAILY_ARCHIVE, [r.to_row() for r in records])
        except Exception as e:
            self.logger.warning(f"Archiving {tournament_date} failed, continuing with reset: {e}")
            return {'success': False, 'archived_count': 0, 'date': tournament_date, 'error': str(e)}

        self.logger.info(f"Archived {len(records)} player(s) for {tournament_date}")
        return {'success': True, 'archived_count': len(records), 'date': tournament_date}

    async def get_daily_archive(self, date_from: Optional[str] = None,
                                date_to: Optional[str] = None) -> List[DailyArchiveRecord]:
        """Daily archive rows with tournament_date in [date_from, date_to], newest first."""
        records = [DailyArchiveRecord.from_row(row) for row in await self.rows.read_all(DAILY_ARCHIVE)]
        if date_from:
            records = [r for r in records if r.tournament_date >= date_from]
        if date_to:
            records = [r for r in records if r.tournament_date <= date_to]
        records.sort(key=lambda r: r.tournament_date, reverse=True)
        return records

    async def archive_year(self, year: int) -> Dict:
        """
        Snapshot each player's annual standing, then start a new season.

        Writes one YearlyArchive row per active player (rating, tie-aware rank,
        badges, annual record) plus a season marker row, then resets
        current_rating to Config.BASE_RATING and the annual counters to 0 for
        every player. The marker is written even when no player is active, so a
        closed year is never archived twice.

        Raises:
            ValidationError: The year was already archived
        """
        async with self._lock:
            if await self._is_year_archived(year):
                raise ValidationError(f"Year {year} is already archived", f"{year} has already been archived.")

            players = [p for p in await self.players.load_players() if p.is_active]
            players.sort(key=lambda p: p.current_rating, reverse=True)

            now = utc_now_iso()
            records = []
            rank = 1
            for position, player in enumerate(players):
                if position == 0 or players[position - 1].current_rating != player.current_rating:
                    rank = position + 1
                records.append(YearlyArchiveRecord(
                    archive_id=f"yearly_{year}_{player.id}",
                    year=year,
                    player_id=player.id,
                    player_nickname=player.nickname,
                    final_rating=player.current_rating,
                    final_rank=rank,
                    champion_badges=player.champion_badges,
                    annual_wins=player.annual_wins,
                    annual_losses=player.annual_losses,
                    created_at=now,
                ))
            marker = YearlyArchiveRecord.season_marker(year, now)
            await self.rows.append_rows(YEARLY_ARCHIVE, [r.to_row() for r in records + [marker]])

            reset = await self.rows.update_where(
                PLAYERS,
                lambda r: bool(r.get('id')),
                lambda r: {
                    'current_rating': str(Config.BASE_RATING),
                    'annual_wins': '0',
                    'annual_losses': '0',
                }
            )

        self._invalidate()
        self.logger.info(f"Archived {len(records)} player(s) for {year}, reset {reset} player(s)")
        return {'year': year, 'archived_count': len(records), 'reset_count': reset}

    async def check_and_archive_if_needed(self, today: Optional[date] = None) -> Dict:
        """Archive the previous year once, the first time this runs in a new year."""
        today = today or datetime.now(ZoneInfo(Config.TOURNAMENT_TIMEZONE)).date()
        previous_year = today.year - 1

        if await self._is_year_archived(previous_year):
            return {'archived': False, 'year': previous_year, 'reason': 'already_archived'}

        result = await self.archive_year(previous_year)
        return {'archived': True, **result}

    async def _is_year_archived(self, year: int) -> bool:
        # Marker rows and player snapshots both count
        return any(parse_int(row.get('year')) == year for row in await self.rows.read_all(YEARLY_ARCHIVE))

    async def get_yearly_archive(self, player_id: Optional[str] = None,
                                 year: Optional[int] = None) -> List[YearlyArchiveRecord]:
        records = [
            record for record in (YearlyArchiveRecord.from_row(row) for row in await self.rows.read_all(YEARLY_ARCHIVE))
            if not record.is_season_marker
        ]
        if player_id is not None:
            records = [r for r in records if r.player_id == player_id]
        if year is not None:
            records = [r for r in records if r.year == year]
        records.sort(key=lambda r: (-r.year, r.final_rank))
        return records
