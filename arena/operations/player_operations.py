"""
Player Operations Module

Business logic for player records: registration, lookup, rankings, rating and
counter adjustments, soft deletion and the match-ledger derived record.

Reads used by high-traffic queries (players, rankings) go through the shared
TTLCache. Writers read fresh rows and invalidate the affected cache keys.
"""

import time
import uuid
from typing import Dict, List, Optional, Tuple

from arena.config import Config
from arena.database.models import (
    PLAYERS, TOURNAMENT_MATCHES, MatchRecord, MatchStatus, PlayerRecord,
    format_bool, parse_int, tournament_today, utc_now_iso
)
from arena.database.row_store import RowStore
from arena.operations.badge_operations import BadgeOperations
from arena.services.cache import TTLCache
from arena.utils.exceptions import NotFoundError, ValidationError
from arena.utils.logger import setup_logger

logger = setup_logger(__name__)

PLAYER_CACHE_KEYS = ('players', 'rankings')


class PlayerOperations:
    """
    Business logic operations for player management.

    Player rows are never hard-deleted once the player appears in a match; they
    are soft-deactivated instead.
    """

    def __init__(self, row_store: RowStore, cache: TTLCache):
        """Initialize with the shared row store and cache"""
        self.rows = row_store
        self.cache = cache
        self.logger = logger

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load_players(self) -> List[PlayerRecord]:
        return [PlayerRecord.from_row(row) for row in await self.rows.read_all(PLAYERS) if row.get('id')]

    async def get_players(self) -> List[PlayerRecord]:
        """All player records, cached for Config.CACHE_TTL_SECONDS."""
        return await self.cache.cached('players', self.load_players)

    async def get_player(self, player_id: str) -> Optional[PlayerRecord]:
        for player in await self.get_players():
            if player.id == player_id:
                return player
        return None

    async def get_player_by_email(self, email: str) -> Optional[PlayerRecord]:
        email = (email or '').strip().lower()
        if not email:
            return None
        for player in await self.get_players():
            if player.email.strip().lower() == email:
                return player
        return None

    async def require_player(self, player_id: str) -> PlayerRecord:
        """Fresh (uncached) read of one player, for use by writers."""
        row = await self.rows.find_by_key(PLAYERS, player_id)
        if row is None:
            raise NotFoundError(f"Player {player_id} not found", "Player not found.")
        return PlayerRecord.from_row(row)

    async def get_active_tournament_players(self) -> List[PlayerRecord]:
        return [p for p in await self.load_players() if p.tournament_active]

    async def get_rankings(self) -> List[Dict]:
        """Players ordered by rating, with shared ranks for equal ratings."""
        return await self.cache.cached('rankings', self._build_rankings)

    async def _build_rankings(self) -> List[Dict]:
        players = [p for p in await self.get_players() if p.is_active]
        players.sort(key=lambda p: p.current_rating, reverse=True)

        rating_counts: Dict[int, int] = {}
        for player in players:
            rating_counts[player.current_rating] = rating_counts.get(player.current_rating, 0) + 1

        rankings = []
        current_rank = 1
        for position, player in enumerate(players):
            if position == 0 or players[position - 1].current_rating != player.current_rating:
                current_rank = position + 1
            is_tied = rating_counts[player.current_rating] > 1
            entry = player.to_dict()
            entry.update({
                'rank': current_rank,
                'is_tied': is_tied,
                'rank_display': f"{current_rank}位タイ" if is_tied else f"{current_rank}位",
                'champion_badges': BadgeOperations.display_badges(player),
            })
            rankings.append(entry)
        return rankings

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def register_player(self, nickname: str, email: str = '', alternate_entry: bool = False,
                              tournament_active: bool = False) -> PlayerRecord:
        """
        Register a new player.

        Args:
            nickname: Display name, required
            email: Optional contact email; must be unique when given
            alternate_entry: Walk-in registration, starts at Config.ALT_BASE_RATING
            tournament_active: Whether the player joins the running tournament now

        Returns:
            PlayerRecord: The new player

        Raises:
            ValidationError: If the nickname is blank or the email is taken
        """
        nickname = (nickname or '').strip()
        if not nickname:
            raise ValidationError("Nickname is required", "Please enter a nickname.")
        if email and await self.get_player_by_email(email):
            raise ValidationError(f"Email {email} already registered", "This email is already registered.")

        now = utc_now_iso()
        player = PlayerRecord(
            id=f"player_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}",
            nickname=nickname,
            email=(email or '').strip(),
            current_rating=Config.ALT_BASE_RATING if alternate_entry else Config.BASE_RATING,
            registration_date=tournament_today(),
            last_activity_date=now,
            tournament_active=tournament_active,
        )
        await self.rows.append_rows(PLAYERS, [player.to_row()])
        self.cache.invalidate(*PLAYER_CACHE_KEYS)
        self.logger.info(f"Registered player {player.id} ({nickname}) at {player.current_rating}")
        return player

    async def update_profile(self, player_id: str, nickname: Optional[str] = None,
                             email: Optional[str] = None) -> PlayerRecord:
        updates = {}
        if nickname is not None:
            if not nickname.strip():
                raise ValidationError("Nickname cannot be blank", "Please enter a nickname.")
            updates['nickname'] = nickname.strip()
        if email is not None:
            other = await self.get_player_by_email(email)
            if other and other.id != player_id:
                raise ValidationError(f"Email {email} already registered", "This email is already registered.")
            updates['email'] = email.strip()
        if not updates:
            return await self.require_player(player_id)

        updates['last_activity_date'] = utc_now_iso()
        row = await self.rows.update_by_key(PLAYERS, player_id, lambda r: updates)
        self.cache.invalidate(*PLAYER_CACHE_KEYS)
        self.logger.info(f"Updated profile for player {player_id}: {', '.join(updates)}")
        return PlayerRecord.from_row(row)

    async def set_tournament_active(self, player_id: str, active: bool):
        await self.rows.update_by_key(PLAYERS, player_id, lambda r: {'tournament_active': format_bool(active)})
        self.cache.invalidate(*PLAYER_CACHE_KEYS)

    async def adjust_players(self, adjustments: Dict[str, Tuple[Optional[int], int, int]]) -> int:
        """
        Set ratings and shift win/loss counters for several players in one write.

        Each adjustment is (rating, wins, losses): rating None keeps the current
        rating; wins and losses are deltas applied to both the annual and total
        counters, which never go below zero. Either every listed player is
        updated or, when the write fails, none is.

        Raises:
            NotFoundError: A listed player does not exist (nothing is written)
        """
        existing = {p.id for p in await self.load_players()}
        missing = [player_id for player_id in adjustments if player_id not in existing]
        if missing:
            raise NotFoundError(f"Players not found: {missing}", "Player not found.")

        mutators = {player_id: self._adjustment(*change) for player_id, change in adjustments.items()}
        count = await self.rows.update_where(
            PLAYERS, lambda r: r.get('id') in mutators, lambda r: mutators[r['id']](r)
        )
        self.cache.invalidate(*PLAYER_CACHE_KEYS)
        return count

    @staticmethod
    def _adjustment(rating: Optional[int], wins: int, losses: int):
        def mutate(row):
            updates = {'last_activity_date': utc_now_iso()}
            if rating is not None:
                updates['current_rating'] = str(rating)
            if wins:
                for field_name in ('annual_wins', 'total_wins'):
                    updates[field_name] = str(max(0, parse_int(row.get(field_name)) + wins))
            if losses:
                for field_name in ('annual_losses', 'total_losses'):
                    updates[field_name] = str(max(0, parse_int(row.get(field_name)) + losses))
            return updates
        return mutate

    async def delete_player(self, player_id: str) -> str:
        """
        Remove a player.

        A player that appears in any match is soft-deactivated (is_active false,
        player_status inactive) so the match ledger stays intact.

        Returns:
            'deactivated' or 'deleted'
        """
        await self.require_player(player_id)

        matches = await self.rows.read_all(TOURNAMENT_MATCHES)
        has_history = any(player_id in (m.get('player1_id'), m.get('player2_id')) for m in matches)

        if has_history:
            await self.rows.update_by_key(PLAYERS, player_id, lambda r: {
                'is_active': format_bool(False),
                'player_status': 'inactive',
                'tournament_active': format_bool(False),
            })
            outcome = 'deactivated'
        else:
            await self.rows.delete_rows(PLAYERS, lambda r: r.get('id') == player_id)
            outcome = 'deleted'

        self.cache.invalidate(*PLAYER_CACHE_KEYS)
        self.logger.info(f"Player {player_id} {outcome}")
        return outcome

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------

    async def derive_record(self, player_id: str) -> Dict[str, int]:
        """
        Wins and losses counted from the match ledger.

        Counts matches the player appears in with status approved or completed
        and a recorded winner.
        """
        wins = losses = 0
        for row in await self.rows.read_all(TOURNAMENT_MATCHES):
            match = MatchRecord.from_row(row)
            if not match.has_participant(player_id):
                continue
            if match.status not in (MatchStatus.APPROVED, MatchStatus.COMPLETED):
                continue
            if not match.has_participant(match.winner_id):
                continue
            if match.winner_id == player_id:
                wins += 1
            else:
                losses += 1
        return {'wins': wins, 'losses': losses, 'matches': wins + losses}
