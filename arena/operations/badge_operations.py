"""
Badge Operations Module

One-time rule experience flags and champion badge tokens on player rows.

- record_experience(): first play of a rule sets <rule>_rule_experienced and
  stamps the first-play date; later plays change nothing
- add_badge(): appends a champion badge token once
- display_badges(): the badge string shown in rankings
"""

from typing import Optional, Union

from arena.database.models import (
    PLAYERS, GameType, PlayerRecord, format_bool, normalize_game_type, parse_bool, tournament_today
)
from arena.database.row_store import RowStore
from arena.services.cache import TTLCache
from arena.utils.logger import setup_logger

logger = setup_logger(__name__)

TRUMP_BADGE = '♠️'
CARDPLUS_BADGE = '➕'


class BadgeOperations:
    """Grants rule experience and champion badges."""

    def __init__(self, row_store: RowStore, cache: TTLCache):
        self.rows = row_store
        self.cache = cache
        self.logger = logger

    async def record_experience(self, player_id: str, game_type: Union[GameType, str, None]) -> bool:
        """
        Mark that a player has played a rule.

        Idempotent: the flag is only set, never cleared, and the first-play date
        is only written when the flag was previously unset.

        Args:
            player_id: Player to update
            game_type: GameType or any accepted spelling of it

        Returns:
            True if the flag was newly granted, False if already held or the
            game type is not a known rule

        Raises:
            NotFoundError: If the player does not exist
        """
        rule = game_type if isinstance(game_type, GameType) else normalize_game_type(game_type)
        if rule is None:
            self.logger.debug(f"Ignoring experience for unknown game type {game_type!r}")
            return False

        flag_field = f'{rule.value}_rule_experienced'
        date_field = f'first_{rule.value}_game_date'
        granted = False

        def mutate(row):
            nonlocal granted
            if parse_bool(row.get(flag_field)):
                return None
            granted = True
            row[flag_field] = format_bool(True)
            if not row.get(date_field):
                row[date_field] = tournament_today()
            return None

        await self.rows.update_by_key(PLAYERS, player_id, mutate)

        if granted:
            self.cache.invalidate('players', 'rankings')
            self.logger.info(f"Player {player_id} experienced the {rule.value} rule for the first time")
        return granted

    async def add_badge(self, player_id: str, badge: str) -> bool:
        """
        Add a champion badge token to a player.

        Returns:
            True if the token was added, False if the player already had it

        Raises:
            NotFoundError: If the player does not exist
        """
        added = False

        def mutate(row):
            nonlocal added
            current = row.get('champion_badges', '')
            if badge in current:
                return None
            added = True
            row['champion_badges'] = current + badge
            return None

        await self.rows.update_by_key(PLAYERS, player_id, mutate)

        if added:
            self.cache.invalidate('players', 'rankings')
            self.logger.info(f"Badge {badge} added to player {player_id}")
        else:
            self.logger.debug(f"Player {player_id} already has badge {badge}")
        return added

    async def grant_match_badges(self, player_ids, game_type: Optional[GameType]):
        """
        Best-effort experience grant for everyone who played a match.

        Failures are logged and never propagate.
        """
        for player_id in player_ids:
            try:
                await self.record_experience(player_id, game_type)
            except Exception as e:
                self.logger.warning(f"Badge grant failed for player {player_id}, continuing: {e}")

    @staticmethod
    def display_badges(player: PlayerRecord) -> str:
        """Champion badges followed by rule tokens the player has earned."""
        badges = player.champion_badges or ''
        if player.trump_rule_experienced and TRUMP_BADGE not in badges:
            badges += f', {TRUMP_BADGE}' if badges else TRUMP_BADGE
        if player.cardplus_rule_experienced and CARDPLUS_BADGE not in badges:
            badges += f', {CARDPLUS_BADGE}' if badges else CARDPLUS_BADGE
        return badges
