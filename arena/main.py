import argparse
import asyncio
import dataclasses
import sys
from typing import Dict, List, Optional

from arena.config import Config
from arena.database.database import Database
from arena.database.models import ALL_SCHEMAS
from arena.database.row_store import RowStore
from arena.database.schema import SchemaResolver
from arena.database.tabular import TabularStoreClient
from arena.operations.badge_operations import BadgeOperations
from arena.operations.match_operations import MatchOperations
from arena.operations.player_operations import PlayerOperations
from arena.operations.tournament_operations import TournamentOperations
from arena.services.cache import TTLCache
from arena.utils.elo import EloCalculator
from arena.utils.exceptions import ArenaError, SchemaError
from arena.utils.logger import setup_logger


class ArenaCore:
    """
    Wires the arena services together and exposes the caller-facing API.

    Every method is async and returns plain dicts/lists; failures surface as
    ArenaError subclasses.
    """

    def __init__(self, client: Optional[TabularStoreClient] = None, cache: Optional[TTLCache] = None):
        self.logger = setup_logger(__name__)
        self.client = client
        self.cache = cache or TTLCache()
        self.rows: Optional[RowStore] = None
        self.players: Optional[PlayerOperations] = None
        self.badges: Optional[BadgeOperations] = None
        self.matches: Optional[MatchOperations] = None
        self.tournaments: Optional[TournamentOperations] = None

    async def initialize(self, create_missing: bool = True):
        """
        Connect the store, create missing sheets and validate every schema.

        Raises:
            SchemaError: Listing the missing required columns of every sheet
        """
        self.logger.info("Setting up arena core...")
        Config.validate()

        if self.client is None:
            database = Database()
            await database.initialize()
            self.client = database

        resolver = SchemaResolver(self.client)
        problems = []
        for schema in ALL_SCHEMAS:
            if create_missing:
                await self.client.ensure_sheet_exists(schema.sheet_name, schema.default_headers)
            try:
                await resolver.validate(schema)
            except SchemaError as e:
                problems.append(e.message)
        if problems:
            self.logger.error(f"Schema validation failed: {'; '.join(problems)}")
            raise SchemaError('; '.join(problems))

        self.rows = RowStore(self.client, resolver)
        operation_lock = asyncio.Lock()
        self.players = PlayerOperations(self.rows, self.cache)
        self.badges = BadgeOperations(self.rows, self.cache)
        self.matches = MatchOperations(self.rows, self.cache, self.players, self.badges, operation_lock)
        self.tournaments = TournamentOperations(self.rows, self.cache, self.players, operation_lock)

        self.logger.info("Arena core setup complete!")

    async def close(self):
        """Cleanup when shutting down"""
        self.logger.info("Shutting down arena core...")
        if self.client:
            await self.client.close()

    # ------------------------------------------------------------------
    # Players and rankings
    # ------------------------------------------------------------------

    async def get_rankings(self) -> List[Dict]:
        return await self.players.get_rankings()

    async def get_player(self, player_id: str) -> Optional[Dict]:
        player = await self.players.get_player(player_id)
        return player.to_dict() if player else None

    async def get_players(self) -> List[Dict]:
        return [p.to_dict() for p in await self.players.get_players()]

    async def register_player(self, nickname: str, email: str = '', alternate_entry: bool = False) -> Dict:
        return (await self.players.register_player(nickname, email, alternate_entry)).to_dict()

    async def update_player_profile(self, player_id: str, nickname: Optional[str] = None,
                                    email: Optional[str] = None) -> Dict:
        return (await self.players.update_profile(player_id, nickname, email)).to_dict()

    async def delete_player(self, player_id: str) -> Dict:
        return {'player_id': player_id, 'outcome': await self.players.delete_player(player_id)}

    async def get_player_record(self, player_id: str) -> Dict:
        return await self.players.derive_record(player_id)

    async def get_player_match_history(self, player_id: str) -> List[Dict]:
        return await self.matches.get_player_match_history(player_id)

    async def add_badge(self, player_id: str, badge: str) -> Dict:
        return {'player_id': player_id, 'added': await self.badges.add_badge(player_id, badge)}

    async def preview_match(self, player_id: str, opponent_id: str) -> Dict:
        """Win probability and possible rating changes before a match."""
        player = await self.players.require_player(player_id)
        opponent = await self.players.require_player(opponent_id)
        if_win, if_lose = EloCalculator.preview_rating_change(player.current_rating, opponent.current_rating)
        return {
            'win_probability': EloCalculator.calculate_win_probability(player.current_rating, opponent.current_rating),
            'if_win': EloCalculator.format_rating_change(if_win),
            'if_lose': EloCalculator.format_rating_change(if_lose),
        }

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    async def get_tournament_matches(self, tournament_id: Optional[str] = None) -> List[Dict]:
        return [m.to_dict() for m in await self.matches.get_tournament_matches(tournament_id)]

    async def create_match(self, tournament_id: str, player1_id: str, player2_id: str,
                           game_type: str = 'trump') -> Dict:
        return (await self.matches.create_match(tournament_id, player1_id, player2_id, game_type)).to_dict()

    async def save_pairings(self, tournament_id: str, pairings) -> List[Dict]:
        return [m.to_dict() for m in await self.matches.save_pairings(tournament_id, pairings)]

    async def start_match(self, match_id: str) -> Dict:
        return (await self.matches.start_match(match_id)).to_dict()

    async def submit_match_result(self, match_id: str, reporter_id: str, result: str,
                                  opponent_id: Optional[str] = None) -> Dict:
        return (await self.matches.submit_result(match_id, reporter_id, result, opponent_id)).to_dict()

    async def get_pending_results(self) -> List[Dict]:
        return [r.to_dict() for r in await self.matches.get_pending_results()]

    async def approve_match_result(self, result_id: str, approved: bool) -> Dict:
        return await self.matches.approve_result(result_id, approved)

    async def admin_direct_match_result(self, match_id: str, winner_id: str,
                                        loser_id: Optional[str] = None) -> Dict:
        return await self.matches.admin_direct_input(match_id, winner_id, loser_id)

    async def edit_completed_match(self, match_id: str, new_winner_id: Optional[str] = None,
                                   new_game_type: Optional[str] = None) -> Dict:
        return await self.matches.edit_match(match_id, new_winner_id, new_game_type)

    async def invalidate_match(self, match_id: str, reason: str = '') -> Dict:
        return (await self.matches.invalidate_match(match_id, reason)).to_dict()

    async def cancel_match(self, match_id: str, reason: str = '') -> Dict:
        return (await self.matches.cancel_match(match_id, reason)).to_dict()

    async def delete_match(self, match_id: str) -> Dict:
        await self.matches.delete_match(match_id)
        return {'match_id': match_id, 'deleted': True}

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    async def get_tournaments(self) -> List[Dict]:
        return [t.to_dict() for t in await self.tournaments.get_tournaments()]

    async def create_tournament(self, tournament_name: str, **fields) -> Dict:
        return (await self.tournaments.create_tournament(tournament_name, **fields)).to_dict()

    async def update_tournament(self, tournament_id: str, **updates) -> Dict:
        return (await self.tournaments.update_tournament(tournament_id, **updates)).to_dict()

    async def activate_tournament(self, tournament_id: str) -> Dict:
        return (await self.tournaments.activate_tournament(tournament_id)).to_dict()

    async def end_tournament(self, tournament_id: str) -> Dict:
        outcome = await self.tournaments.end_tournament(tournament_id)
        return {'tournament': outcome['tournament'].to_dict(), 'deactivated_count': outcome['deactivated_count']}

    async def delete_tournament(self, tournament_id: str) -> Dict:
        return await self.tournaments.delete_tournament(tournament_id)

    async def enter_tournament(self, player_id: str, tournament_id: str) -> Dict:
        outcome = await self.tournaments.enter_tournament(player_id, tournament_id)
        return {'participant': outcome['participant'].to_dict(), 'already_entered': outcome['already_entered']}

    async def get_participants(self, tournament_id: Optional[str] = None) -> List[Dict]:
        return [p.to_dict() for p in await self.tournaments.get_participants(tournament_id)]

    async def reset_all_tournament_active(self) -> Dict:
        return await self.tournaments.reset_all_tournament_active()

    async def get_daily_archive(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> List[Dict]:
        return [dataclasses.asdict(r) for r in await self.tournaments.get_daily_archive(date_from, date_to)]

    async def archive_year(self, year: int) -> Dict:
        return await self.tournaments.archive_year(year)

    async def check_and_archive_if_needed(self) -> Dict:
        return await self.tournaments.check_and_archive_if_needed()

    async def get_yearly_archive(self, player_id: Optional[str] = None, year: Optional[int] = None) -> List[Dict]:
        return [dataclasses.asdict(r) for r in await self.tournaments.get_yearly_archive(player_id, year)]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='arena', description='Card arena scheduled jobs and maintenance')
    parser.add_argument('--database-url', help='Override DATABASE_URL')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('init', help='Create missing sheets and validate schemas')
    sub.add_parser('reset-tournament-active', help='Archive today and clear every tournament_active flag')

    archive = sub.add_parser('archive-year', help='Archive a year and start a new season')
    archive.add_argument('year', type=int, nargs='?', help='Year to archive (default: previous year, once)')

    sub.add_parser('rankings', help='Print current rankings')
    return parser


async def run(args) -> int:
    logger = setup_logger('arena')
    core = ArenaCore(Database(args.database_url) if args.database_url else None)
    if core.client is not None:
        await core.client.initialize()

    try:
        await core.initialize()
        if args.command == 'init':
            logger.info("Sheets ready")
        elif args.command == 'reset-tournament-active':
            outcome = await core.reset_all_tournament_active()
            logger.info(f"Reset {outcome['updated_count']} player(s), archived {outcome['archived_count']}")
        elif args.command == 'archive-year':
            if args.year is None:
                outcome = await core.check_and_archive_if_needed()
            else:
                outcome = await core.archive_year(args.year)
            logger.info(f"Yearly archive: {outcome}")
        elif args.command == 'rankings':
            for entry in await core.get_rankings():
                print(f"{entry['rank_display']:>6}  {entry['nickname']:<20} {entry['current_rating']:>5}  "
                      f"{entry['champion_badges']}")
        return 0
    except ArenaError as e:
        logger.error(f"{args.command} failed: {e.message}")
        return 1
    finally:
        await core.close()


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
