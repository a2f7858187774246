"""
Match Operations Module

Match state machine and result workflow.

States:
    scheduled -> in_progress -> completed -> approved
    completed/approved -> invalidated
    scheduled/in_progress -> cancelled

Players self-report results (pending_approval). An administrator approves or
rejects each report, or records the result directly. Approval applies rating
changes and win/loss counters; edit and invalidate reverse them using the
changes stored on the match row.

Every public operation runs under one operation lock: read, validate, compute
and write happen as a unit within this process. Validation happens before any
write, so a rejected call leaves every record unchanged.
"""

import asyncio
import time
import uuid
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from arena.config import Config
from arena.database.models import (
    MATCH_RESULTS, TOURNAMENT_MATCHES, TOURNAMENTS,
    GameType, MatchRecord, MatchStatus, PendingResultRecord, ReportedResult, ResultStatus,
    normalize_game_type, utc_now_iso
)
from arena.database.row_store import RowStore
from arena.operations.badge_operations import BadgeOperations
from arena.operations.player_operations import PlayerOperations, PLAYER_CACHE_KEYS
from arena.services.cache import TTLCache
from arena.utils.elo import EloCalculator, RatingUpdate
from arena.utils.exceptions import InvalidStateTransitionError, NotFoundError, ValidationError
from arena.utils.logger import setup_logger

logger = setup_logger(__name__)

# Pairing input: (player1_id, player2_id) or (player1_id, player2_id, game_type)
Pairing = Union[Tuple[str, str], Tuple[str, str, str], Dict[str, str]]

# Player adjustment: (rating or None to keep it, wins delta, losses delta)
Adjustment = Tuple[Optional[int], int, int]


class MatchOperations:
    """
    Core service class for the match lifecycle.

    Works on TournamentMatches and MatchResults rows through the RowStore and
    delegates player rating/counter writes to PlayerOperations.
    """

    def __init__(self, row_store: RowStore, cache: TTLCache, players: PlayerOperations,
                 badges: BadgeOperations, operation_lock: Optional[asyncio.Lock] = None):
        self.rows = row_store
        self.cache = cache
        self.players = players
        self.badges = badges
        self._lock = operation_lock or asyncio.Lock()
        self.logger = logger

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_match(self, match_id: str) -> MatchRecord:
        row = await self.rows.find_by_key(TOURNAMENT_MATCHES, match_id)
        if row is None:
            raise NotFoundError(f"Match {match_id} not found", "Match not found.")
        return MatchRecord.from_row(row)

    async def _save_match(self, match: MatchRecord):
        await self.rows.update_by_key(TOURNAMENT_MATCHES, match.match_id, lambda r: match.to_row())

    async def _get_result(self, result_id: str) -> PendingResultRecord:
        row = await self.rows.find_by_key(MATCH_RESULTS, result_id)
        if row is None:
            raise NotFoundError(f"Match result {result_id} not found", "Match result not found.")
        return PendingResultRecord.from_row(row)

    @staticmethod
    def _require_status(match: MatchRecord, allowed: Iterable[MatchStatus], action: str):
        allowed = tuple(allowed)
        if match.status not in allowed:
            raise InvalidStateTransitionError(
                f"Cannot {action} match {match.match_id} in status '{match.status.value}' "
                f"(allowed: {', '.join(s.value for s in allowed)})",
                "This match cannot be changed in its current state."
            )

    @staticmethod
    def _parse_game_type(game_type) -> GameType:
        if isinstance(game_type, GameType):
            return game_type
        rule = normalize_game_type(game_type)
        if rule is None:
            raise ValidationError(f"Unknown game type: {game_type!r}", "Unknown game rule.")
        return rule

    @staticmethod
    def _new_result_id() -> str:
        return f"result_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"

    def _winner_and_loser(self, match: MatchRecord, winner_id: str,
                          loser_id: Optional[str] = None) -> Tuple[str, str]:
        if not match.has_participant(winner_id):
            raise ValidationError(
                f"Winner {winner_id} is not a participant of match {match.match_id}",
                "The winner must be one of the match players."
            )
        expected_loser = match.opponent_of(winner_id)
        if loser_id and loser_id != expected_loser:
            raise ValidationError(
                f"Loser {loser_id} does not match the opponent of {winner_id} in match {match.match_id}",
                "The loser must be the other match player."
            )
        return winner_id, expected_loser

    async def _apply_ratings(self, match: MatchRecord, winner_id: str, loser_id: str,
                             reversal: Optional[Dict[str, Adjustment]] = None) -> RatingUpdate:
        """
        Compute new ratings, write them with the counters, and snapshot them on `match`.

        A pending `reversal` (see _reversal) is folded into the same Players
        write, so the restore and the new result land together or not at all.
        """
        reversal = reversal or {}
        ratings = {}
        for player_id in (winner_id, loser_id):
            restored = reversal.get(player_id, (None, 0, 0))[0]
            if restored is None:
                restored = (await self.players.require_player(player_id)).current_rating
            ratings[player_id] = restored
        update = EloCalculator.calculate_match(ratings[winner_id], ratings[loser_id])

        adjustments = dict(reversal)
        _, winner_wins, winner_losses = reversal.get(winner_id, (None, 0, 0))
        _, loser_wins, loser_losses = reversal.get(loser_id, (None, 0, 0))
        adjustments[winner_id] = (update.winner_after, winner_wins + 1, winner_losses)
        adjustments[loser_id] = (update.loser_after, loser_wins, loser_losses + 1)
        await self.players.adjust_players(adjustments)

        match.winner_id = winner_id
        match.loser_id = loser_id
        match.set_rating_snapshot(winner_id, update.winner_before, update.winner_after, update.winner_change)
        match.set_rating_snapshot(loser_id, update.loser_before, update.loser_after, update.loser_change)

        self.logger.info(
            f"Match {match.match_id}: {winner_id} {update.winner_before}->{update.winner_after} "
            f"({EloCalculator.format_rating_change(update.winner_change)}), "
            f"{loser_id} {update.loser_before}->{update.loser_after} "
            f"({EloCalculator.format_rating_change(update.loser_change)})"
        )
        return update

    async def _reversal(self, match: MatchRecord, prior_winner: Optional[str],
                        counters: bool) -> Dict[str, Adjustment]:
        """
        Adjustments that undo the rating changes stored on `match` (and the counters if asked).

        Restored rating is the player's current rating minus the stored change,
        so later matches played in between are preserved. Nothing is written.
        """
        adjustments = {}
        for player_id in match.participant_ids:
            change = match.rating_change_for(player_id)
            player = await self.players.require_player(player_id)
            restored = None
            if change is not None:
                restored = max(Config.RATING_FLOOR, player.current_rating - change)

            wins = losses = 0
            if counters and prior_winner:
                if player_id == prior_winner:
                    wins = -1
                else:
                    losses = -1

            if restored is not None or wins or losses:
                adjustments[player_id] = (restored, wins, losses)
                self.logger.info(
                    f"Reversing match {match.match_id} for {player_id}: rating "
                    f"{player.current_rating}->{restored if restored is not None else player.current_rating}"
                )
        return adjustments

    @staticmethod
    def _prior_winner(match: MatchRecord) -> Optional[str]:
        """
        The winner the stored row stands for.

        When winner_id is unusable on an approved match, the player whose stored
        rating change is larger won; equal or missing changes mean no winner.
        """
        if match.has_participant(match.winner_id):
            return match.winner_id
        if match.status != MatchStatus.APPROVED:
            return None
        first, second = match.player1_id, match.player2_id
        first_change = match.rating_change_for(first)
        second_change = match.rating_change_for(second)
        if first_change is None or second_change is None or first_change == second_change:
            return None
        return first if first_change > second_change else second

    async def _supersede_pending(self, match_id: str, keep_result_id: Optional[str] = None) -> int:
        def is_pending_for_match(row):
            return (
                row.get('match_id') == match_id
                and row.get('result_id') != keep_result_id
                and (row.get('status') or '').strip().lower() == ResultStatus.PENDING_APPROVAL.value
            )

        count = await self.rows.update_where(
            MATCH_RESULTS, is_pending_for_match, lambda r: {'status': ResultStatus.SUPERSEDED.value}
        )
        if count:
            self.logger.info(f"Superseded {count} pending result(s) for match {match_id}")
        return count

    async def _has_pending(self, match_id: str) -> bool:
        for row in await self.rows.read_all(MATCH_RESULTS):
            if row.get('match_id') != match_id:
                continue
            if PendingResultRecord.from_row(row).status == ResultStatus.PENDING_APPROVAL:
                return True
        return False

    # ------------------------------------------------------------------
    # Creation and pairing
    # ------------------------------------------------------------------

    async def create_match(self, tournament_id: str, player1_id: str, player2_id: str,
                           game_type: Union[GameType, str, None] = GameType.TRUMP) -> MatchRecord:
        """
        Create a scheduled match between two players.

        Args:
            tournament_id: Tournament the match belongs to
            player1_id: First player
            player2_id: Second player
            game_type: Rule for the match; blank means trump

        Returns:
            MatchRecord: The new match, numbered count+1 within the tournament

        Raises:
            ValidationError: Same player twice or unknown game type
            NotFoundError: Tournament or players do not exist
        """
        async with self._lock:
            return await self._create_match(tournament_id, player1_id, player2_id, game_type)

    async def _create_match(self, tournament_id: str, player1_id: str, player2_id: str,
                            game_type) -> MatchRecord:
        rule = self._parse_game_type(game_type)
        if not player1_id or not player2_id:
            raise ValidationError("Both players are required", "Please choose two players.")
        if player1_id == player2_id:
            raise ValidationError("Duplicate participants not allowed", "A player cannot play against themself.")

        if await self.rows.find_by_key(TOURNAMENTS, tournament_id) is None:
            raise NotFoundError(f"Tournament {tournament_id} not found", "Tournament not found.")

        found = {}
        missing = []
        for player_id in (player1_id, player2_id):
            try:
                found[player_id] = await self.players.require_player(player_id)
            except NotFoundError:
                missing.append(player_id)
        if missing:
            raise NotFoundError(f"Players not found: {missing}", "Players not found.")

        existing = [
            row for row in await self.rows.read_all(TOURNAMENT_MATCHES)
            if row.get('tournament_id') == tournament_id
        ]
        match_number = len(existing) + 1

        match = MatchRecord(
            match_id=f"{tournament_id}_match_{match_number}_{uuid.uuid4().hex[:6]}",
            tournament_id=tournament_id,
            match_number=str(match_number),
            player1_id=player1_id,
            player1_name=found[player1_id].nickname,
            player2_id=player2_id,
            player2_name=found[player2_id].nickname,
            game_type=rule,
            status=MatchStatus.SCHEDULED,
            created_at=utc_now_iso(),
        )
        await self.rows.append_rows(TOURNAMENT_MATCHES, [match.to_row()])
        self.logger.info(
            f"Created match {match.match_id} ({player1_id} vs {player2_id}, {rule.value})"
        )
        return match

    async def save_pairings(self, tournament_id: str, pairings: Sequence[Pairing]) -> List[MatchRecord]:
        """
        Replace a tournament's still-scheduled matches with a new pairing set.

        Matches that have already started or finished are kept.
        """
        async with self._lock:
            normalized = []
            for pairing in pairings:
                if isinstance(pairing, dict):
                    normalized.append((
                        pairing.get('player1_id'), pairing.get('player2_id'),
                        pairing.get('game_type') or GameType.TRUMP
                    ))
                elif len(pairing) == 3:
                    normalized.append(tuple(pairing))
                else:
                    normalized.append((pairing[0], pairing[1], GameType.TRUMP))

            # Validate everything before touching existing rows
            for player1_id, player2_id, game_type in normalized:
                self._parse_game_type(game_type)
                if not player1_id or not player2_id or player1_id == player2_id:
                    raise ValidationError(
                        f"Invalid pairing {player1_id} vs {player2_id}", "Each pairing needs two different players."
                    )

            removed = await self.rows.delete_rows(
                TOURNAMENT_MATCHES,
                lambda r: r.get('tournament_id') == tournament_id
                and (r.get('status') or 'scheduled') == MatchStatus.SCHEDULED.value
            )
            created = [
                await self._create_match(tournament_id, player1_id, player2_id, game_type)
                for player1_id, player2_id, game_type in normalized
            ]
        self.logger.info(
            f"Saved {len(created)} pairing(s) for tournament {tournament_id}, replaced {removed} scheduled match(es)"
        )
        return created

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    async def start_match(self, match_id: str) -> MatchRecord:
        """scheduled -> in_progress"""
        async with self._lock:
            match = await self._get_match(match_id)
            self._require_status(match, [MatchStatus.SCHEDULED], 'start')
            match.status = MatchStatus.IN_PROGRESS
            match.match_start_time = utc_now_iso()
            await self._save_match(match)
        self.logger.info(f"Started match {match_id}")
        return match

    async def submit_result(self, match_id: str, reporter_id: str, result: str,
                            opponent_id: Optional[str] = None) -> PendingResultRecord:
        """
        Record a player's self-reported result, pending admin approval.

        The match moves to completed with the claimed winner. A second report
        for the same match adds another pending record; approving one
        supersedes the rest.

        Raises:
            NotFoundError: Match does not exist
            ValidationError: Reporter or opponent not in the match, or bad result value
            InvalidStateTransitionError: Match already approved, invalidated or cancelled
        """
        outcome = (result or '').strip().lower()
        if outcome == 'loss':
            outcome = 'lose'
        if outcome not in (ReportedResult.WIN.value, ReportedResult.LOSE.value):
            raise ValidationError(f"Invalid result value: {result!r}", "Result must be win or lose.")

        async with self._lock:
            match = await self._get_match(match_id)
            if not match.has_participant(reporter_id):
                raise ValidationError(
                    f"Reporter {reporter_id} is not in match {match_id}", "You are not a player in this match."
                )
            expected_opponent = match.opponent_of(reporter_id)
            if opponent_id and opponent_id != expected_opponent:
                raise ValidationError(
                    f"Opponent {opponent_id} does not match match {match_id}", "Opponent does not match this match."
                )
            self._require_status(
                match, [MatchStatus.SCHEDULED, MatchStatus.IN_PROGRESS, MatchStatus.COMPLETED], 'report'
            )

            now = utc_now_iso()
            pending = PendingResultRecord(
                result_id=self._new_result_id(),
                match_id=match_id,
                player_id=reporter_id,
                opponent_id=expected_opponent,
                result=ReportedResult(outcome),
                status=ResultStatus.PENDING_APPROVAL,
                reported_at=now,
            )
            await self.rows.append_rows(MATCH_RESULTS, [pending.to_row()])

            match.status = MatchStatus.COMPLETED
            match.winner_id = pending.claimed_winner_id
            match.loser_id = match.opponent_of(pending.claimed_winner_id)
            match.reported_at = now
            match.match_end_time = match.match_end_time or now
            await self._save_match(match)

        self.logger.info(f"Result {pending.result_id} reported by {reporter_id} for match {match_id}: {outcome}")
        return pending

    async def approve_result(self, result_id: str, approved: bool,
                             approved_by: str = Config.ADMIN_ACTOR) -> Dict:
        """
        Approve or reject a pending result.

        Approval applies ratings and counters, advances the match to approved and
        supersedes any other pending reports for it. Rejection leaves the match
        completed and clears its claimed winner once no pending report remains.

        Returns:
            Dict with result_id, match_id, status and (on approval) rating_update
        """
        async with self._lock:
            pending = await self._get_result(result_id)
            if pending.status != ResultStatus.PENDING_APPROVAL:
                raise InvalidStateTransitionError(
                    f"Result {result_id} is already {pending.status.value}",
                    "This result has already been processed."
                )
            match = await self._get_match(pending.match_id)
            now = utc_now_iso()

            if not approved:
                await self.rows.update_by_key(MATCH_RESULTS, result_id, lambda r: {
                    'status': ResultStatus.REJECTED.value,
                    'approved_by': approved_by,
                    'approved_at': now,
                })
                if match.status == MatchStatus.COMPLETED and not await self._has_pending(match.match_id):
                    match.winner_id = None
                    match.loser_id = None
                    await self._save_match(match)
                self.logger.info(f"Rejected result {result_id} for match {match.match_id}")
                return {'result_id': result_id, 'match_id': match.match_id, 'status': ResultStatus.REJECTED.value}

            self._require_status(match, [MatchStatus.COMPLETED], 'approve')
            winner_id, loser_id = self._winner_and_loser(match, pending.claimed_winner_id)
            await self.players.require_player(winner_id)
            await self.players.require_player(loser_id)

            update = await self._apply_ratings(match, winner_id, loser_id)
            match.status = MatchStatus.APPROVED
            match.approved_by = approved_by
            match.approved_at = now
            await self._save_match(match)
            await self._supersede_pending(match.match_id, keep_result_id=result_id)
            # Marked last: a failed write above leaves the report pending for a retry
            await self.rows.update_by_key(MATCH_RESULTS, result_id, lambda r: {
                'status': ResultStatus.APPROVED.value,
                'approved_by': approved_by,
                'approved_at': now,
            })

        await self.badges.grant_match_badges(match.participant_ids, match.game_type)
        self.cache.invalidate(*PLAYER_CACHE_KEYS)
        self.logger.info(f"Approved result {result_id} for match {match.match_id}")
        return {
            'result_id': result_id,
            'match_id': match.match_id,
            'status': ResultStatus.APPROVED.value,
            'rating_update': self._rating_update_dict(winner_id, loser_id, update),
        }

    async def admin_direct_input(self, match_id: str, winner_id: str, loser_id: Optional[str] = None,
                                 approved_by: str = Config.ADMIN_ACTOR) -> Dict:
        """
        Record a result directly, bypassing self-report.

        Appends an already-approved result record, supersedes pending reports,
        applies ratings and counters and sets the match approved.

        Raises:
            InvalidStateTransitionError: Match is approved, invalidated or cancelled
            ValidationError: Winner/loser are not the match players
        """
        async with self._lock:
            match = await self._get_match(match_id)
            self._require_status(
                match, [MatchStatus.SCHEDULED, MatchStatus.IN_PROGRESS, MatchStatus.COMPLETED], 'record'
            )
            winner_id, loser_id = self._winner_and_loser(match, winner_id, loser_id)
            await self.players.require_player(winner_id)
            await self.players.require_player(loser_id)

            now = utc_now_iso()
            record = PendingResultRecord(
                result_id=self._new_result_id(),
                match_id=match_id,
                player_id=winner_id,
                opponent_id=loser_id,
                result=ReportedResult.WIN,
                status=ResultStatus.APPROVED,
                reported_at=now,
                approved_by=approved_by,
                approved_at=now,
            )
            update = await self._apply_ratings(match, winner_id, loser_id)
            match.status = MatchStatus.APPROVED
            match.reported_at = match.reported_at or now
            match.match_end_time = match.match_end_time or now
            match.approved_by = approved_by
            match.approved_at = now
            await self._save_match(match)
            await self._supersede_pending(match_id)
            await self.rows.append_rows(MATCH_RESULTS, [record.to_row()])

        await self.badges.grant_match_badges(match.participant_ids, match.game_type)
        self.cache.invalidate(*PLAYER_CACHE_KEYS)
        self.logger.info(f"Admin direct result {record.result_id} recorded for match {match_id}")
        return {
            'result_id': record.result_id,
            'match_id': match_id,
            'status': ResultStatus.APPROVED.value,
            'rating_update': self._rating_update_dict(winner_id, loser_id, update),
        }

    async def edit_match(self, match_id: str, new_winner_id: Optional[str] = None,
                         new_game_type: Union[GameType, str, None] = None,
                         approved_by: str = Config.ADMIN_ACTOR) -> Dict:
        """
        Correct a finished match.

        A winner change reverses the stored rating changes (and the counters if
        the match was approved), recomputes from the restored ratings with the
        new winner and sets the match approved, all in one Players write. A
        rule-only change rewrites the game type and leaves ratings alone.

        A winner_id that is not one of the players reads as no prior winner,
        except on an approved match, where the stored rating changes name it.
        Confirming that recovered winner only repairs the winner/loser columns.

        Returns:
            Dict with changed flag, the match and (on winner change) rating_update
        """
        async with self._lock:
            match = await self._get_match(match_id)
            self._require_status(match, [MatchStatus.COMPLETED, MatchStatus.APPROVED], 'edit')

            rule = self._parse_game_type(new_game_type) if new_game_type not in (None, '') else None
            if new_winner_id:
                self._winner_and_loser(match, new_winner_id)

            prior_winner = self._prior_winner(match)
            was_approved = match.status == MatchStatus.APPROVED
            winner_changed = bool(new_winner_id) and new_winner_id != prior_winner
            winner_repaired = bool(new_winner_id) and not winner_changed and match.winner_id != prior_winner
            rule_changed = rule is not None and rule != match.game_type

            if not (winner_changed or winner_repaired or rule_changed):
                return {'changed': False, 'match': match.to_dict()}

            if rule_changed:
                match.game_type = rule
            if winner_repaired:
                match.winner_id, match.loser_id = self._winner_and_loser(match, new_winner_id)
                self.logger.warning(f"Repaired winner/loser columns of match {match_id} to {new_winner_id}")

            update = None
            if winner_changed:
                winner_id, loser_id = self._winner_and_loser(match, new_winner_id)
                reversal = await self._reversal(match, prior_winner, counters=True) if was_approved else None
                now = utc_now_iso()
                update = await self._apply_ratings(match, winner_id, loser_id, reversal)
                match.status = MatchStatus.APPROVED
                match.approved_by = approved_by
                match.approved_at = now
                await self._save_match(match)
                await self._supersede_pending(match_id)
            else:
                await self._save_match(match)

        await self.badges.grant_match_badges(match.participant_ids, match.game_type)
        self.cache.invalidate(*PLAYER_CACHE_KEYS)
        self.logger.info(
            f"Edited match {match_id}: winner_changed={winner_changed}, rule_changed={rule_changed}"
        )
        result = {'changed': True, 'match': match.to_dict()}
        if update is not None:
            result['rating_update'] = self._rating_update_dict(match.winner_id, match.loser_id, update)
        return result

    async def invalidate_match(self, match_id: str, reason: str = '') -> MatchRecord:
        """
        Void a finished match.

        Reverses the stored rating changes and counters when the match was
        approved, clears winner/loser, stores the reason and supersedes pending
        reports. The rating snapshot stays on the row for audit.
        """
        async with self._lock:
            match = await self._get_match(match_id)
            self._require_status(match, [MatchStatus.COMPLETED, MatchStatus.APPROVED], 'invalidate')

            if match.status == MatchStatus.APPROVED:
                reversal = await self._reversal(match, self._prior_winner(match), counters=True)
                if reversal:
                    await self.players.adjust_players(reversal)

            match.status = MatchStatus.INVALIDATED
            match.winner_id = None
            match.loser_id = None
            match.invalidation_reason = reason or ''
            await self._save_match(match)
            await self._supersede_pending(match_id)

        self.cache.invalidate(*PLAYER_CACHE_KEYS)
        self.logger.info(f"Invalidated match {match_id}: {reason}")
        return match

    async def supersede_pending(self, match_id: str) -> int:
        """Mark every pending report for a match superseded. Returns the count."""
        async with self._lock:
            return await self._supersede_pending(match_id)

    async def cancel_match(self, match_id: str, reason: str = '') -> MatchRecord:
        """scheduled/in_progress -> cancelled"""
        async with self._lock:
            match = await self._get_match(match_id)
            self._require_status(match, [MatchStatus.SCHEDULED, MatchStatus.IN_PROGRESS], 'cancel')
            match.status = MatchStatus.CANCELLED
            match.invalidation_reason = reason or ''
            match.match_end_time = utc_now_iso()
            await self._save_match(match)
        self.logger.info(f"Cancelled match {match_id}: {reason}")
        return match

    async def delete_match(self, match_id: str):
        """Remove a match that has not left scheduled."""
        async with self._lock:
            match = await self._get_match(match_id)
            self._require_status(match, [MatchStatus.SCHEDULED], 'delete')
            await self.rows.delete_rows(TOURNAMENT_MATCHES, lambda r: r.get('match_id') == match_id)
        self.logger.info(f"Deleted scheduled match {match_id}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_match(self, match_id: str) -> MatchRecord:
        return await self._get_match(match_id)

    async def get_tournament_matches(self, tournament_id: Optional[str] = None) -> List[MatchRecord]:
        """Matches of one tournament, or every match when tournament_id is None."""
        matches = [
            MatchRecord.from_row(row) for row in await self.rows.read_all(TOURNAMENT_MATCHES)
            if row.get('match_id')
        ]
        if tournament_id is not None:
            matches = [m for m in matches if m.tournament_id == tournament_id]
        return matches

    async def get_pending_results(self) -> List[PendingResultRecord]:
        return [
            result for result in (PendingResultRecord.from_row(r) for r in await self.rows.read_all(MATCH_RESULTS))
            if result.status == ResultStatus.PENDING_APPROVAL
        ]

    async def get_player_match_history(self, player_id: str) -> List[Dict]:
        """Matches a player appears in, newest first."""
        history = []
        for match in await self.get_tournament_matches(None):
            if not match.has_participant(player_id):
                continue
            opponent_id = match.opponent_of(player_id)
            opponent_name = match.player2_name if opponent_id == match.player2_id else match.player1_name

            result = 'pending'
            if match.status == MatchStatus.INVALIDATED:
                result = 'invalidated'
            elif match.status == MatchStatus.CANCELLED:
                result = 'cancelled'
            elif match.status in (MatchStatus.COMPLETED, MatchStatus.APPROVED) and match.has_participant(match.winner_id):
                result = 'win' if match.winner_id == player_id else 'lose'

            change = match.rating_change_for(player_id) if match.status == MatchStatus.APPROVED else None
            history.append({
                'match_id': match.match_id,
                'tournament_id': match.tournament_id,
                'opponent': {'id': opponent_id, 'name': opponent_name},
                'game_type': match.game_type.value,
                'status': match.status.value,
                'result': result,
                'rating_change': change or 0,
                'timestamp': match.match_end_time or match.created_at,
            })

        history.sort(key=lambda entry: entry['timestamp'], reverse=True)
        return history

    @staticmethod
    def _rating_update_dict(winner_id: str, loser_id: str, update: RatingUpdate) -> Dict:
        return {
            'winner_id': winner_id,
            'loser_id': loser_id,
            'winner_before': update.winner_before,
            'winner_after': update.winner_after,
            'winner_delta': update.winner_change,
            'loser_before': update.loser_before,
            'loser_after': update.loser_after,
            'loser_delta': update.loser_change,
        }
