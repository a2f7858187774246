"""
Table schemas and record types for the arena data engine.

Sheets are addressed by column *name*, never by position. Each TableSchema maps
a logical field to the header names it may appear under (first match wins) and
marks whether the field is required. Records are plain dataclasses converted
from and to rows keyed by logical field name; cells are always strings.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple
from zoneinfo import ZoneInfo

from arena.config import Config


class MatchStatus(Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"      # Result reported, awaiting approval
    APPROVED = "approved"
    INVALIDATED = "invalidated"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"          # Unrecognized stored value; no transition accepts it

class ResultStatus(Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"

class TournamentStatus(Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"

class ParticipantStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

class GameType(Enum):
    TRUMP = "trump"
    CARDPLUS = "cardplus"

class ReportedResult(Enum):
    WIN = "win"
    LOSE = "lose"


# Order of tournament statuses; status may only move forward
TOURNAMENT_STATUS_ORDER = [TournamentStatus.UPCOMING, TournamentStatus.ACTIVE, TournamentStatus.COMPLETED]

# Any status string that has leaked into an id column
_STATUS_STRINGS = (
    {s.value for s in MatchStatus}
    | {s.value for s in ResultStatus}
    | {s.value for s in TournamentStatus}
)


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def tournament_today() -> str:
    """Today's date (YYYY-MM-DD) in the tournament time zone."""
    return datetime.now(ZoneInfo(Config.TOURNAMENT_TIMEZONE)).strftime('%Y-%m-%d')

def parse_int(value, default: Optional[int] = 0) -> Optional[int]:
    if value is None:
        return default
    text = str(value).strip()
    if not text:
        return default
    try:
        return int(float(text))
    except ValueError:
        return default

def parse_bool(value) -> bool:
    return str(value or '').strip().lower() == 'true'

def format_bool(value: bool) -> str:
    return 'TRUE' if value else 'FALSE'

def format_optional_int(value: Optional[int]) -> str:
    return '' if value is None else str(value)

def clean_player_id(value) -> Optional[str]:
    """Return a usable player id, or None for blanks and leaked status strings."""
    text = str(value or '').strip()
    if not text or text.lower() in _STATUS_STRINGS:
        return None
    return text


def normalize_game_type(value) -> Optional[GameType]:
    """
    Map the spellings seen in the wild onto a GameType.

    Blank input means the default rule (trump). Returns None for anything that is
    neither rule, so callers can reject it.
    """
    text = str(value or '').strip().lower()
    if not text:
        return GameType.TRUMP
    if text in ('cardplus', 'card+', 'card＋', 'カード+', 'カード＋') or 'card' in text or 'カード' in text:
        return GameType.CARDPLUS
    if text in ('trump', 'normal', 'トランプ') or 'trump' in text:
        return GameType.TRUMP
    return None


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class FieldSpec(NamedTuple):
    """Header names a logical field may use, and whether it must be present."""
    candidates: Tuple[str, ...]
    required: bool = False


def _f(*candidates: str, required: bool = False) -> FieldSpec:
    return FieldSpec(tuple(candidates), required)


class TableSchema:
    """Typed column layout of one sheet."""

    def __init__(self, sheet_name: str, key_field: str, fields: Dict[str, FieldSpec]):
        if key_field not in fields:
            raise ValueError(f"Key field '{key_field}' missing from schema '{sheet_name}'")
        self.sheet_name = sheet_name
        self.key_field = key_field
        self.fields = fields

    @property
    def default_headers(self) -> List[str]:
        """Header row used when the sheet has to be created."""
        return [spec.candidates[0] for spec in self.fields.values()]

    @property
    def required_fields(self) -> List[str]:
        return [name for name, spec in self.fields.items() if spec.required or name == self.key_field]

    def __repr__(self):
        return f"<TableSchema(sheet='{self.sheet_name}', fields={len(self.fields)})>"


PLAYERS = TableSchema('Players', 'id', {
    'id': _f('id', 'player_id', required=True),
    'nickname': _f('nickname', required=True),
    'email': _f('email'),
    'current_rating': _f('current_rating', 'rating', required=True),
    'annual_wins': _f('annual_wins'),
    'annual_losses': _f('annual_losses'),
    'total_wins': _f('total_wins'),
    'total_losses': _f('total_losses'),
    'champion_badges': _f('champion_badges'),
    'trump_rule_experienced': _f('trump_rule_experienced'),
    'first_trump_game_date': _f('first_trump_game_date'),
    'cardplus_rule_experienced': _f('cardplus_rule_experienced'),
    'first_cardplus_game_date': _f('first_cardplus_game_date'),
    'registration_date': _f('registration_date'),
    'is_active': _f('is_active'),
    'last_activity_date': _f('last_activity_date'),
    'player_status': _f('player_status'),
    'tournament_active': _f('tournament_active', required=True),
    'email_verified': _f('email_verified'),
})

TOURNAMENTS = TableSchema('Tournaments', 'id', {
    'id': _f('id', 'tournament_id', required=True),
    'tournament_name': _f('tournament_name', 'name', required=True),
    'date': _f('date'),
    'start_time': _f('start_time'),
    'location': _f('location'),
    'created_by': _f('created_by'),
    'created_at': _f('created_at'),
    'status': _f('status', required=True),
    'max_participants': _f('max_participants'),
    'current_participants': _f('current_participants'),
    'tournament_type': _f('tournament_type'),
    'description': _f('description'),
    'ended_at': _f('ended_at'),
})

TOURNAMENT_PARTICIPANTS = TableSchema('TournamentParticipants', 'participant_id', {
    'participant_id': _f('participant_id', 'id', required=True),
    'tournament_id': _f('tournament_id', 'tour_id', required=True),
    'player_id': _f('player_id', required=True),
    'status': _f('status', required=True),
    'joined_at': _f('joined_at', 'registered_at'),
})

TOURNAMENT_MATCHES = TableSchema('TournamentMatches', 'match_id', {
    'match_id': _f('match_id', required=True),
    'tournament_id': _f('tournament_id', required=True),
    'match_number': _f('match_number', 'table_number'),
    'player1_id': _f('player1_id', required=True),
    'player1_name': _f('player1_name'),
    'player2_id': _f('player2_id', required=True),
    'player2_name': _f('player2_name'),
    'game_type': _f('game_type'),
    'status': _f('status', 'match_status', required=True),
    'winner_id': _f('winner_id'),
    'loser_id': _f('loser_id'),
    'player1_rating_before': _f('player1_rating_before'),
    'player1_rating_after': _f('player1_rating_after'),
    'player1_rating_change': _f('player1_rating_change'),
    'player2_rating_before': _f('player2_rating_before'),
    'player2_rating_after': _f('player2_rating_after'),
    'player2_rating_change': _f('player2_rating_change'),
    'created_at': _f('created_at'),
    'match_start_time': _f('match_start_time'),
    'match_end_time': _f('match_end_time'),
    'reported_at': _f('reported_at'),
    'approved_by': _f('approved_by'),
    'approved_at': _f('approved_at'),
    'invalidation_reason': _f('invalidation_reason', 'notes'),
})

MATCH_RESULTS = TableSchema('MatchResults', 'result_id', {
    'result_id': _f('result_id', 'id', required=True),
    'match_id': _f('match_id', required=True),
    'player_id': _f('player_id', required=True),
    'opponent_id': _f('opponent_id', required=True),
    'result': _f('result', required=True),
    'status': _f('status', required=True),
    'reported_at': _f('reported_at', 'timestamp'),
    'approved_by': _f('approved_by'),
    'approved_at': _f('approved_at'),
})

DAILY_ARCHIVE = TableSchema('TournamentDailyArchive', 'archive_id', {
    'archive_id': _f('archive_id', required=True),
    'tournament_date': _f('tournament_date', 'date', required=True),
    'player_id': _f('player_id', required=True),
    'player_nickname': _f('player_nickname'),
    'rating': _f('rating', 'current_rating'),
    'entry_timestamp': _f('entry_timestamp'),
    'total_participants_that_day': _f('total_participants_that_day'),
    'created_at': _f('created_at'),
})

YEARLY_ARCHIVE = TableSchema('YearlyArchive', 'archive_id', {
    'archive_id': _f('archive_id', required=True),
    'year': _f('year', required=True),
    'player_id': _f('player_id', required=True),
    'player_nickname': _f('player_nickname'),
    'final_rating': _f('final_rating'),
    'final_rank': _f('final_rank'),
    'champion_badges': _f('champion_badges'),
    'annual_wins': _f('annual_wins'),
    'annual_losses': _f('annual_losses'),
    'created_at': _f('created_at'),
})

ALL_SCHEMAS = [
    PLAYERS, TOURNAMENTS, TOURNAMENT_PARTICIPANTS, TOURNAMENT_MATCHES,
    MATCH_RESULTS, DAILY_ARCHIVE, YEARLY_ARCHIVE,
]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class PlayerRecord:
    id: str
    nickname: str
    email: str = ''
    current_rating: int = Config.BASE_RATING
    annual_wins: int = 0
    annual_losses: int = 0
    total_wins: int = 0
    total_losses: int = 0
    champion_badges: str = ''
    trump_rule_experienced: bool = False
    first_trump_game_date: str = ''
    cardplus_rule_experienced: bool = False
    first_cardplus_game_date: str = ''
    registration_date: str = ''
    is_active: bool = True
    last_activity_date: str = ''
    player_status: str = 'active'
    tournament_active: bool = False
    email_verified: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> 'PlayerRecord':
        return cls(
            id=row.get('id', ''),
            nickname=row.get('nickname', ''),
            email=row.get('email', ''),
            current_rating=parse_int(row.get('current_rating'), Config.BASE_RATING),
            annual_wins=parse_int(row.get('annual_wins')),
            annual_losses=parse_int(row.get('annual_losses')),
            total_wins=parse_int(row.get('total_wins')),
            total_losses=parse_int(row.get('total_losses')),
            champion_badges=row.get('champion_badges', ''),
            trump_rule_experienced=parse_bool(row.get('trump_rule_experienced')),
            first_trump_game_date=row.get('first_trump_game_date', ''),
            cardplus_rule_experienced=parse_bool(row.get('cardplus_rule_experienced')),
            first_cardplus_game_date=row.get('first_cardplus_game_date', ''),
            registration_date=row.get('registration_date', ''),
            # Absent or blank means the player was never deactivated
            is_active=parse_bool(row.get('is_active') or 'TRUE'),
            last_activity_date=row.get('last_activity_date', ''),
            player_status=row.get('player_status') or 'active',
            tournament_active=parse_bool(row.get('tournament_active')),
            email_verified=parse_bool(row.get('email_verified')),
        )

    def to_row(self) -> Dict[str, str]:
        return {
            'id': self.id,
            'nickname': self.nickname,
            'email': self.email,
            'current_rating': str(self.current_rating),
            'annual_wins': str(self.annual_wins),
            'annual_losses': str(self.annual_losses),
            'total_wins': str(self.total_wins),
            'total_losses': str(self.total_losses),
            'champion_badges': self.champion_badges,
            'trump_rule_experienced': format_bool(self.trump_rule_experienced),
            'first_trump_game_date': self.first_trump_game_date,
            'cardplus_rule_experienced': format_bool(self.cardplus_rule_experienced),
            'first_cardplus_game_date': self.first_cardplus_game_date,
            'registration_date': self.registration_date,
            'is_active': format_bool(self.is_active),
            'last_activity_date': self.last_activity_date,
            'player_status': self.player_status,
            'tournament_active': format_bool(self.tournament_active),
            'email_verified': format_bool(self.email_verified),
        }

    def to_dict(self) -> Dict:
        return dict(self.__dict__)


@dataclass
class TournamentRecord:
    id: str
    tournament_name: str
    date: str = ''
    start_time: str = ''
    location: str = ''
    status: TournamentStatus = TournamentStatus.UPCOMING
    max_participants: int = Config.DEFAULT_MAX_PARTICIPANTS
    current_participants: int = 0
    tournament_type: str = Config.DEFAULT_TOURNAMENT_TYPE
    description: str = ''
    created_by: str = ''
    created_at: str = ''
    ended_at: str = ''

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> 'TournamentRecord':
        try:
            status = TournamentStatus(row.get('status') or 'upcoming')
        except ValueError:
            # Older sheets used 'ended' for a finished tournament
            status = TournamentStatus.COMPLETED if row.get('status') == 'ended' else TournamentStatus.UPCOMING
        return cls(
            id=row.get('id', ''),
            tournament_name=row.get('tournament_name', ''),
            date=row.get('date', ''),
            start_time=row.get('start_time', ''),
            location=row.get('location', ''),
            status=status,
            max_participants=parse_int(row.get('max_participants'), Config.DEFAULT_MAX_PARTICIPANTS),
            current_participants=parse_int(row.get('current_participants')),
            tournament_type=row.get('tournament_type') or Config.DEFAULT_TOURNAMENT_TYPE,
            description=row.get('description', ''),
            created_by=row.get('created_by', ''),
            created_at=row.get('created_at', ''),
            ended_at=row.get('ended_at', ''),
        )

    def to_row(self) -> Dict[str, str]:
        return {
            'id': self.id,
            'tournament_name': self.tournament_name,
            'date': self.date,
            'start_time': self.start_time,
            'location': self.location,
            'created_by': self.created_by,
            'created_at': self.created_at,
            'status': self.status.value,
            'max_participants': str(self.max_participants),
            'current_participants': str(self.current_participants),
            'tournament_type': self.tournament_type,
            'description': self.description,
            'ended_at': self.ended_at,
        }

    def to_dict(self) -> Dict:
        data = dict(self.__dict__)
        data['status'] = self.status.value
        return data


@dataclass
class TournamentParticipantRecord:
    participant_id: str
    tournament_id: str
    player_id: str
    status: ParticipantStatus = ParticipantStatus.ACTIVE
    joined_at: str = ''

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> 'TournamentParticipantRecord':
        raw_status = (row.get('status') or '').strip().lower()
        # 'registered' is what the entry form historically wrote
        status = ParticipantStatus.ACTIVE if raw_status in ('active', 'registered') else ParticipantStatus.INACTIVE
        return cls(
            participant_id=row.get('participant_id', ''),
            tournament_id=row.get('tournament_id', ''),
            player_id=row.get('player_id', ''),
            status=status,
            joined_at=row.get('joined_at', ''),
        )

    def to_row(self) -> Dict[str, str]:
        return {
            'participant_id': self.participant_id,
            'tournament_id': self.tournament_id,
            'player_id': self.player_id,
            'status': self.status.value,
            'joined_at': self.joined_at,
        }

    def to_dict(self) -> Dict:
        data = dict(self.__dict__)
        data['status'] = self.status.value
        return data


@dataclass
class MatchRecord:
    match_id: str
    tournament_id: str
    player1_id: str
    player2_id: str
    match_number: str = ''
    player1_name: str = ''
    player2_name: str = ''
    game_type: GameType = GameType.TRUMP
    status: MatchStatus = MatchStatus.SCHEDULED
    winner_id: Optional[str] = None
    loser_id: Optional[str] = None
    player1_rating_before: Optional[int] = None
    player1_rating_after: Optional[int] = None
    player1_rating_change: Optional[int] = None
    player2_rating_before: Optional[int] = None
    player2_rating_after: Optional[int] = None
    player2_rating_change: Optional[int] = None
    created_at: str = ''
    match_start_time: str = ''
    match_end_time: str = ''
    reported_at: str = ''
    approved_by: str = ''
    approved_at: str = ''
    invalidation_reason: str = ''

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> 'MatchRecord':
        try:
            status = MatchStatus((row.get('status') or 'scheduled').strip().lower())
        except ValueError:
            status = MatchStatus.UNKNOWN
        return cls(
            match_id=row.get('match_id', ''),
            tournament_id=row.get('tournament_id', ''),
            player1_id=row.get('player1_id', ''),
            player2_id=row.get('player2_id', ''),
            match_number=row.get('match_number', ''),
            player1_name=row.get('player1_name', ''),
            player2_name=row.get('player2_name', ''),
            game_type=normalize_game_type(row.get('game_type')) or GameType.TRUMP,
            status=status,
            winner_id=clean_player_id(row.get('winner_id')),
            loser_id=clean_player_id(row.get('loser_id')),
            player1_rating_before=parse_int(row.get('player1_rating_before'), None),
            player1_rating_after=parse_int(row.get('player1_rating_after'), None),
            player1_rating_change=parse_int(row.get('player1_rating_change'), None),
            player2_rating_before=parse_int(row.get('player2_rating_before'), None),
            player2_rating_after=parse_int(row.get('player2_rating_after'), None),
            player2_rating_change=parse_int(row.get('player2_rating_change'), None),
            created_at=row.get('created_at', ''),
            match_start_time=row.get('match_start_time', ''),
            match_end_time=row.get('match_end_time', ''),
            reported_at=row.get('reported_at', ''),
            approved_by=row.get('approved_by', ''),
            approved_at=row.get('approved_at', ''),
            invalidation_reason=row.get('invalidation_reason', ''),
        )

    def to_row(self) -> Dict[str, str]:
        return {
            'match_id': self.match_id,
            'tournament_id': self.tournament_id,
            'match_number': self.match_number,
            'player1_id': self.player1_id,
            'player1_name': self.player1_name,
            'player2_id': self.player2_id,
            'player2_name': self.player2_name,
            'game_type': self.game_type.value,
            'status': self.status.value,
            'winner_id': self.winner_id or '',
            'loser_id': self.loser_id or '',
            'player1_rating_before': format_optional_int(self.player1_rating_before),
            'player1_rating_after': format_optional_int(self.player1_rating_after),
            'player1_rating_change': format_optional_int(self.player1_rating_change),
            'player2_rating_before': format_optional_int(self.player2_rating_before),
            'player2_rating_after': format_optional_int(self.player2_rating_after),
            'player2_rating_change': format_optional_int(self.player2_rating_change),
            'created_at': self.created_at,
            'match_start_time': self.match_start_time,
            'match_end_time': self.match_end_time,
            'reported_at': self.reported_at,
            'approved_by': self.approved_by,
            'approved_at': self.approved_at,
            'invalidation_reason': self.invalidation_reason,
        }

    @property
    def participant_ids(self) -> Tuple[str, str]:
        return (self.player1_id, self.player2_id)

    def has_participant(self, player_id: Optional[str]) -> bool:
        return bool(player_id) and player_id in self.participant_ids

    def opponent_of(self, player_id: str) -> str:
        return self.player2_id if player_id == self.player1_id else self.player1_id

    def rating_change_for(self, player_id: str) -> Optional[int]:
        if player_id == self.player1_id:
            return self.player1_rating_change
        if player_id == self.player2_id:
            return self.player2_rating_change
        return None

    def set_rating_snapshot(self, player_id: str, before: Optional[int], after: Optional[int], change: Optional[int]):
        prefix = 'player1' if player_id == self.player1_id else 'player2'
        setattr(self, f'{prefix}_rating_before', before)
        setattr(self, f'{prefix}_rating_after', after)
        setattr(self, f'{prefix}_rating_change', change)

    def to_dict(self) -> Dict:
        data = dict(self.__dict__)
        data['status'] = self.status.value
        data['game_type'] = self.game_type.value
        data['winner_id'] = self.winner_id or ''
        data['loser_id'] = self.loser_id or ''
        return data


@dataclass
class PendingResultRecord:
    result_id: str
    match_id: str
    player_id: str
    opponent_id: str
    result: ReportedResult
    status: ResultStatus = ResultStatus.PENDING_APPROVAL
    reported_at: str = ''
    approved_by: str = ''
    approved_at: str = ''

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> 'PendingResultRecord':
        raw_result = (row.get('result') or '').strip().lower()
        result = ReportedResult.WIN if raw_result == 'win' else ReportedResult.LOSE
        try:
            status = ResultStatus((row.get('status') or '').strip().lower())
        except ValueError:
            status = ResultStatus.PENDING_APPROVAL
        return cls(
            result_id=row.get('result_id', ''),
            match_id=row.get('match_id', ''),
            player_id=row.get('player_id', ''),
            opponent_id=row.get('opponent_id', ''),
            result=result,
            status=status,
            reported_at=row.get('reported_at', ''),
            approved_by=row.get('approved_by', ''),
            approved_at=row.get('approved_at', ''),
        )

    def to_row(self) -> Dict[str, str]:
        return {
            'result_id': self.result_id,
            'match_id': self.match_id,
            'player_id': self.player_id,
            'opponent_id': self.opponent_id,
            'result': self.result.value,
            'status': self.status.value,
            'reported_at': self.reported_at,
            'approved_by': self.approved_by,
            'approved_at': self.approved_at,
        }

    @property
    def claimed_winner_id(self) -> str:
        return self.player_id if self.result == ReportedResult.WIN else self.opponent_id

    def to_dict(self) -> Dict:
        data = dict(self.__dict__)
        data['status'] = self.status.value
        data['result'] = self.result.value
        return data


@dataclass(frozen=True)
class DailyArchiveRecord:
    archive_id: str
    tournament_date: str
    player_id: str
    player_nickname: str = ''
    rating: int = 0
    entry_timestamp: str = ''
    total_participants_that_day: int = 0
    created_at: str = ''

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> 'DailyArchiveRecord':
        return cls(
            archive_id=row.get('archive_id', ''),
            tournament_date=row.get('tournament_date', ''),
            player_id=row.get('player_id', ''),
            player_nickname=row.get('player_nickname', ''),
            rating=parse_int(row.get('rating')),
            entry_timestamp=row.get('entry_timestamp', ''),
            total_participants_that_day=parse_int(row.get('total_participants_that_day')),
            created_at=row.get('created_at', ''),
        )

    def to_row(self) -> Dict[str, str]:
        return {
            'archive_id': self.archive_id,
            'tournament_date': self.tournament_date,
            'player_id': self.player_id,
            'player_nickname': self.player_nickname,
            'rating': str(self.rating),
            'entry_timestamp': self.entry_timestamp,
            'total_participants_that_day': str(self.total_participants_that_day),
            'created_at': self.created_at,
        }


@dataclass(frozen=True)
class YearlyArchiveRecord:
    archive_id: str
    year: int
    player_id: str
    player_nickname: str = ''
    final_rating: int = 0
    final_rank: int = 0
    champion_badges: str = ''
    annual_wins: int = 0
    annual_losses: int = 0
    created_at: str = ''

    @classmethod
    def season_marker(cls, year: int, created_at: str = '') -> 'YearlyArchiveRecord':
        """Row without a player that records `year` as closed, even when nobody was snapshotted."""
        return cls(archive_id=f"yearly_{year}_season", year=year, player_id='', created_at=created_at)

    @property
    def is_season_marker(self) -> bool:
        return not self.player_id

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> 'YearlyArchiveRecord':
        return cls(
            archive_id=row.get('archive_id', ''),
            year=parse_int(row.get('year')),
            player_id=row.get('player_id', ''),
            player_nickname=row.get('player_nickname', ''),
            final_rating=parse_int(row.get('final_rating')),
            final_rank=parse_int(row.get('final_rank')),
            champion_badges=row.get('champion_badges', ''),
            annual_wins=parse_int(row.get('annual_wins')),
            annual_losses=parse_int(row.get('annual_losses')),
            created_at=row.get('created_at', ''),
        )

    def to_row(self) -> Dict[str, str]:
        return {
            'archive_id': self.archive_id,
            'year': str(self.year),
            'player_id': self.player_id,
            'player_nickname': self.player_nickname,
            'final_rating': str(self.final_rating),
            'final_rank': str(self.final_rank),
            'champion_badges': self.champion_badges,
            'annual_wins': str(self.annual_wins),
            'annual_losses': str(self.annual_losses),
            'created_at': self.created_at,
        }
