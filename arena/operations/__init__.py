"""
Operations layer.

Business logic composed on top of the RowStore: multi-step workflows,
validation and the lifecycle rules for each record type.

- BadgeOperations: rule experience flags and champion badges
- PlayerOperations: registration, rankings and rating/counter adjustment
- MatchOperations: match state machine and result approval
- TournamentOperations: tournament lifecycle, entry and archives
"""

from .badge_operations import BadgeOperations
from .match_operations import MatchOperations
from .player_operations import PlayerOperations
from .tournament_operations import TournamentOperations

__all__ = ['BadgeOperations', 'PlayerOperations', 'MatchOperations', 'TournamentOperations']
