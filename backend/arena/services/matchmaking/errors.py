"""Typed failures surfaced by the matchmaking core.

Every error carries a stable ``code`` for clients, the HTTP status the API
answers with, and whether retrying the same call can succeed.
"""


class MatchmakingError(Exception):
    code = 'matchmaking_error'
    status_code = 400
    retryable = False
    default_message = 'Matchmaking request failed'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'error': self.code, 'message': self.message, 'retryable': self.retryable}


class LocationUnavailable(MatchmakingError):
    code = 'location_unavailable'
    status_code = 422
    default_message = 'Location is unavailable'


class QueueUpsertFailed(MatchmakingError):
    code = 'queue_upsert_failed'
    status_code = 503
    retryable = True
    default_message = 'Could not join the queue, please retry'


class InvalidWager(MatchmakingError):
    code = 'invalid_wager'
    default_message = 'Wager must be a non-negative amount'


class NotInQueue(MatchmakingError):
    code = 'not_in_queue'
    status_code = 409
    default_message = 'You must be in the queue to challenge'


class CannotChallengeSelf(MatchmakingError):
    code = 'cannot_challenge_self'
    default_message = 'You cannot challenge yourself'


class OpponentUnavailable(MatchmakingError):
    code = 'opponent_unavailable'
    status_code = 409
    retryable = True
    default_message = 'Opponent is no longer available, try another candidate'


class MatchNotFound(MatchmakingError):
    code = 'match_not_found'
    status_code = 404
    default_message = 'Match not found'


class NotAParticipant(MatchmakingError):
    code = 'not_a_participant'
    status_code = 403
    default_message = 'You are not a player in this match'


class InvalidMove(MatchmakingError):
    code = 'invalid_move'
    default_message = 'Move must be rock, paper or scissors'


class DuplicateMove(MatchmakingError):
    code = 'duplicate_move'
    status_code = 409
    default_message = 'You have already moved in this match'


class MatchClosed(MatchmakingError):
    code = 'match_closed'
    status_code = 409
    default_message = 'This match is already closed'


class StorageUnavailable(MatchmakingError):
    code = 'storage_unavailable'
    status_code = 503
    retryable = True
    default_message = 'Storage is temporarily unavailable, please retry'
