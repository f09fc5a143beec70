class QuoteFeedError(Exception):
    """Base class for the application's domain errors."""


class UserNotFound(QuoteFeedError):
    pass


class DuplicateUser(QuoteFeedError):
    pass


class BadCredential(QuoteFeedError):
    pass


class QuoteNotFound(QuoteFeedError):
    pass


class Unauthorized(QuoteFeedError):
    """Raised for anonymous callers and for non-owners."""


class ConsistencyFault(QuoteFeedError):
    """A reposter marker and its repost-copy disagree.

    Carries the (original quote, user) pair so the log line can be acted on
    and the pair can be reconciled.
    """

    def __init__(self, original_id, user_id, detail):
        super().__init__(f"repost state diverged for quote {original_id}, user {user_id}: {detail}")
        self.original_id = original_id
        self.user_id = user_id
        self.detail = detail
