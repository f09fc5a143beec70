from sqlalchemy.orm import joinedload, selectinload
from models import User, Quote, Comment
from errors import UserNotFound


def _newest_first(query):
    # id breaks created_at ties so repeated queries keep the same order
    return query.order_by(Quote.created_at.desc(), Quote.id.desc())


def global_feed():
    """Original quotes from everyone, with posters and commenters joined."""
    return _newest_first(
        Quote.query.filter(Quote.is_repost.is_(False)).options(
            joinedload(Quote.posted_by),
            selectinload(Quote.likes),
            selectinload(Quote.reposts),
            selectinload(Quote.comments).joinedload(Comment.user),
        )
    ).all()


def profile_feed(username):
    """Return ``(user, quotes)`` for a profile page, reposts included.

    Repost entries come with their original quote (and its poster) loaded so
    the template can show where the quote came from.
    """
    u = User.query.filter_by(username=username).first()
    if u is None:
        raise UserNotFound(username)
    quotes = _newest_first(
        Quote.query.filter_by(user_id=u.id).options(
            joinedload(Quote.posted_by),
            joinedload(Quote.original_quote).joinedload(Quote.posted_by),
            # repost entries show the original's counters and comments
            joinedload(Quote.original_quote).selectinload(Quote.likes),
            joinedload(Quote.original_quote).selectinload(Quote.reposts),
            joinedload(Quote.original_quote).selectinload(Quote.comments).joinedload(Comment.user),
            selectinload(Quote.likes),
            selectinload(Quote.reposts),
            selectinload(Quote.comments).joinedload(Comment.user),
        )
    ).all()
    return u, quotes
