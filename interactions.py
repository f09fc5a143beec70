"""Toggle-style interactions on quotes.

Every function takes the acting user explicitly; the HTTP layer passes in
whatever Flask-Login resolved for the request. Toggles never fetch, mutate and
save a collection: they issue conditional DELETEs and rely on the UNIQUE
constraints in ``models`` so concurrent requests cannot create duplicates.
"""
from flask import current_app
from sqlalchemy.exc import IntegrityError
from models import db, Quote, Comment, Like, Repost
from errors import QuoteNotFound, Unauthorized, ConsistencyFault


def _require_identity(user):
    if user is None or not user.is_authenticated:
        raise Unauthorized("sign-in required")


def _get_quote(quote_id) -> Quote:
    q = db.session.get(Quote, quote_id)
    if q is None:
        raise QuoteNotFound(quote_id)
    return q


def _report(fault: ConsistencyFault, action: str):
    current_app.logger.error("ConsistencyFault: %s; %s", fault, action)


def post_quote(user, text, author_name=""):
    _require_identity(user)
    if not text:
        raise ValueError("quote text is required")
    q = Quote(text=text, author_name=author_name or "", user_id=user.id)
    db.session.add(q)
    db.session.commit()
    return q


def _remove_like(user_id, quote_id) -> int:
    return Like.query.filter_by(user_id=user_id, quote_id=quote_id).delete()


def _remove_marker(user_id, original_id) -> int:
    return Repost.query.filter_by(user_id=user_id, quote_id=original_id).delete()


def _copies_of(user_id, original_id):
    return Quote.query.filter_by(user_id=user_id, original_quote_id=original_id).all()


def toggle_like(user, quote_id) -> bool:
    """Like or unlike; returns True when the user likes the quote afterwards."""
    _require_identity(user)
    q = _get_quote(quote_id)
    if _remove_like(user.id, q.id):
        db.session.commit()
        return False
    db.session.add(Like(user_id=user.id, quote_id=q.id))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info("like on quote %s by user %s already recorded", q.id, user.id)
    return True


def toggle_repost(user, quote_id) -> bool:
    """Repost or un-repost; returns True when the user has reposted afterwards.

    The reposter marker on the original and the user's repost-copy change in
    one transaction. The DELETE of the marker decides the direction; copies
    are only read after it, inside the same transaction. The pair is checked
    again once committed. Reposting a repost-copy reposts its original.
    """
    _require_identity(user)
    original = _get_quote(quote_id)
    if original.is_repost:
        original = original.original_quote
    original_id, user_id = original.id, user.id

    removed = _remove_marker(user_id, original_id)
    copies = _copies_of(user_id, original_id)
    if removed:
        if len(copies) != 1:
            _report(ConsistencyFault(original_id, user_id, f"marker present with {len(copies)} copies"),
                    "removing marker and copies")
        for c in copies:
            db.session.delete(c)
        reposted = False
    else:
        db.session.add(Repost(user_id=user_id, quote_id=original_id))
        if copies:
            _report(ConsistencyFault(original_id, user_id, f"{len(copies)} copies without a marker"),
                    "keeping one copy")
            for c in copies[1:]:
                db.session.delete(c)
        else:
            db.session.add(Quote(
                text=original.text,
                author_name=original.author_name,
                user_id=user_id,
                is_repost=True,
                original_quote_id=original_id,
            ))
        reposted = True

    try:
        db.session.commit()
    except IntegrityError:
        # a concurrent toggle from the same user committed first
        db.session.rollback()
        current_app.logger.info("concurrent repost toggle on quote %s by user %s", original_id, user_id)
        reconcile_repost(user_id, original_id)
        return Repost.query.filter_by(user_id=user_id, quote_id=original_id).first() is not None
    if reconcile_repost(user_id, original_id):
        return True
    return reposted


def reconcile_repost(user_id, original_id) -> bool:
    """Put one (original, user) pair back in lock-step; True if it needed repair.

    Either half present means the pair rolls forward to reposted, with exactly
    one copy.
    """
    original = db.session.get(Quote, original_id)
    marker = Repost.query.filter_by(user_id=user_id, quote_id=original_id).first()
    copies = _copies_of(user_id, original_id)
    if original is None or (marker is None and not copies) or (marker is not None and len(copies) == 1):
        return False

    fault = ConsistencyFault(original_id, user_id, f"marker={'yes' if marker else 'no'}, copies={len(copies)}")
    _report(fault, "rolling forward to reposted")
    if marker is None:
        db.session.add(Repost(user_id=user_id, quote_id=original_id))
    if copies:
        for c in copies[1:]:
            db.session.delete(c)
    else:
        db.session.add(Quote(
            text=original.text,
            author_name=original.author_name,
            user_id=user_id,
            is_repost=True,
            original_quote_id=original_id,
        ))
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise fault from exc
    return True


def reconcile_reposts() -> int:
    """Reconcile every pair that has a marker or a copy; returns repairs made."""
    pairs = {(r.user_id, r.quote_id) for r in Repost.query.all()}
    pairs.update(
        (q.user_id, q.original_quote_id)
        for q in Quote.query.filter(Quote.is_repost.is_(True)).all()
    )
    repaired = 0
    for user_id, original_id in sorted(pairs):
        if reconcile_repost(user_id, original_id):
            repaired += 1
    current_app.logger.info("repost reconciliation checked %d pairs, repaired %d", len(pairs), repaired)
    return repaired


def add_comment(user, quote_id, text) -> Comment:
    _require_identity(user)
    q = _get_quote(quote_id)
    if not text:
        raise ValueError("comment text is required")
    c = Comment(text=text, user_id=user.id, quote_id=q.id)
    db.session.add(c)
    db.session.commit()
    return c


def delete_quote(user, quote_id) -> bool:
    """Delete a quote the user owns; a missing or foreign quote is a no-op.

    Deleting an original takes its repost-copies and reposter markers with it.
    Deleting a repost-copy also drops the owner's marker on the original.
    """
    _require_identity(user)
    q = db.session.get(Quote, quote_id)
    if q is None or q.user_id != user.id:
        current_app.logger.debug("delete of quote %s by user %s ignored", quote_id, user.id)
        return False
    if q.is_repost:
        Repost.query.filter_by(user_id=user.id, quote_id=q.original_quote_id).delete()
    db.session.delete(q)
    db.session.commit()
    return True
