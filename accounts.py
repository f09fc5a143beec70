from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash, check_password_hash
from models import db, User
from errors import DuplicateUser, UserNotFound, BadCredential


def register(username: str, raw_password: str) -> User:
    if User.query.filter_by(username=username).first():
        raise DuplicateUser(username)
    u = User(username=username, password_hash=generate_password_hash(raw_password))
    db.session.add(u)
    try:
        db.session.commit()
    except IntegrityError:
        # another registration took the name between the check and the insert
        db.session.rollback()
        raise DuplicateUser(username) from None
    return u


def verify(username: str, raw_password: str) -> User:
    u = User.query.filter_by(username=username).first()
    if u is None:
        raise UserNotFound(username)
    if not check_password_hash(u.password_hash, raw_password):
        raise BadCredential(username)
    return u
