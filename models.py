from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime

db = SQLAlchemy()

class User(db.Model, UserMixin):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    quotes = db.relationship('Quote', backref='posted_by', lazy=True, foreign_keys='Quote.user_id')
    likes = db.relationship('Like', backref='user', lazy=True)
    reposts = db.relationship('Repost', backref='user', lazy=True)
    comments = db.relationship('Comment', backref='user', lazy=True)

class Quote(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.Text, nullable=False)
    author_name = db.Column(db.String(120), nullable=False, default='')
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)

    # repost-copies point at the quote they duplicate
    is_repost = db.Column(db.Boolean, nullable=False, default=False)
    original_quote_id = db.Column(db.Integer, db.ForeignKey('quote.id', ondelete='CASCADE'), index=True)

    original_quote = db.relationship(
        'Quote', remote_side=[id],
        backref=db.backref('repost_copies', lazy=True, cascade="all,delete-orphan"),
    )
    comments = db.relationship('Comment', backref='quote', lazy=True, cascade="all,delete-orphan", order_by='Comment.id')
    likes = db.relationship('Like', backref='quote', lazy=True, cascade="all,delete-orphan", order_by='Like.id')
    reposts = db.relationship('Repost', backref='quote', lazy=True, cascade="all,delete-orphan", order_by='Repost.id')

    __table_args__ = (
        db.CheckConstraint(
            '(is_repost AND original_quote_id IS NOT NULL) OR (NOT is_repost AND original_quote_id IS NULL)',
            name='ck_quote_repost_link',
        ),
        db.UniqueConstraint('user_id', 'original_quote_id', name='uq_user_repost_copy'),
    )

    @property
    def liker_ids(self):
        return [like.user_id for like in self.likes]

    @property
    def reposter_ids(self):
        return [repost.user_id for repost in self.reposts]

    def liked_by(self, user):
        return bool(user.is_authenticated and user.id in self.liker_ids)

    def reposted_by(self, user):
        return bool(user.is_authenticated and user.id in self.reposter_ids)

    def __repr__(self):
        return f"<Quote {self.id} by user {self.user_id}{' repost' if self.is_repost else ''}>"

class Comment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    quote_id = db.Column(db.Integer, db.ForeignKey('quote.id', ondelete='CASCADE'), nullable=False)

class Like(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    quote_id = db.Column(db.Integer, db.ForeignKey('quote.id', ondelete='CASCADE'), nullable=False)

    __table_args__ = (db.UniqueConstraint('user_id', 'quote_id', name='uq_user_quote_like'),)

class Repost(db.Model):
    """Marks a user in an original quote's reposter set."""
    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    quote_id = db.Column(db.Integer, db.ForeignKey('quote.id', ondelete='CASCADE'), nullable=False)

    __table_args__ = (db.UniqueConstraint('user_id', 'quote_id', name='uq_user_quote_repost'),)

class StoredSession(db.Model):
    __tablename__ = 'stored_session'
    id = db.Column(db.String(64), primary_key=True)
    data = db.Column(db.Text, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
