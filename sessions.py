"""Server-side sessions stored in the application database.

The cookie only carries an opaque random token; the session contents
(Flask-Login's user id, flashed messages) live in ``StoredSession`` rows.
A record's expiry slides forward while the session is in use, and expired
records are purged whenever a new session is stored.
"""
import secrets
from datetime import datetime, timedelta
from flask.json.tag import TaggedJSONSerializer
from flask.sessions import SessionInterface, SessionMixin
from werkzeug.datastructures import CallbackDict
from models import db, StoredSession


class ServerSideSession(CallbackDict, SessionMixin):
    def __init__(self, initial=None, sid=None, new=False, expires_at=None):
        def on_update(self):
            self.modified = True

        CallbackDict.__init__(self, initial, on_update)
        self.sid = sid
        self.new = new
        self.expires_at = expires_at
        self.modified = False


class DatabaseSessionInterface(SessionInterface):
    serializer = TaggedJSONSerializer()
    session_class = ServerSideSession
    # an unchanged session has its expiry pushed forward at most this often
    refresh_interval = timedelta(hours=1)

    def _new_sid(self):
        return secrets.token_urlsafe(32)

    def open_session(self, app, request):
        sid = request.cookies.get(self.get_cookie_name(app))
        if sid:
            record = db.session.get(StoredSession, sid)
            if record is not None and record.expires_at > datetime.utcnow():
                return self.session_class(self.serializer.loads(record.data), sid=sid,
                                          expires_at=record.expires_at)
            if record is not None:
                db.session.delete(record)
                db.session.commit()
        return self.session_class(sid=self._new_sid(), new=True)

    def purge_expired(self) -> int:
        """Delete every expired record; returns how many went."""
        removed = StoredSession.query.filter(StoredSession.expires_at <= datetime.utcnow()).delete()
        db.session.commit()
        return removed

    def regenerate(self, session):
        """Move the session to a fresh token, dropping the old record."""
        StoredSession.query.filter_by(id=session.sid).delete()
        db.session.commit()
        session.sid = self._new_sid()
        session.modified = True

    def destroy(self, session):
        StoredSession.query.filter_by(id=session.sid).delete()
        db.session.commit()
        session.clear()
        session.sid = self._new_sid()

    def _touch(self, app, session):
        if session.new or session.expires_at is None:
            return
        fresh = datetime.utcnow() + app.permanent_session_lifetime
        if fresh - session.expires_at >= self.refresh_interval:
            StoredSession.query.filter_by(id=session.sid).update({"expires_at": fresh})
            db.session.commit()
            session.expires_at = fresh

    def save_session(self, app, session, response):
        name = self.get_cookie_name(app)
        domain = self.get_cookie_domain(app)
        path = self.get_cookie_path(app)

        if not session:
            if session.modified:
                StoredSession.query.filter_by(id=session.sid).delete()
                db.session.commit()
                response.delete_cookie(name, domain=domain, path=path)
            return

        response.vary.add("Cookie")
        if not self.should_set_cookie(app, session):
            self._touch(app, session)
            return

        if session.new:
            self.purge_expired()
        record = StoredSession(
            id=session.sid,
            data=self.serializer.dumps(dict(session)),
            expires_at=datetime.utcnow() + app.permanent_session_lifetime,
        )
        db.session.merge(record)
        db.session.commit()
        session.expires_at = record.expires_at
        response.set_cookie(
            name,
            session.sid,
            expires=self.get_expiration_time(app, session),
            httponly=self.get_cookie_httponly(app),
            domain=domain,
            path=path,
            secure=self.get_cookie_secure(app),
            samesite=self.get_cookie_samesite(app),
        )
