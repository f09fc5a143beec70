import os
from datetime import timedelta
import click
from flask import Flask, Response, render_template, redirect, url_for, flash, request, session
from flask_login import LoginManager, login_user, logout_user, login_required, current_user
from flask_wtf import CSRFProtect
from flask_wtf.csrf import CSRFError
import accounts
import feed
import interactions
from errors import UserNotFound, DuplicateUser, BadCredential, QuoteNotFound, Unauthorized, ConsistencyFault
from forms import RegisterForm, LoginForm, QuoteForm, CommentForm
from models import db, User
from sessions import DatabaseSessionInterface


def _build_mysql_url_from_parts() -> str | None:
    host = os.getenv("MYSQLHOST") or os.getenv("DB_HOST")
    port = os.getenv("MYSQLPORT") or os.getenv("DB_PORT") or "3306"
    user = os.getenv("MYSQLUSER") or os.getenv("DB_USER")
    password = os.getenv("MYSQLPASSWORD") or os.getenv("DB_PASS")
    name = os.getenv("MYSQLDATABASE") or os.getenv("DB_NAME")
    if all([host, user, password, name]):
        return f"mysql+pymysql://{user}:{password}@{host}:{port}/{name}?charset=utf8mb4"
    return None


def _resolve_db_url() -> str:
    # hosting platforms expose the URL under different names
    url = (
        os.getenv("DATABASE_URL")
        or os.getenv("MYSQL_URL")
        or os.getenv("MYSQLDATABASE_URL")
        or _build_mysql_url_from_parts()
    )
    if not url:
        raise RuntimeError(
            "No database URL found. Set DATABASE_URL or MYSQLHOST/PORT/USER/PASSWORD/DATABASE."
        )
    # SQLAlchemy 2 needs the pymysql driver spelled out
    if url.startswith("mysql://"):
        url = url.replace("mysql://", "mysql+pymysql://", 1)
    return url


def create_app(test_config=None):
    app = Flask(__name__)

    # Config
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "change-me")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=int(os.getenv("SESSION_LIFETIME_DAYS", "14")))
    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")
    if test_config:
        app.config.from_mapping(test_config)
    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        app.config["SQLALCHEMY_DATABASE_URI"] = _resolve_db_url()

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Extensions
    db.init_app(app)
    CSRFProtect(app)
    app.session_interface = DatabaseSessionInterface()

    login_manager = LoginManager(app)
    login_manager.login_view = "login"
    login_manager.login_message = "Log in to do that"
    login_manager.login_message_category = "info"

    @login_manager.user_loader
    def load_user(user_id):
        # live lookup on every request; a deleted user comes back anonymous
        return db.session.get(User, int(user_id))

    with app.app_context():
        db.create_all()

    # Helpers
    def acting_user():
        return current_user._get_current_object()

    def back():
        return redirect(request.referrer or url_for("home"))

    @app.errorhandler(CSRFError)
    def csrf_failed(e):
        # stale form after the session went away (logout elsewhere, expiry)
        app.logger.info("rejected %s %s: %s", request.method, request.path, e.description)
        if current_user.is_authenticated:
            return back()
        return redirect(url_for("login"))

    # Routes
    @app.route("/")
    def home():
        form = QuoteForm() if current_user.is_authenticated else None
        return render_template(
            "index.html",
            form=form,
            comment_form=CommentForm(),
            quotes=feed.global_feed(),
        )

    @app.route("/post-quote", methods=["POST"])
    @login_required
    def post_quote():
        form = QuoteForm()
        if form.validate_on_submit():
            interactions.post_quote(acting_user(), form.text.data, form.author_name.data or "")
            flash("Quote posted", "success")
        else:
            flash("A quote needs some text", "danger")
        return redirect(url_for("home"))

    @app.route("/like/<int:quote_id>", methods=["POST"])
    @login_required
    def like(quote_id):
        try:
            interactions.toggle_like(acting_user(), quote_id)
        except (QuoteNotFound, Unauthorized):
            pass
        return back()

    @app.route("/repost/<int:quote_id>", methods=["POST"])
    @login_required
    def repost(quote_id):
        try:
            interactions.toggle_repost(acting_user(), quote_id)
        except (QuoteNotFound, Unauthorized):
            pass
        except ConsistencyFault:
            app.logger.exception("repost toggle on quote %s left unrepaired", quote_id)
        return back()

    @app.route("/comment/<int:quote_id>", methods=["POST"])
    @login_required
    def comment(quote_id):
        form = CommentForm()
        if form.validate_on_submit():
            try:
                interactions.add_comment(acting_user(), quote_id, form.text.data)
            except (QuoteNotFound, Unauthorized):
                pass
        else:
            flash("Comment can't be empty", "danger")
        return back()

    @app.route("/delete/<int:quote_id>", methods=["POST"])
    @login_required
    def delete(quote_id):
        interactions.delete_quote(acting_user(), quote_id)
        return back()

    @app.route("/user/<username>")
    def profile(username):
        try:
            u, quotes = feed.profile_feed(username)
        except UserNotFound:
            return Response("User not found", status=404, mimetype="text/plain")
        return render_template("profile.html", u=u, quotes=quotes, comment_form=CommentForm())

    @app.route("/register", methods=["GET", "POST"])
    def register():
        if current_user.is_authenticated:
            return redirect(url_for("home"))
        form = RegisterForm()
        if form.validate_on_submit():
            try:
                accounts.register(form.username.data, form.password.data)
            except DuplicateUser:
                flash("That username is taken", "warning")
                return redirect(url_for("register"))
            flash("Account created, log in to continue", "success")
            return redirect(url_for("login"))
        return render_template("register.html", form=form)

    @app.route("/login", methods=["GET", "POST"])
    def login():
        if current_user.is_authenticated:
            return redirect(url_for("home"))
        form = LoginForm()
        if form.validate_on_submit():
            try:
                u = accounts.verify(form.username.data, form.password.data)
            except (UserNotFound, BadCredential) as exc:
                app.logger.info("failed login for %r: %s", form.username.data, type(exc).__name__)
                flash("Invalid username or password", "danger")
                return redirect(url_for("login"))
            app.session_interface.regenerate(session._get_current_object())
            login_user(u)
            return redirect(url_for("home"))
        return render_template("login.html", form=form)

    @app.route("/logout")
    def logout():
        logout_user()
        app.session_interface.destroy(session._get_current_object())
        return redirect(url_for("home"))

    # CLI
    @app.cli.command("init-db")
    def init_db():
        """Create any missing tables."""
        db.create_all()
        click.echo("Tables created")

    @app.cli.command("reconcile-reposts")
    def reconcile_reposts():
        """Repair reposter markers and repost-copies that disagree."""
        repaired = interactions.reconcile_reposts()
        click.echo(f"Repaired {repaired} repost pair(s)")

    @app.cli.command("purge-sessions")
    def purge_sessions():
        """Delete expired stored sessions."""
        removed = app.session_interface.purge_expired()
        click.echo(f"Purged {removed} expired session(s)")

    return app


app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", 8080)))
