# commitlink/models.py
from datetime import datetime, timezone
from .extensions import db


def utcnow_seconds() -> datetime:
    """Naive UTC timestamp truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


class RepositorySource(db.Model):
    """A registered repository that may deliver webhooks to us."""

    __tablename__ = "gitea_config"
    # replaced registrations always get a fresh id
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    repository_url = db.Column(db.String(255), nullable=False, unique=True)
    repository_access_token = db.Column(db.String(255), nullable=False)
    hook_id = db.Column(db.Integer, nullable=False, default=0)
    hook_secret = db.Column(db.String(255), nullable=False)
    branch_filter = db.Column(db.String(255), nullable=False, default="*", server_default="*")

    def to_dict(self, include_token: bool = False) -> dict:
        token = self.repository_access_token or ""
        return {
            "id": self.id,
            "repository_url": self.repository_url,
            "repository_access_token": token if include_token else _mask(token),
            "hook_id": self.hook_id,
            "hook_secret": self.hook_secret,
            "branch_filter": self.branch_filter,
        }

    def __repr__(self):
        return f"<RepositorySource id={self.id} url={self.repository_url}>"


class User(db.Model):
    # owned by the issue tracker; read-only here
    __tablename__ = "zp_user"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(255), nullable=False, index=True)
    firstname = db.Column(db.String(100), nullable=True)
    lastname = db.Column(db.String(100), nullable=True)

    def __repr__(self):
        return f"<User id={self.id} username={self.username}>"


class Ticket(db.Model):
    # owned by the issue tracker; only existence is checked
    __tablename__ = "zp_tickets"

    id = db.Column(db.Integer, primary_key=True)
    headline = db.Column(db.String(255), nullable=True)

    def __repr__(self):
        return f"<Ticket id={self.id}>"


class TicketHistory(db.Model):
    __tablename__ = "zp_tickethistory"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column("userId", db.Integer, nullable=False, default=0)
    ticket_id = db.Column("ticketId", db.Integer, nullable=False, index=True)
    change_type = db.Column("changeType", db.String(50), nullable=False)
    change_value = db.Column("changeValue", db.Text, nullable=True)
    date_modified = db.Column("dateModified", db.DateTime, default=utcnow_seconds, nullable=False)

    def __repr__(self):
        return f"<TicketHistory id={self.id} ticket={self.ticket_id} type={self.change_type}>"


def _mask(token: str) -> str:
    if len(token) <= 4:
        return "*" * len(token)
    return "*" * (len(token) - 4) + token[-4:]
