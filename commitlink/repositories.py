# commitlink/repositories.py
from __future__ import annotations

import logging
import functools
import re
import secrets
import uuid
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import RepositorySource, Ticket, TicketHistory, User, utcnow_seconds

logger = logging.getLogger(__name__)


def rollback_on_error(func):
    """Roll the session back before a database error propagates."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SQLAlchemyError:
            db.session.rollback()
            raise
    return wrapper


def generate_hook_secret() -> str:
    try:
        return secrets.token_hex(16)
    except NotImplementedError:
        # No OS randomness source: a guessable secret is better than none.
        logger.warning("Secure randomness unavailable; falling back to a low-entropy hook secret")
        return f"gitea_{uuid.uuid1().hex}"


class SourceRepository:
    """Persistence for registered repository sources (the gitea_config table)."""

    def list_all(self) -> List[RepositorySource]:
        stmt = db.select(RepositorySource).order_by(RepositorySource.id.desc())
        return list(db.session.scalars(stmt))

    def get_by_id(self, source_id: int) -> Optional[RepositorySource]:
        return db.session.get(RepositorySource, source_id)

    def get_by_url(self, url: str) -> Optional[RepositorySource]:
        stmt = db.select(RepositorySource).filter_by(repository_url=url).limit(1)
        return db.session.scalars(stmt).first()

    def get_by_hook_secret(self, secret: str) -> Optional[RepositorySource]:
        if not secret:
            return None
        stmt = db.select(RepositorySource).filter_by(hook_secret=secret).limit(1)
        return db.session.scalars(stmt).first()

    def save(
        self,
        repository_url: str,
        access_token: str,
        hook_secret: str,
        branch_filter: str = "*",
        hook_id: int = 0,
    ) -> Optional[int]:
        """
        Insert or replace the configuration for ``repository_url``.

        An existing row for the same URL is deleted and a fresh row inserted in
        one transaction; on failure the previous row is left untouched and
        None is returned.
        """
        try:
            existing = self.get_by_url(repository_url)
            if existing is not None:
                db.session.delete(existing)
                db.session.flush()

            source = RepositorySource(
                repository_url=repository_url,
                repository_access_token=access_token,
                hook_id=int(hook_id or 0),
                hook_secret=hook_secret,
                branch_filter=branch_filter or "*",
            )
            db.session.add(source)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to save configuration for %s", repository_url)
            return None

        logger.info("Saved configuration id=%s for %s", source.id, repository_url)
        return source.id

    def update_branch_filter(self, source_id: int, branch_filter: str) -> bool:
        return self._update(source_id, branch_filter=branch_filter)

    def update_hook_id(self, source_id: int, hook_id: int) -> bool:
        return self._update(source_id, hook_id=int(hook_id))

    def delete_by_id(self, source_id: int) -> bool:
        stmt = db.delete(RepositorySource).where(RepositorySource.id == source_id)
        return self._execute(stmt)

    def delete_by_url(self, url: str) -> bool:
        stmt = db.delete(RepositorySource).where(RepositorySource.repository_url == url)
        return self._execute(stmt)

    def _update(self, source_id: int, **values) -> bool:
        stmt = db.update(RepositorySource).where(RepositorySource.id == source_id).values(**values)
        return self._execute(stmt)

    @rollback_on_error
    def _execute(self, stmt) -> bool:
        result = db.session.execute(stmt)
        db.session.commit()
        return result.rowcount > 0


class TicketHistoryRepository:
    """
    Ticket existence checks, user lookups and the history ledger.

    Each method is its own unit of work; nothing here spans the existence
    check and the insert.
    """

    @rollback_on_error
    def ticket_exists(self, ticket_id: int) -> bool:
        stmt = db.select(Ticket.id).where(Ticket.id == ticket_id).limit(1)
        return db.session.execute(stmt).first() is not None

    @rollback_on_error
    def find_user_by_username_or_email(self, value: Optional[str]) -> Optional[int]:
        """Exact match against the username column, which usually holds an email."""
        value = value.strip() if isinstance(value, str) else ""
        if not value:
            return None
        stmt = db.select(User.id).where(User.username == value).order_by(User.id).limit(1)
        return db.session.scalars(stmt).first()

    @rollback_on_error
    def find_user_by_full_name(self, full_name: Optional[str]) -> Optional[int]:
        """
        Case-insensitive first/last name match, trying both ``First Last`` and
        ``Last First``. Names with a single token never match.
        """
        parts = _name_parts(full_name)
        if len(parts) < 2:
            return None
        first, last = parts[0].lower(), parts[-1].lower()

        stmt = (
            db.select(User.id)
            .where(
                or_(
                    (func.lower(User.firstname) == first) & (func.lower(User.lastname) == last),
                    (func.lower(User.firstname) == last) & (func.lower(User.lastname) == first),
                )
            )
            .order_by(User.id)
            .limit(1)
        )
        return db.session.scalars(stmt).first()

    @rollback_on_error
    def find_user_by_partial_name(self, name: Optional[str]) -> Optional[int]:
        """
        Best-effort lookup. A distinct last token is tried against lastname
        first; then the first token against firstname, or contained in either
        name column.
        """
        parts = _name_parts(name)
        if not parts:
            return None
        first, last = parts[0].lower(), parts[-1].lower()
        lastname = func.lower(User.lastname, type_=db.String)
        firstname = func.lower(User.firstname, type_=db.String)

        if last != first:
            stmt = (
                db.select(User.id)
                .where(or_(lastname == last, lastname.contains(last, autoescape=True)))
                .order_by(User.id)
                .limit(1)
            )
            uid = db.session.scalars(stmt).first()
            if uid is not None:
                return uid

        stmt = (
            db.select(User.id)
            .where(
                or_(
                    firstname == first,
                    firstname.contains(first, autoescape=True),
                    lastname.contains(first, autoescape=True),
                )
            )
            .order_by(User.id)
            .limit(1)
        )
        return db.session.scalars(stmt).first()

    @rollback_on_error
    def add_history(self, ticket_id: int, user_id: int, change_type: str, change_value: str) -> bool:
        entry = TicketHistory(
            ticket_id=ticket_id,
            user_id=user_id,
            change_type=change_type,
            change_value=change_value,
            date_modified=utcnow_seconds(),
        )
        db.session.add(entry)
        db.session.commit()
        return entry.id is not None


def _name_parts(value: Optional[str]) -> List[str]:
    if not isinstance(value, str):
        return []
    return re.split(r"\s+", value.strip()) if value.strip() else []
