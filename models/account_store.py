"""
AccountStore: the one handle through which accounts and their outstanding
refresh tokens are read and written.

The app builds one store in create_app(), calls reload() once at startup,
close() at the end of every app context and dispose() at shutdown.
"""
import logging

from sqlalchemy import create_engine, event, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import scoped_session, sessionmaker, undefer
from sqlalchemy.pool import StaticPool

from models.base_model import Base, utcnow
from models.account import Account
from models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)

# Seconds a SQLite writer waits on a locked database before giving up
SQLITE_BUSY_TIMEOUT = 30


class AccountStore:
    __engine = None
    __session = None

    def __init__(self, url: str, echo: bool = False):
        """Build the engine for url; no connection is opened until reload()"""
        kwargs = {"echo": echo}
        in_memory = False
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
            if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
                # one shared connection, otherwise every checkout sees an empty db
                kwargs["poolclass"] = StaticPool
                in_memory = True
        else:
            kwargs["pool_pre_ping"] = True
        self.__engine = create_engine(url, **kwargs)

        if self.__engine.url.get_backend_name() == "sqlite":
            @event.listens_for(self.__engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()
                if not in_memory:
                    # we emit BEGIN ourselves, see _begin_immediate
                    dbapi_connection.isolation_level = None

            if not in_memory:
                # Take the write lock when the transaction starts. A deferred
                # transaction that reads and then writes can deadlock against
                # another writer and fail with "database is locked" instead of
                # waiting on the busy timeout.
                @event.listens_for(self.__engine, "begin")
                def _begin_immediate(conn):
                    conn.exec_driver_sql("BEGIN IMMEDIATE")

    def reload(self):
        """Create tables and start session"""
        Base.metadata.create_all(self.__engine)
        session_factory = sessionmaker(bind=self.__engine, expire_on_commit=False)
        self.__session = scoped_session(session_factory)

    def get_session(self):
        return self.__session

    def close(self):
        """Remove the thread's session (app context teardown)"""
        if self.__session is not None:
            self.__session.remove()

    def dispose(self):
        """Release every pooled connection (shutdown)"""
        self.close()
        self.__engine.dispose()

    def _commit(self):
        try:
            self.__session.commit()
        except SQLAlchemyError:
            self.__session.rollback()
            raise

    # accounts

    def find_by_email(self, email: str, with_credentials: bool = False):
        """Fetch an account by email; password_hash is loaded only on request"""
        query = self.__session.query(Account).filter(Account.email == email.strip().lower())
        if with_credentials:
            query = query.options(undefer(Account.password_hash)).populate_existing()
        return query.first()

    def find_by_id(self, account_id: str, with_credentials: bool = False):
        if not account_id:
            return None
        if with_credentials:
            return self.__session.get(
                Account, account_id, options=[undefer(Account.password_hash)], populate_existing=True
            )
        return self.__session.get(Account, account_id)

    def exists_by_username_or_email(self, username: str, email: str):
        """
        Single lookup against both identity fields.
        Returns "email" or "username" naming the field that collided, or None.
        """
        email = email.strip().lower()
        existing = (
            self.__session.query(Account.username, Account.email)
            .filter(or_(Account.email == email, Account.username == username))
            # an email match outranks a username match on another row
            .order_by((Account.email == email).desc())
            .first()
        )
        if existing is None:
            return None
        return "email" if existing.email == email else "username"

    def create(self, account: Account) -> Account:
        self.__session.add(account)
        self._commit()
        return account

    def update_profile(self, account: Account, **fields) -> Account:
        for key, value in fields.items():
            setattr(account, key, value)
        self._commit()
        return account

    def set_password_hash(self, account: Account, password_hash: str, revoke_sessions: bool = False):
        """Store a new hash; optionally drop every outstanding refresh token in the same commit"""
        account.password_hash = password_hash
        if revoke_sessions:
            self.__session.query(RefreshToken).filter(
                RefreshToken.account_id == account.id
            ).delete(synchronize_session=False)
        self._commit()

    def set_active(self, account: Account, is_active: bool) -> Account:
        """Toggle the active flag; deactivation also revokes all refresh tokens"""
        account.is_active = is_active
        if not is_active:
            self.__session.query(RefreshToken).filter(
                RefreshToken.account_id == account.id
            ).delete(synchronize_session=False)
        self._commit()
        return account

    # refresh tokens

    def update_refresh_tokens(self, account_id: str, remove: str | None = None,
                              add: str | None = None, clear: bool = False) -> bool:
        """
        Apply one change to an account's outstanding refresh tokens in a
        single transaction and report whether it was applied.

        - clear: delete every token of the account
        - remove: delete that exact token (absent token is fine)
        - add: append a new token
        - remove + add: rotation. The delete is conditional on the token
          being present and unexpired; when it matches nothing (a concurrent
          refresh or logout got there first) nothing is written and False is
          returned.
        """
        session = self.__session
        try:
            tokens = session.query(RefreshToken).filter(RefreshToken.account_id == account_id)
            if clear:
                tokens.delete(synchronize_session=False)
            elif remove is not None:
                target = tokens.filter(RefreshToken.token == remove)
                if add is not None:
                    target = target.filter(RefreshToken.expires_at > utcnow())
                removed = target.delete(synchronize_session=False)
                if add is not None and removed == 0:
                    session.rollback()
                    return False
            if add is not None:
                session.add(RefreshToken(token=add, account_id=account_id))
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        return True

    def outstanding_tokens(self, account_id: str) -> list[str]:
        """Live (present and unexpired) refresh tokens of an account"""
        rows = (
            self.__session.query(RefreshToken.token)
            .filter(RefreshToken.account_id == account_id, RefreshToken.expires_at > utcnow())
            .all()
        )
        return [row.token for row in rows]

    def prune_expired_tokens(self) -> int:
        """Hard delete expired token rows; returns how many went"""
        count = (
            self.__session.query(RefreshToken)
            .filter(RefreshToken.expires_at <= utcnow())
            .delete(synchronize_session=False)
        )
        self._commit()
        logger.info("Pruned %d expired refresh tokens", count)
        return count
