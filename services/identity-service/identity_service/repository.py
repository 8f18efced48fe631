"""Database repository for identity/account data."""

from __future__ import annotations

from datetime import datetime, timezone

import psycopg
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from shared_schemas import AccountStatus

from .domain.account import Account
from .domain.errors import AccountNotFound, AccountStoreError, DuplicateEmail

EMAIL_UNIQUE_CONSTRAINT = "accounts_email_key"

_COLUMNS = (
    "account_id, name, surname, email, password_hash, status, "
    "verification_token, created_at, updated_at, verified_at"
)


class AccountRepository:
    """Postgres-backed account persistence.

    Email uniqueness is enforced by the ``accounts_email_key`` unique index,
    so concurrent registrations of one address resolve inside Postgres.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def create(self, account: Account) -> Account:
        """Insert a new account, raising ``DuplicateEmail`` on an email conflict."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO accounts ({_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING {_COLUMNS}
                        """,
                        (
                            account.account_id,
                            account.name,
                            account.surname,
                            account.email,
                            account.password_hash,
                            account.status.value,
                            account.verification_token,
                            account.created_at,
                            account.updated_at,
                            account.verified_at,
                        ),
                    )
                    row = cur.fetchone()
                conn.commit()
        except psycopg.errors.UniqueViolation as exc:
            if exc.diag.constraint_name == EMAIL_UNIQUE_CONSTRAINT:
                raise DuplicateEmail(account.email) from exc
            # a verification token collision is not retried
            raise AccountStoreError(f"unique violation on {exc.diag.constraint_name}") from exc
        except psycopg.Error as exc:
            raise AccountStoreError("account insert failed") from exc
        return self._map_record(row)

    def get_by_email(self, email: str) -> Account:
        return self._fetch_one("email = %s", email)

    def get_by_verification_token(self, token: str) -> Account:
        return self._fetch_one("verification_token = %s", token)

    def activate(self, account_id: str) -> bool:
        """Move a PENDING account to ACTIVE and consume its token.

        Returns ``False`` without touching the row when the account is already
        ACTIVE; the conditional update makes concurrent calls safe.
        """
        now = datetime.now(timezone.utc)
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        UPDATE accounts
                        SET status = %s, verified_at = %s, updated_at = %s
                        WHERE account_id = %s AND status = %s
                        RETURNING account_id
                        """,
                        (AccountStatus.active.value, now, now, account_id, AccountStatus.pending.value),
                    )
                    transitioned = cur.fetchone() is not None
                    exists = True
                    if not transitioned:
                        cur.execute("SELECT 1 FROM accounts WHERE account_id = %s", (account_id,))
                        exists = cur.fetchone() is not None
                conn.commit()
        except psycopg.Error as exc:
            raise AccountStoreError("account activation failed") from exc
        if not exists:
            raise AccountNotFound(account_id)
        return transitioned

    def _fetch_one(self, predicate: str, value: str) -> Account:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(f"SELECT {_COLUMNS} FROM accounts WHERE {predicate}", (value,))
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise AccountStoreError("account lookup failed") from exc
        if not row:
            raise AccountNotFound(predicate)
        return self._map_record(row)

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=str(row[0]),
            name=row[1],
            surname=row[2],
            email=row[3],
            password_hash=row[4],
            status=AccountStatus(row[5]),
            verification_token=row[6],
            created_at=row[7],
            updated_at=row[8],
            verified_at=row[9],
        )
