"""SQLite-backed FIT token wallet and transaction ledger."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

# Rewards are always credited, whatever sign the caller passes
REWARD_TYPES = frozenset({
    "daily_tip",
    "water_intake",
    "steps",
    "meal_plan",
    "workout_plan",
    "physio_plan",
})


class WalletError(Exception):
    """Base class for wallet failures."""


class WalletNotFoundError(WalletError):
    """Referenced wallet does not exist."""


class InsufficientBalanceError(WalletError):
    """Debit would take the wallet balance below zero."""


@dataclass
class Transaction:
    """One row of the FIT ledger."""

    id: str
    wallet_id: str
    amount: int
    transaction_type: str
    description: str
    recipient_id: Optional[str]
    created_at: str


def create_wallet_schema(conn: sqlite3.Connection) -> None:
    """Create wallet tables if they do not exist."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS wallets (
            id TEXT PRIMARY KEY,
            owner TEXT NOT NULL UNIQUE,
            balance INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS fit_transactions (
            id TEXT PRIMARY KEY,
            wallet_id TEXT NOT NULL REFERENCES wallets(id),
            amount INTEGER NOT NULL,
            transaction_type TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            recipient_id TEXT,
            created_at TEXT NOT NULL
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_fit_transactions_wallet ON fit_transactions(wallet_id, created_at)"
    )
    conn.commit()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Wallet:
    """FIT token wallet for one owner, with balance kept in step with its ledger."""

    def __init__(self, db_path: str, owner: str = "local") -> None:
        self.db_path = db_path
        self.owner = owner

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        create_wallet_schema(self._conn)

        self.wallet_id = self.ensure_wallet(owner)

    def ensure_wallet(self, owner: str) -> str:
        """Return the wallet id for ``owner``, creating an empty wallet if needed."""
        row = self._conn.execute("SELECT id FROM wallets WHERE owner = ?", (owner,)).fetchone()
        if row:
            return row["id"]

        wallet_id = str(uuid.uuid4())
        with self._conn:
            self._conn.execute(
                "INSERT INTO wallets (id, owner, balance, created_at) VALUES (?, ?, 0, ?)",
                (wallet_id, owner, _now()),
            )
        logger.info(f"Created wallet {wallet_id} for {owner}")
        return wallet_id

    @property
    def balance(self) -> int:
        return self.get_balance(self.wallet_id)

    def get_balance(self, wallet_id: str) -> int:
        row = self._conn.execute("SELECT balance FROM wallets WHERE id = ?", (wallet_id,)).fetchone()
        if row is None:
            raise WalletNotFoundError(f"Wallet not found: {wallet_id}")
        return row["balance"]

    def add_transaction(
        self,
        amount: int,
        transaction_type: str,
        description: str = "",
        recipient_id: Optional[str] = None,
    ) -> str:
        """Record a transaction on this wallet and apply it to the balance."""
        if transaction_type in REWARD_TYPES:
            amount = abs(amount)

        transaction_id = str(uuid.uuid4())
        with self._conn:
            if amount < 0 and self.get_balance(self.wallet_id) + amount < 0:
                raise InsufficientBalanceError(
                    f"Balance {self.get_balance(self.wallet_id)} too low for debit of {-amount}"
                )
            self._insert(transaction_id, self.wallet_id, amount, transaction_type, description, recipient_id)

        logger.info(f"Wallet {self.wallet_id}: {transaction_type} {amount:+d} FIT")
        return transaction_id

    def transfer(self, recipient_wallet_id: str, amount: int, description: str = "") -> str:
        """Move ``amount`` FIT to another wallet as a debit/credit pair."""
        if amount <= 0:
            raise WalletError(f"Transfer amount must be positive: {amount}")
        if recipient_wallet_id == self.wallet_id:
            raise WalletError("Cannot transfer to the same wallet")

        self.get_balance(recipient_wallet_id)

        debit_id = str(uuid.uuid4())
        with self._conn:
            balance = self.get_balance(self.wallet_id)
            if balance < amount:
                raise InsufficientBalanceError(f"Balance {balance} too low for transfer of {amount}")
            self._insert(debit_id, self.wallet_id, -amount, "transfer", description, recipient_wallet_id)
            self._insert(
                str(uuid.uuid4()), recipient_wallet_id, amount, "transfer", description, self.wallet_id
            )

        logger.info(f"Wallet {self.wallet_id}: transferred {amount} FIT to {recipient_wallet_id}")
        return debit_id

    def transactions(self, limit: int = 50) -> List[Transaction]:
        """Most recent transactions on this wallet, newest first."""
        rows = self._conn.execute(
            """
            SELECT id, wallet_id, amount, transaction_type, description, recipient_id, created_at
            FROM fit_transactions
            WHERE wallet_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (self.wallet_id, limit),
        ).fetchall()
        return [Transaction(**dict(row)) for row in rows]

    def close(self) -> None:
        self._conn.close()

    def _insert(
        self,
        transaction_id: str,
        wallet_id: str,
        amount: int,
        transaction_type: str,
        description: str,
        recipient_id: Optional[str],
    ) -> None:
        self._conn.execute(
            """
            INSERT INTO fit_transactions
                (id, wallet_id, amount, transaction_type, description, recipient_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (transaction_id, wallet_id, amount, transaction_type, description, recipient_id, _now()),
        )
        self._conn.execute(
            "UPDATE wallets SET balance = balance + ? WHERE id = ?",
            (amount, wallet_id),
        )

    def __enter__(self) -> Wallet:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
