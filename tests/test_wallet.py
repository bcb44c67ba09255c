"""Tests for the SQLite FIT wallet."""

import pytest

from step_bridge.wallet import (
    InsufficientBalanceError,
    Wallet,
    WalletError,
    WalletNotFoundError,
)


class TestWallet:
    """Test suite for Wallet."""

    def setup_method(self):
        self.wallet = Wallet(":memory:", owner="alice")

    def teardown_method(self):
        self.wallet.close()

    def test_new_wallet_is_empty(self):
        assert self.wallet.balance == 0
        assert self.wallet.transactions() == []

    def test_reward_credit(self):
        tx_id = self.wallet.add_transaction(10, "steps", "8000 steps completed")

        assert self.wallet.balance == 10
        [tx] = self.wallet.transactions()
        assert tx.id == tx_id
        assert tx.amount == 10
        assert tx.transaction_type == "steps"
        assert tx.description == "8000 steps completed"

    def test_reward_types_forced_positive(self):
        self.wallet.add_transaction(-5, "water_intake")
        assert self.wallet.balance == 5

    def test_debit_requires_balance(self):
        self.wallet.add_transaction(3, "daily_tip")
        with pytest.raises(InsufficientBalanceError):
            self.wallet.add_transaction(-4, "purchase")
        assert self.wallet.balance == 3
        assert len(self.wallet.transactions()) == 1

    def test_transactions_newest_first(self):
        for amount in (1, 2, 3):
            self.wallet.add_transaction(amount, "steps")
        assert [tx.amount for tx in self.wallet.transactions()] == [3, 2, 1]
        assert len(self.wallet.transactions(limit=2)) == 2

    def test_same_owner_same_wallet(self):
        assert self.wallet.ensure_wallet("alice") == self.wallet.wallet_id
        assert self.wallet.ensure_wallet("bob") != self.wallet.wallet_id


class TestTransfer:
    """Test suite for wallet-to-wallet transfers."""

    def setup_method(self):
        self.wallet = Wallet(":memory:", owner="alice")
        self.bob_id = self.wallet.ensure_wallet("bob")
        self.wallet.add_transaction(20, "steps")

    def teardown_method(self):
        self.wallet.close()

    def test_transfer_moves_balance(self):
        self.wallet.transfer(self.bob_id, 15, "thanks")

        assert self.wallet.balance == 5
        assert self.wallet.get_balance(self.bob_id) == 15
        latest = self.wallet.transactions()[0]
        assert latest.amount == -15
        assert latest.transaction_type == "transfer"
        assert latest.recipient_id == self.bob_id

    def test_insufficient_balance_leaves_both_untouched(self):
        with pytest.raises(InsufficientBalanceError):
            self.wallet.transfer(self.bob_id, 21)
        assert self.wallet.balance == 20
        assert self.wallet.get_balance(self.bob_id) == 0

    @pytest.mark.parametrize("amount", [0, -1])
    def test_non_positive_amount_rejected(self, amount):
        with pytest.raises(WalletError):
            self.wallet.transfer(self.bob_id, amount)

    def test_unknown_recipient(self):
        with pytest.raises(WalletNotFoundError):
            self.wallet.transfer("no-such-wallet", 1)

    def test_self_transfer_rejected(self):
        with pytest.raises(WalletError):
            self.wallet.transfer(self.wallet.wallet_id, 1)


def test_balance_persists(tmp_path):
    db_path = str(tmp_path / "db" / "wallet.db")
    with Wallet(db_path) as wallet:
        wallet.add_transaction(10, "steps")

    with Wallet(db_path) as wallet:
        assert wallet.balance == 10
        assert len(wallet.transactions()) == 1
