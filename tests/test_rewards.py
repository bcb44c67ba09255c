"""Tests for threshold rewards."""

import json

import pytest

from step_bridge.logs import NdjsonLogger
from step_bridge.rewards import RewardTrigger

from fakes import FakeWallet, RecordingNotifier


class TestRewardTrigger:
    """Test suite for RewardTrigger."""

    def setup_method(self):
        self.wallet = FakeWallet()
        self.notifier = RecordingNotifier()
        self.trigger = RewardTrigger(
            self.wallet,
            self.notifier,
            steps_threshold=1000,
            amount=10,
        )

    def test_no_reward_below_threshold(self):
        for steps in range(1, 1000):
            assert not self.trigger.check(steps)
        assert self.wallet.calls == 0

    def test_once_per_crossing(self):
        fired = [steps for steps in range(1, 3501) if self.trigger.check(steps)]

        assert fired == [1000, 2000, 3000]
        assert len(self.wallet.transactions) == 3
        assert self.wallet.balance == 30
        assert self.trigger.last_rewarded_steps == 3000

    def test_transaction_details(self):
        self.trigger.check(1000)
        assert self.wallet.transactions == [(10, "steps", "1000 steps completed")]
        assert self.notifier.successes == ["Congratulations! You completed 1000 steps! +10 FIT"]

    def test_jump_over_several_multiples_rewards_once(self):
        assert self.trigger.check(3500)
        assert not self.trigger.check(3999)
        assert self.wallet.calls == 1

    def test_failed_ledger_still_advances(self):
        self.wallet.fail = True

        assert self.trigger.check(1000)
        assert self.trigger.last_rewarded_steps == 1000
        assert self.trigger.failed_count == 1
        assert self.notifier.successes == []

        # The lost reward is not retried on later steps
        self.wallet.fail = False
        assert not self.trigger.check(1001)
        assert self.wallet.calls == 1

    def test_missing_ledger_is_a_failure(self):
        trigger = RewardTrigger(None, self.notifier, steps_threshold=1000)
        assert trigger.check(1000)
        assert trigger.failed_count == 1
        assert trigger.granted_count == 0

    def test_seeded_checkpoint_skips_earlier_thresholds(self):
        trigger = RewardTrigger(self.wallet, self.notifier, steps_threshold=1000, initial_steps=2500)

        assert not any(trigger.check(steps) for steps in range(2501, 3000))
        assert trigger.check(3000)
        assert self.wallet.calls == 1

    def test_reset(self):
        self.trigger.check(1000)
        self.trigger.reset(0)
        assert self.trigger.check(1000)
        assert self.trigger.granted_count == 2

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            RewardTrigger(self.wallet, steps_threshold=0)

    def test_events_logged(self, tmp_path):
        event_log = NdjsonLogger(str(tmp_path))
        trigger = RewardTrigger(self.wallet, steps_threshold=10, event_log=event_log)
        trigger.check(10)
        self.wallet.fail = True
        trigger.check(20)
        path = event_log.current_path
        event_log.close()

        records = [json.loads(line) for line in path.read_text().splitlines()]
        assert [(r["type"], r["msg"]) for r in records] == [("event", "REWARD"), ("error", "Reward failed")]
        assert records[0]["steps"] == 10
        assert records[0]["data"]["transaction_id"] == "tx-1"
