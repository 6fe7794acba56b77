from giveawaybot.cooldowns import CooldownTracker


class TestCooldownTracker:
    def test_try_acquire_respects_window(self):
        tracker = CooldownTracker(retention_ms=60_000)
        key = (1, 2)
        assert tracker.try_acquire(key, 1_000, 15_000) is True
        assert tracker.try_acquire(key, 15_999, 15_000) is False
        assert tracker.try_acquire(key, 16_000, 15_000) is True

    def test_rejected_attempt_does_not_extend_window(self):
        tracker = CooldownTracker(retention_ms=60_000)
        tracker.record((1, 2), 0)
        assert tracker.try_acquire((1, 2), 10_000, 15_000) is False
        assert tracker.try_acquire((1, 2), 15_000, 15_000) is True

    def test_keys_are_independent(self):
        tracker = CooldownTracker(retention_ms=60_000)
        tracker.record((1, 2), 0)
        assert not tracker.is_limited((1, 3), 0, 15_000)
        assert not tracker.is_limited((9, 2), 0, 15_000)
        assert tracker.is_limited((1, 2), 0, 15_000)

    def test_forget_thread(self):
        tracker = CooldownTracker(retention_ms=60_000)
        tracker.record((1, 2), 0)
        tracker.record((1, 3), 0)
        tracker.record((4, 2), 0)
        tracker.forget_thread(1)
        assert len(tracker) == 1
        assert (4, 2) in tracker

    def test_sweep(self):
        tracker = CooldownTracker(retention_ms=60_000)
        tracker.record((1, 2), 0)
        tracker.record((1, 3), 50_000)
        assert tracker.sweep(60_000) == 0
        assert tracker.sweep(60_001) == 1
        assert (1, 3) in tracker

    def test_sweep_keeps_running_cooldown(self):
        tracker = CooldownTracker(retention_ms=60_000)
        assert tracker.try_acquire((1, 2), 0, 120_000)
        assert tracker.sweep(90_000) == 0
        assert tracker.is_limited((1, 2), 90_000, 120_000)
        assert tracker.sweep(120_001) == 1
