from __future__ import annotations

import pytest

from core.cooldown import RefreshCooldown, format_cooldown


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.parametrize("seconds,expected", [(120, "2:00"), (119, "1:59"), (65, "1:05"), (9, "0:09"), (0, "0:00"), (-4, "0:00")])
def test_format_cooldown(seconds, expected):
    assert format_cooldown(seconds) == expected


def test_not_started_is_ready():
    cooldown = RefreshCooldown(120, clock=FakeClock())
    assert cooldown.remaining() == 0
    assert cooldown.ready()


def test_counts_down_per_second():
    clock = FakeClock()
    cooldown = RefreshCooldown(120, clock=clock)
    cooldown.start()
    assert cooldown.remaining() == 120
    assert not cooldown.ready()
    assert cooldown.label() == "2:00"

    clock.now += 0.4
    assert cooldown.remaining() == 120
    clock.now += 0.6
    assert cooldown.remaining() == 119
    clock.now += 118
    assert cooldown.remaining() == 1
    assert cooldown.label() == "0:01"
    clock.now += 1
    assert cooldown.remaining() == 0
    assert cooldown.ready()
    clock.now += 500
    assert cooldown.remaining() == 0


def test_restart_and_reset():
    clock = FakeClock()
    cooldown = RefreshCooldown(10, clock=clock)
    cooldown.start()
    clock.now += 8
    cooldown.start()
    assert cooldown.remaining() == 10
    cooldown.reset()
    assert cooldown.ready()


def test_zero_second_cooldown_never_blocks():
    cooldown = RefreshCooldown(0, clock=FakeClock())
    cooldown.start()
    assert cooldown.ready()
