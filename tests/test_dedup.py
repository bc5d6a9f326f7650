"""Tests for the first-disposition dedup gate, including TTL pruning."""

from datetime import datetime, timedelta, timezone

from app.dedup import DispositionDedupGate

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_key_prefers_call_id():
    key = DispositionDedupGate.dedupe_key("C9", "L1", "2024-01-01 10:00:00", T0)
    assert key == "disp_first_set:C9"


def test_key_falls_back_to_lead_and_timestamp():
    key = DispositionDedupGate.dedupe_key(None, "L1", "2024-01-01 10:00:00", T0)
    assert key == "disp_first_set:L1:2024-01-01 10:00:00"


def test_key_falls_back_to_receipt_time():
    key = DispositionDedupGate.dedupe_key(None, "L1", None, T0)
    assert key == f"disp_first_set:L1:{int(T0.timestamp() * 1000)}"


def test_first_claim_wins():
    gate = DispositionDedupGate()

    assert gate.claim("disp_first_set:C1", "D1") is True
    assert gate.claim("disp_first_set:C1", "D2") is False
    assert gate.claim("disp_first_set:C2") is True
    assert len(gate) == 2


def test_entry_active_at_29_days():
    clock = FakeClock(T0)
    gate = DispositionDedupGate(clock=clock)
    gate.claim("disp_first_set:C1")

    clock.now = T0 + timedelta(days=29)

    assert "disp_first_set:C1" in gate
    assert gate.claim("disp_first_set:C1") is False


def test_entry_expired_at_31_days():
    clock = FakeClock(T0)
    gate = DispositionDedupGate(clock=clock)
    gate.claim("disp_first_set:C1")

    clock.now = T0 + timedelta(days=31)

    assert "disp_first_set:C1" not in gate
    assert gate.claim("disp_first_set:C1") is True


def test_prune_removes_only_expired():
    clock = FakeClock(T0)
    gate = DispositionDedupGate(clock=clock)
    gate.claim("old")
    clock.now = T0 + timedelta(days=20)
    gate.claim("new")

    clock.now = T0 + timedelta(days=31)
    gate.prune()

    assert len(gate) == 1
    assert "new" in gate
