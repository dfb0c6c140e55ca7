"""In-memory test doubles."""

from __future__ import annotations

from .fake_dataplane import FakeDataPlane, FakeTransaction, RecordedCall

__all__ = ["FakeDataPlane", "FakeTransaction", "RecordedCall"]
