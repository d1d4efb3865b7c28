"""Protocol conformance smoke test."""

from __future__ import annotations

from quotasync.data import protocols as data_protocols
from quotasync.services import protocols


def test_protocols_module_imports() -> None:
    assert hasattr(protocols, "SnapshotStoreProtocol")
    assert hasattr(protocols, "RenderServiceProtocol")
    assert hasattr(protocols, "UsageFetcherProtocol")
    assert hasattr(data_protocols, "TierProtocol")
