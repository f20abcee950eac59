"""
Unit tests for client/correlator.py -- request id tracking.
"""

import itertools
import uuid

from client.correlator import RequestCorrelator, new_request_id


class TestRequestIds:
    def test_default_ids_are_uuids(self):
        rid = new_request_id()
        assert str(uuid.UUID(rid)) == rid

    def test_ids_are_unique(self):
        corr = RequestCorrelator()
        ids = {corr.next_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_custom_id_factory(self):
        counter = itertools.count(1)
        corr = RequestCorrelator(id_factory=lambda: f"req-{next(counter)}")
        assert corr.next_id() == "req-1"
        assert corr.next_id() == "req-2"


class TestTrackResolve:
    def test_resolve_after_track(self):
        corr = RequestCorrelator()
        corr.track("r1", "evt-a")
        corr.track("r2", "evt-b")
        assert corr.resolve("r1") == "evt-a"
        assert corr.resolve("r2") == "evt-b"
        assert len(corr) == 2
        assert "r1" in corr

    def test_unknown_id_resolves_to_none(self):
        corr = RequestCorrelator()
        assert corr.resolve("nope") is None

    def test_resolve_does_not_consume(self):
        corr = RequestCorrelator()
        corr.track("r1", "evt-a")
        corr.resolve("r1")
        assert corr.resolve("r1") == "evt-a"

    def test_overwrite_leaves_other_entries(self):
        corr = RequestCorrelator()
        corr.track("r1", "evt-a")
        corr.track("r2", "evt-b")
        corr.track("r1", "evt-c")
        assert corr.resolve("r1") == "evt-c"
        assert corr.resolve("r2") == "evt-b"
        assert len(corr) == 2

    def test_reset_forgets_everything(self):
        corr = RequestCorrelator()
        for i in range(5):
            corr.track(f"r{i}", f"evt-{i}")
        corr.reset()
        assert len(corr) == 0
        for i in range(5):
            assert corr.resolve(f"r{i}") is None

    def test_track_after_reset(self):
        corr = RequestCorrelator()
        corr.track("r1", "old")
        corr.reset()
        corr.track("r2", "new")
        assert corr.resolve("r1") is None
        assert corr.resolve("r2") == "new"
