"""Tests for content-hash change detection."""

import threading

from civicdata.crawler.dedup import ChangeDetector, content_hash
from civicdata.crawler.types import DedupOutcome


URL = "https://council.example.gov.uk/planning"


class TestChangeDetector:
    """New, changed and duplicate outcomes."""

    def test_first_sight_is_new(self):
        """An unseen URL is new content."""
        result = ChangeDetector().check_and_record(URL, b"<p>v1</p>")
        assert result.outcome == DedupOutcome.NEW
        assert result.is_new_content
        assert not result.is_revisit
        assert result.hash == content_hash(b"<p>v1</p>")

    def test_identical_bytes_are_duplicate(self):
        """The second identical fetch is not new content."""
        detector = ChangeDetector()
        detector.check_and_record(URL, b"<p>v1</p>")
        second = detector.check_and_record(URL, b"<p>v1</p>")
        assert second.outcome == DedupOutcome.DUPLICATE
        assert not second.is_new_content

    def test_changed_content_is_a_revisit(self):
        """Different bytes for a known URL count as changed and new."""
        detector = ChangeDetector()
        first = detector.check_and_record(URL, b"<p>v1</p>")
        second = detector.check_and_record(URL, b"<p>v2</p>")
        assert second.outcome == DedupOutcome.CHANGED
        assert second.is_new_content and second.is_revisit
        assert second.previous_hash == first.hash
        assert detector.hash_for(URL) == second.hash

    def test_whitespace_difference_is_a_change(self):
        """Only exact equality counts as duplicate."""
        detector = ChangeDetector()
        detector.check_and_record(URL, "Updated 10:00")
        assert detector.check_and_record(URL, "Updated 10:01").outcome == DedupOutcome.CHANGED

    def test_previous_session_hashes(self):
        """Hashes loaded from an earlier session make unchanged pages duplicates."""
        detector = ChangeDetector(previous_hashes={URL: content_hash(b"same")})
        assert detector.check_and_record(URL, b"same").outcome == DedupOutcome.DUPLICATE

        loaded = ChangeDetector()
        assert loaded.load([(URL, content_hash(b"old"))]) == 1
        assert loaded.check_and_record(URL, b"new").outcome == DedupOutcome.CHANGED

    def test_cross_session_lookup_by_hash(self):
        """Content already stored under another URL is a duplicate."""
        stored = {content_hash(b"mirror")}
        detector = ChangeDetector(exists_by_hash=stored.__contains__)
        assert detector.check_and_record(URL, b"mirror").outcome == DedupOutcome.DUPLICATE
        assert detector.check_and_record(URL + "/other", b"fresh").outcome == DedupOutcome.NEW

    def test_failing_lookup_is_treated_as_new(self):
        """A broken storage lookup does not block crawling."""

        def broken(_digest):
            raise ConnectionError("storage offline")

        detector = ChangeDetector(exists_by_hash=broken)
        assert detector.check_and_record(URL, b"x").outcome == DedupOutcome.NEW

    def test_restore_undoes_a_record(self):
        """An abandoned pass leaves the map as it was."""
        detector = ChangeDetector()
        first = detector.check_and_record(URL, b"x")
        detector.restore(URL, first.previous_hash)
        assert detector.hash_for(URL) is None
        assert detector.check_and_record(URL, b"x").outcome == DedupOutcome.NEW

    def test_concurrent_identical_content_is_new_once(self):
        """Racing workers never both see the same content as new."""
        detector = ChangeDetector()
        outcomes = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            result = detector.check_and_record(URL, b"same body")
            with lock:
                outcomes.append(result.outcome)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count(DedupOutcome.NEW) == 1
        assert outcomes.count(DedupOutcome.DUPLICATE) == 7
        assert len(detector) == 1
