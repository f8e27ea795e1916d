"""Tests for the JSONL record store and session artifacts."""

import json
from pathlib import Path

from civicdata.crawler.analysis import ContentAnalyzer
from civicdata.crawler.storage import JsonlStorage, record_id
from civicdata.crawler.types import CrawlStage, ErrorRecord, ExtractedRecord, PersistRecord, QualityScore

from conftest import BASE, PLANNING_HTML, parsed_page


URL = f"{BASE}/planning/weekly-list"


def make_record(content_hash="abc123", url=URL):
    page = parsed_page(url, PLANNING_HTML)
    return PersistRecord(
        url=url,
        final_url=url,
        title=page.title,
        category="planning",
        content_hash=content_hash,
        revisit=False,
        analysis=ContentAnalyzer().analyze(page),
        quality=QualityScore(80, 100, 50, 100, 100),
        quality_tier="excellent",
        extracted=ExtractedRecord(url=url, tables=[], links=[f"{BASE}/a"]),
        crawl_metadata={"depth": 0},
    )


class TestRecords:
    """Appending and looking up records."""

    def test_layout_is_created(self, tmp_path):
        """The output tree exists as soon as storage is opened."""
        storage = JsonlStorage(tmp_path / "out")
        for key in ("records", "visited_hashes", "report"):
            assert (tmp_path / "out") in Path(storage.paths[key]).parents
        assert storage.checkpoints_dir.is_dir()
        assert storage.logs_dir.is_dir()

    def test_persist_appends_json_line(self, tmp_path):
        """Each record is one JSON line carrying its id."""
        storage = JsonlStorage(tmp_path)
        record = make_record()
        rid = storage.persist(record)

        lines = storage.records_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        payload = json.loads(lines[0])
        assert payload["id"] == rid == record_id(record)
        assert payload["classification"] == "planning"
        assert payload["quality"]["overall"] == record.quality.overall
        assert payload["extracted"]["discovered_link_count"] == 1
        assert storage.exists_by_hash("abc123")
        assert not storage.exists_by_hash("other")
        assert storage.record_count() == 1

    def test_existing_records_are_loaded(self, tmp_path):
        """Reopening the store knows hashes persisted earlier."""
        JsonlStorage(tmp_path).persist(make_record("h1"))
        with (tmp_path / "records" / "records.jsonl").open("a", encoding="utf-8") as handle:
            handle.write("not json\n\n")

        reopened = JsonlStorage(tmp_path)
        assert reopened.exists_by_hash("h1")
        assert reopened.record_count() == 1

    def test_errors_are_appended(self, tmp_path):
        """Error rows go to their own JSONL file."""
        storage = JsonlStorage(tmp_path)
        storage.save_error(ErrorRecord(stage=CrawlStage.FETCH, url=URL, message="HTTP status 500", status_code=500))
        payload = json.loads(storage.errors_path.read_text(encoding="utf-8"))
        assert payload["stage"] == "fetch"
        assert payload["status_code"] == 500


class TestArtifacts:
    """Checkpoints, reports and visited hashes."""

    def test_checkpoint_writes_latest(self, tmp_path):
        """Each checkpoint also refreshes latest.json and leaves no temp files."""
        storage = JsonlStorage(tmp_path)
        path = storage.save_checkpoint({"processed": 5}, label="000005")
        storage.save_checkpoint({"processed": 10}, label="000010")

        assert path.name == "checkpoint-000005.json"
        assert json.loads(path.read_text(encoding="utf-8")) == {"processed": 5}
        assert json.loads((storage.checkpoints_dir / "latest.json").read_text(encoding="utf-8")) == {"processed": 10}
        assert not list(storage.checkpoints_dir.glob("*.tmp"))

    def test_report_and_config(self, tmp_path, make_config):
        """The report and the effective config are stored as JSON."""
        storage = JsonlStorage(tmp_path)
        storage.save_crawl_config(make_config())
        storage.save_report({"summary": {"processed_urls": 3}})

        config = json.loads(storage.crawl_config_path.read_text(encoding="utf-8"))
        assert config["max_retries"] == 3
        assert json.loads(storage.report_path.read_text(encoding="utf-8"))["summary"]["processed_urls"] == 3

    def test_visited_hashes_round_trip(self, tmp_path):
        """Visited hashes written by one session are read by the next."""
        storage = JsonlStorage(tmp_path)
        assert storage.load_visited_hashes() == {}
        storage.save_visited_hashes({URL: "h1"})
        assert JsonlStorage(tmp_path).load_visited_hashes() == {URL: "h1"}

    def test_unreadable_visited_hashes(self, tmp_path):
        """A corrupt manifest is ignored rather than failing the crawl."""
        storage = JsonlStorage(tmp_path)
        storage.visited_hashes_path.write_text("{broken", encoding="utf-8")
        assert storage.load_visited_hashes() == {}
