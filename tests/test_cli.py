"""Tests for the crawl command line."""

import logging

import pytest

from civicdata import crawl
from civicdata.crawler import ConfigError


@pytest.fixture(autouse=True)
def restore_root_logger():
    """`main` installs its own handlers on the root logger; put pytest's back."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestBuildConfig:
    """Command-line flags become a CrawlConfig."""

    def test_seed_and_domain_specs(self):
        """Seeds carry category and priority; domains carry quotas."""
        args = crawl.parse_args(
            [
                "--seed", "https://council.example.gov.uk/planning,Planning,9",
                "--seed", "https://council.example.gov.uk/",
                "--domain", "council.example.gov.uk=50",
                "--max_depth", "2",
                "--min_delay", "0.5",
                "--max_delay", "1.5",
                "--recrawl",
            ]
        )
        config = crawl.build_config(args)

        seed = config.seeds[0]
        assert (seed.url, seed.category, seed.priority) == (
            "https://council.example.gov.uk/planning",
            "planning",
            9.0,
        )
        assert config.seeds[1].category is None
        assert config.domains[0].domain == "council.example.gov.uk"
        assert config.domains[0].quota == 50
        assert config.max_depth == 2
        assert config.stealth.min_delay == 0.5
        assert config.stealth.max_delay == 1.5
        assert config.recrawl_enabled is True
        assert config.cross_session_dedup is False

    def test_flags_override_config_file(self, tmp_path):
        """Values from a YAML file are kept unless a flag overrides them."""
        path = tmp_path / "crawl.yaml"
        path.write_text(
            "seeds:\n"
            "  - url: https://council.example.gov.uk/council-meetings\n"
            "    category: meetings\n"
            "domains:\n"
            "  - council.example.gov.uk\n"
            "max_urls: 20\n"
            "concurrency: 2\n",
            encoding="utf-8",
        )
        config = crawl.build_config(crawl.parse_args(["--config", str(path), "--max_urls", "5"]))

        assert config.seeds[0].category == "meetings"
        assert config.max_urls == 5
        assert config.concurrency == 2

    def test_missing_seeds(self):
        """A run needs at least one seed."""
        with pytest.raises(ConfigError):
            crawl.build_config(crawl.parse_args([]))

    @pytest.mark.parametrize(
        "argv",
        [
            ["--seed", "https://council.example.gov.uk/,general,high"],
            ["--seed", "https://council.example.gov.uk/", "--domain", "council.example.gov.uk=lots"],
        ],
    )
    def test_malformed_specs(self, argv):
        """Non-numeric priorities and quotas are config errors."""
        with pytest.raises(ConfigError):
            crawl.build_config(crawl.parse_args(argv))


class FakePipeline:
    """Stands in for CrawlPipeline; `outcome` is returned or raised by run()."""

    outcome = None

    def __init__(self, config, *, output_dir):
        self.config = config
        self.output_dir = output_dir

    def run(self):
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


class TestMain:
    """Exit codes."""

    def test_config_error_exits_2(self, tmp_path):
        """Missing seeds is reported as a configuration error."""
        assert crawl.main(["--output_dir", str(tmp_path)]) == 2
        assert (tmp_path / "logs" / "crawl.log").exists()

    def test_invalid_yaml_exits_2(self, tmp_path):
        """An unparsable config file is a configuration error."""
        path = tmp_path / "broken.yaml"
        path.write_text("seeds: [unclosed\n", encoding="utf-8")
        assert crawl.main(["--config", str(path), "--output_dir", str(tmp_path)]) == 2

    def test_successful_run_prints_summary(self, tmp_path, monkeypatch, capsys):
        """A finished crawl exits 0 and prints its summary."""
        FakePipeline.outcome = {
            "session_id": "abc",
            "paths": {"output_dir": str(tmp_path)},
            "report": {
                "summary": {"status": "completed", "processed_urls": 4},
                "recommendations": ["Duplicate rate above 30% - consider lengthening re-crawl intervals"],
            },
        }
        monkeypatch.setattr(crawl, "CrawlPipeline", FakePipeline)

        code = crawl.main(["--seed", "https://council.example.gov.uk/", "--output_dir", str(tmp_path)])
        out = capsys.readouterr().out

        assert code == 0
        assert "session: abc" in out
        assert "processed_urls: 4" in out
        assert "- Duplicate rate above 30%" in out

    @pytest.mark.parametrize(("outcome", "code"), [(KeyboardInterrupt(), 130), (RuntimeError("boom"), 1)])
    def test_run_errors(self, tmp_path, monkeypatch, outcome, code):
        """Interrupts exit 130; other crashes exit 1."""
        FakePipeline.outcome = outcome
        monkeypatch.setattr(crawl, "CrawlPipeline", FakePipeline)
        assert crawl.main(["--seed", "https://council.example.gov.uk/", "--output_dir", str(tmp_path)]) == code
