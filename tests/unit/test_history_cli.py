"""
Unit tests for CLI argument handling (no Spark session, no database).
"""
import pytest

from review_history.cli.history_cli import build_parser, main


@pytest.mark.unit
class TestParser:
    """Tests for build_parser"""

    def test_run_arguments(self):
        args = build_parser().parse_args([
            "run", "--mode", "incremental", "--input", "reviews.json",
            "--simulate", "--simulate-seed", "7", "--dry-run",
        ])

        assert args.command == "run"
        assert args.mode == "incremental"
        assert args.format == "json"
        assert args.simulate is True
        assert args.simulate_seed == 7
        assert args.dry_run is True
        assert args.full_refresh is False
        assert args.db_password is None

    def test_rejects_unknown_mode(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run", "--mode", "snapshot", "--input", "reviews.json"])

    def test_rejects_unknown_format(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run", "--mode", "seed", "--input", "r.xml", "--format", "xml"])


@pytest.mark.unit
def test_check_without_password_fails_cleanly(monkeypatch, tmp_path):
    monkeypatch.delenv("DB_PASSWORD", raising=False)

    assert main(["check", "--config", str(tmp_path / "absent.yaml")]) == 1


@pytest.mark.unit
def test_repair_without_password_fails_cleanly(monkeypatch, tmp_path):
    monkeypatch.delenv("DB_PASSWORD", raising=False)

    assert main(["repair", "--config", str(tmp_path / "absent.yaml")]) == 1
