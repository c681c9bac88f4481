"""
Tests for the command-line interface (add / show / recommend / merchants).
"""

import csv
import shutil
from pathlib import Path

import pytest

import cli

REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def paths(tmp_path):
    catalog = tmp_path / "cards.json"
    shutil.copy(REPO_ROOT / "data" / "cards.json", catalog)
    return ["--catalog", str(catalog), "--log", str(tmp_path / "purchases.csv")], tmp_path / "purchases.csv"


class TestAddCommand:
    def test_add_normalizes_and_writes_row(self, paths, capsys):
        global_args, log = paths

        cli.main(global_args + ["add", "--date", "2026-03-02", "--amount", "120", "--card", "hsbc-red",
                                "--category", "Restaurant", "--merchant", "Sushiro"])

        with open(log, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 1
        assert rows[0]["card_id"] == "hsbc-red"
        assert rows[0]["category"] == "dining"
        assert rows[0]["merchant_id"] == "sushiro"
        assert rows[0]["is_overseas"] == "false"
        assert "Purchase added" in capsys.readouterr().out

    def test_add_rejects_unknown_card(self, paths, capsys):
        global_args, log = paths
        with pytest.raises(SystemExit):
            cli.main(global_args + ["add", "--date", "2026-03-02", "--amount", "10", "--card", "nope",
                                    "--category", "dining"])
        assert "Invalid card" in capsys.readouterr().out
        assert not log.exists()

    def test_add_rejects_bad_amount(self, paths):
        global_args, _ = paths
        with pytest.raises(SystemExit):
            cli.main(global_args + ["add", "--date", "2026-03-02", "--amount", "-5", "--card", "hsbc-red",
                                    "--category", "dining"])

    @pytest.mark.parametrize("amount", ["nan", "Infinity"])
    def test_add_rejects_non_finite_amount(self, paths, amount, capsys):
        global_args, log = paths
        with pytest.raises(SystemExit):
            cli.main(global_args + ["add", "--date", "2026-03-02", "--amount", amount, "--card", "hsbc-red",
                                    "--category", "dining"])
        assert "finite" in capsys.readouterr().out
        assert not log.exists()

    def test_add_rejects_bad_date(self, paths):
        global_args, _ = paths
        with pytest.raises(SystemExit):
            cli.main(global_args + ["add", "--date", "03/02/2026", "--amount", "5", "--card", "hsbc-red",
                                    "--category", "dining"])


class TestShowCommand:
    def test_show_reports_cap_usage(self, paths, capsys):
        global_args, _ = paths
        cli.main(global_args + ["add", "--date", "2026-03-02", "--amount", "500", "--card", "hsbc-red",
                                "--category", "dining", "--merchant", "Sushiro"])
        capsys.readouterr()

        cli.main(global_args + ["show", "--month", "2026-03"])

        out = capsys.readouterr().out
        assert "hsbc-red / designated-merchants: 40.00 cash" in out
        assert "remaining 60.00" in out

    def test_show_replays_with_environment_config(self, paths, capsys, monkeypatch):
        global_args, _ = paths
        cli.main(global_args + ["add", "--date", "2026-03-02", "--amount", "100", "--card", "citi-cash-back",
                                "--category", "dining"])
        capsys.readouterr()

        cli.main(global_args + ["show", "--month", "2026-03"])
        stacked = capsys.readouterr().out
        assert "citi-cash-back / base-rebate: 1.00 cash" in stacked

        monkeypatch.setenv("REWARD_ALLOW_STACKING", "false")
        cli.main(global_args + ["show", "--month", "2026-03"])
        single = capsys.readouterr().out
        assert "citi-cash-back / local-dining-bonus: 1.00 cash" in single
        assert "base-rebate" not in single

    def test_show_without_purchases(self, paths, capsys):
        global_args, _ = paths
        cli.main(global_args + ["show", "--month", "2026-03"])
        assert "No purchases logged." in capsys.readouterr().out


class TestRecommendCommand:
    def test_recommend_ranks_cards(self, paths, capsys):
        global_args, _ = paths

        cli.main(global_args + ["recommend", "--date", "2026-03-02", "--amount", "100",
                                "--category", "dining", "--merchant", "Sushiro"])

        out = capsys.readouterr().out
        assert "Recommended Card: HSBC Red Credit Card" in out
        assert "Cards evaluated: 4 (3 eligible)" in out
        assert "Mox Credit" not in out

    def test_recommend_uses_logged_cap_usage(self, paths, capsys):
        global_args, _ = paths
        cli.main(global_args + ["add", "--date", "2026-03-01", "--amount", "2000", "--card", "hsbc-red",
                                "--category", "dining", "--merchant", "Sushiro"])
        capsys.readouterr()

        cli.main(global_args + ["recommend", "--date", "2026-03-02", "--amount", "100",
                                "--category", "dining", "--merchant", "Sushiro"])

        out = capsys.readouterr().out
        assert "Recommended Card: Citi Cash Back Card" in out

    def test_recommend_with_preference(self, paths, capsys):
        global_args, _ = paths

        cli.main(global_args + ["recommend", "--date", "2026-03-02", "--amount", "100",
                                "--category", "dining", "--pref", "miles"])

        assert "Recommended Card: Cathay Visa Signature" in capsys.readouterr().out

    def test_recommend_rejects_unknown_preference(self, paths):
        global_args, _ = paths
        with pytest.raises(SystemExit):
            cli.main(global_args + ["recommend", "--amount", "100", "--category", "dining", "--pref", "gold"])


class TestMerchantsCommand:
    def test_lists_merchants(self, paths, capsys):
        global_args, _ = paths
        cli.main(global_args + ["merchants"])
        out = capsys.readouterr().out
        assert "sushiro (Sushiro)" in out
