"""Unit tests for report assembly."""

from unittest.mock import MagicMock

from bggtop.report.report import REPORT_HEADER, format_report, format_row, make_report
from bggtop.store.models import Game


class TestMakeReport:
    """Tests for make_report."""

    def test_empty_while_unstable(self) -> None:
        """No ranking is produced while any game is unstable."""
        store = MagicMock()
        store.count_unstable_games.return_value = 2

        assert make_report(store) == []
        store.get_all_games.assert_not_called()

    def test_all_games_once_stable(self) -> None:
        """All games are returned in store order once stable."""
        games = [
            Game(id=2, name="B", rating=8.1, stable=True),
            Game(id=1, name="A", rating=7.2, stable=True),
        ]
        store = MagicMock()
        store.count_unstable_games.return_value = 0
        store.get_all_games.return_value = games

        assert make_report(store) == games


class TestFormatReport:
    """Tests for report formatting."""

    def test_row(self) -> None:
        """Rows carry rating, votes and listing provenance."""
        game = Game(
            id=13,
            name="Catan",
            rating=7.256,
            votes=42,
            stable=True,
            bgg_num_votes=100000,
            bgg_geek_rating=7.0,
            bgg_avg_rating=7.1,
        )

        assert format_row(game) == ("13", "Catan", "7.26", "42", "7.000", "7.10", "100000")

    def test_header_first(self) -> None:
        """The header line precedes the rows."""
        text = format_report([Game(id=1, name="A", stable=True)])
        lines = text.splitlines()

        assert lines[0] == "\t".join(REPORT_HEADER)
        assert lines[1].startswith("1\tA\t")
