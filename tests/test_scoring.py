"""Tests for scores and grades."""

import pytest

from bankgrade.core.scoring import explanation, grade, score, summarize
from bankgrade.core.taxonomy import empty_entry


def entry_with(*values):
    """Entry whose first metrics hold ``values`` in taxonomy order."""
    entry = empty_entry()
    slots = [(category, metric) for category, metrics in entry.items() for metric in metrics]
    for (category, metric), value in zip(slots, values):
        entry[category][metric] = value
    return entry


class TestScore:
    """Test score computation."""

    def test_only_booleans_count(self):
        """Strings and placeholders are ignored."""
        entry = {
            "HTTPS": {"Upgrade HTTP": True, "Secure Redirection Chain": True, "HSTS Preload": False},
            "TLS": {"Strong TLS Supported": True, "Weak TLS Disabled": False},
            "Miscellaneous Headers": {"Server Header": "nginx", "X-Powered-By Header": ""},
        }
        assert score(entry) == 60
        assert grade(score(entry)) == "B"

    def test_all_passed(self):
        """Five passes out of five is a perfect score."""
        entry = entry_with(True, True, True, True, True)
        assert score(entry) == 100
        assert grade(100) == "Z"

    def test_no_booleans(self):
        """A target nobody reported on scores zero."""
        assert score(empty_entry()) == 0
        assert grade(0) == "E"

    def test_rounds_half_up(self):
        """1 of 8 is 12.5%, which rounds to 13."""
        entry = entry_with(True, *([False] * 7))
        assert score(entry) == 13

    def test_two_thirds(self):
        """2 of 3 is 66.67%, which rounds to 67."""
        assert score(entry_with(True, True, False)) == 67


class TestGrade:
    """Test the score to letter mapping."""

    @pytest.mark.parametrize("value,letter", [
        (0, "E"), (19, "E"),
        (20, "D"), (39, "D"),
        (40, "C"), (59, "C"),
        (60, "B"), (79, "B"),
        (80, "A"), (99, "A"),
        (100, "Z"),
    ])
    def test_boundaries(self, value, letter):
        """Each band spans twenty points; only a perfect score is Z."""
        assert grade(value) == letter

    @pytest.mark.parametrize("value", [-1, 101])
    def test_out_of_range(self, value):
        with pytest.raises(ValueError):
            grade(value)

    def test_explanation(self):
        assert "passed every test" in explanation("Z")


class TestSummarize:
    """Test ranking of a whole snapshot."""

    def test_best_first_then_by_name(self):
        snapshot = {
            "gb": {"Bank B": entry_with(True, False), "Bank C": entry_with(True)},
            "fr": {"Bank A": entry_with(True, False)},
        }

        rows = summarize(snapshot)

        assert [(row["name"], row["score"], row["grade"]) for row in rows] == [
            ("Bank C", 100, "Z"),
            ("Bank A", 50, "C"),
            ("Bank B", 50, "C"),
        ]
        assert rows[1]["country"] == "fr"
