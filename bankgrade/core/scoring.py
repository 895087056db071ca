"""Score and grade derived from a report entry.

This is the contract the website generator relies on: only boolean metrics
count, string-valued metrics (headers, empty placeholders) are ignored.
"""

import math
from typing import Any, Dict, List, Mapping

GRADES = ["E", "D", "C", "B", "A", "Z"]

EXPLANATIONS = {
    "Z": "has excellent website security. They have passed every test.",
    "A": "has very good security. They have passed almost every test.",
    "B": "has above average security. They have passed most of the tests.",
    "C": "has average security. They have failed around half of the tests.",
    "D": "has below average security. They have failed most of the tests.",
    "E": "has very bad security. They have failed almost every one of the tests.",
}


def score(entry: Mapping[str, Mapping[str, Any]]) -> int:
    """Percentage of boolean metrics that passed, rounded half up (0 if none)."""
    total = 0
    passed = 0
    for metrics in entry.values():
        for value in metrics.values():
            if isinstance(value, bool):
                total += 1
                passed += value

    if not total:
        return 0
    return math.floor(100 * passed / total + 0.5)


def grade(value: int) -> str:
    """Letter grade for a score between 0 and 100."""
    if not 0 <= value <= 100:
        raise ValueError(f"Score out of range: {value}")
    return GRADES[value // 20]


def explanation(letter: str) -> str:
    return EXPLANATIONS[letter]


def summarize(snapshot: Mapping[str, Mapping[str, Mapping]]) -> List[Dict[str, Any]]:
    """Score every target of a snapshot, best first, then by name."""
    rows = []
    for country, targets in snapshot.items():
        for name, entry in targets.items():
            points = score(entry)
            rows.append({
                "country": country,
                "name": name,
                "score": points,
                "grade": grade(points),
            })
    rows.sort(key=lambda row: (-row["score"], row["name"]))
    return rows
