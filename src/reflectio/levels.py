"""Reputation levels and computation.

These values MUST match the web client's level table. Levels are
numbered from 1 so they line up with ``profiles.current_level``.
"""

from __future__ import annotations

LEVELS: list[dict] = [
    {"level": 1, "title": "Beginner", "min_quality_score": 0},
    {"level": 2, "title": "Reflective", "min_quality_score": 100},
    {"level": 3, "title": "Thinker", "min_quality_score": 500},
    {"level": 4, "title": "Philosopher", "min_quality_score": 1500},
    {"level": 5, "title": "Sage", "min_quality_score": 3000},
]


def compute_level(quality_score: int) -> dict:
    """Compute level info from a quality score.

    Negative scores count as zero. At the top level the next level is the
    top level itself and progress is reported as complete.
    """
    score = max(0, quality_score)
    index = 0
    for i, entry in enumerate(LEVELS):
        if score >= entry["min_quality_score"]:
            index = i

    current = LEVELS[index]
    next_level = LEVELS[min(index + 1, len(LEVELS) - 1)]

    points_into_level = score - current["min_quality_score"]
    points_for_level = next_level["min_quality_score"] - current["min_quality_score"]

    if points_for_level == 0:
        progress = 1.0
    else:
        progress = round(points_into_level / points_for_level, 4)

    return {
        "level": current["level"],
        "title": current["title"],
        "quality_score": score,
        "points_into_level": points_into_level,
        "points_for_level": points_for_level,
        "progress": progress,
        "next_level": next_level["level"],
        "next_title": next_level["title"],
    }
