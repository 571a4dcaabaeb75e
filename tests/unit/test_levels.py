"""Level computation tests. MUST match the web client's level table."""

from reflectio.levels import LEVELS, compute_level


class TestLevelComputation:
    def test_level_1_at_zero(self):
        result = compute_level(0)
        assert result["level"] == 1
        assert result["title"] == "Beginner"

    def test_boundary_99_is_still_level_1(self):
        assert compute_level(99)["level"] == 1

    def test_level_2_at_100(self):
        result = compute_level(100)
        assert result["level"] == 2
        assert result["title"] == "Reflective"
        assert result["points_into_level"] == 0
        assert result["points_for_level"] == 400

    def test_trusted_threshold_level(self):
        result = compute_level(500)
        assert result["level"] == 3
        assert result["title"] == "Thinker"

    def test_progress(self):
        result = compute_level(1000)  # 500 into level 3, which spans 1000
        assert result["points_into_level"] == 500
        assert result["progress"] == 0.5
        assert result["next_level"] == 4
        assert result["next_title"] == "Philosopher"

    def test_top_level(self):
        result = compute_level(1_000_000)
        assert result["level"] == LEVELS[-1]["level"]
        assert result["next_level"] == result["level"]
        assert result["progress"] == 1.0

    def test_negative_score_clamped(self):
        result = compute_level(-50)
        assert result["level"] == 1
        assert result["quality_score"] == 0

    def test_thresholds_ascending(self):
        thresholds = [entry["min_quality_score"] for entry in LEVELS]
        assert thresholds == sorted(thresholds)
        assert [entry["level"] for entry in LEVELS] == list(range(1, len(LEVELS) + 1))
