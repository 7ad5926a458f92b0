import pytest

from campaigns.services.statistics import calculate_significance, conversion_rate


def test_conversion_rate_is_a_percentage():
    assert conversion_rate(3, 8) == 37.5
    assert conversion_rate(0, 10) == 0.0


def test_conversion_rate_without_visitors():
    assert conversion_rate(0, 0) == 0.0


def test_clear_winner_is_significant():
    result = calculate_significance(100, 1000, 150, 1000)

    assert result["conversion_rate_control"] == pytest.approx(0.10)
    assert result["conversion_rate_variant"] == pytest.approx(0.15)
    assert result["improvement_percent"] == pytest.approx(50.0)
    assert result["z_score"] > 1.96
    assert result["p_value"] < 0.05
    assert result["is_significant"] is True


def test_identical_arms_are_not_significant():
    result = calculate_significance(50, 500, 50, 500)

    assert result["z_score"] == 0.0
    assert result["p_value"] == pytest.approx(1.0)
    assert result["is_significant"] is False


def test_confidence_level_changes_threshold():
    # z is roughly 1.8: significant at 90%, not at 95%
    loose = calculate_significance(100, 1000, 126, 1000, confidence_level=90)
    strict = calculate_significance(100, 1000, 126, 1000, confidence_level=95)

    assert loose["is_significant"] is True
    assert strict["is_significant"] is False


def test_no_conversions_anywhere():
    result = calculate_significance(0, 100, 0, 100)
    assert result["z_score"] == 0.0
    assert result["improvement_percent"] == 0.0


def test_empty_arm_has_no_result():
    assert calculate_significance(0, 0, 5, 100) is None
