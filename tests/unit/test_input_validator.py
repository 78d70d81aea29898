"""Unit tests for InputValidator."""

import pytest

from brightbuddy.core.validation.input_validator import InputValidator
from brightbuddy.modules.shared.exceptions import ValidationError


@pytest.mark.unit
class TestIntegerValidation:
    @pytest.mark.parametrize("value, expected", [(5, 5), ("7", 7), (3.0, 3)])
    def test_accepts_whole_numbers(self, value, expected):
        assert InputValidator.validate_integer(value, "n") == expected

    @pytest.mark.parametrize("value", [None, True, 2.5, "abc"])
    def test_rejects_non_integers(self, value):
        with pytest.raises(ValidationError):
            InputValidator.validate_integer(value, "n")

    def test_bounds(self):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_integer(11, "n", min_value=0, max_value=10)

        assert exc_info.value.field == "n"

    def test_score(self):
        assert InputValidator.validate_score(None) is None
        assert InputValidator.validate_score(100) == 100
        with pytest.raises(ValidationError):
            InputValidator.validate_score(-1)

    def test_time_spent_defaults_to_zero(self):
        assert InputValidator.validate_time_spent(None) == 0
        with pytest.raises(ValidationError):
            InputValidator.validate_time_spent(1441)

    def test_limit(self):
        assert InputValidator.validate_limit(None, 50) == 50
        assert InputValidator.validate_limit(1000, 50) == 1000
        with pytest.raises(ValidationError):
            InputValidator.validate_limit(0, 50)


@pytest.mark.unit
class TestIdentifierValidation:
    @pytest.mark.parametrize("value", ["u1", "user.name@example.com", "kid-42_a"])
    def test_valid_ids(self, value):
        assert InputValidator.validate_user_id(value) == value

    def test_whitespace_is_stripped(self):
        assert InputValidator.validate_activity_id("  math_001 ") == "math_001"

    @pytest.mark.parametrize("value", [None, 42, "", "   ", "a:b", "two words", "x" * 129])
    def test_invalid_ids(self, value):
        with pytest.raises(ValidationError):
            InputValidator.validate_user_id(value)


@pytest.mark.unit
class TestChoiceValidation:
    def test_period_is_case_insensitive(self):
        assert InputValidator.validate_period("WEEK") == "week"

    def test_unknown_period(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_period("year")
