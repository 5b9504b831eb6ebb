import pytest

from wingmatch.utils.errors import ValidationError
from wingmatch.utils.validators import (
    require_distinct,
    require_id,
    validate_note,
    validate_page,
    validate_phone_number,
)


def test_require_id():
    assert require_id(" abc ", "user_id") == "abc"

    with pytest.raises(ValidationError) as exc_info:
        require_id("  ", "user_id")
    assert exc_info.value.details == {"field": "user_id"}

    with pytest.raises(ValidationError):
        require_id(None, "user_id")


def test_require_distinct():
    require_distinct("a", "b", "same")
    with pytest.raises(ValidationError, match="same"):
        require_distinct("a", "a", "same")


@pytest.mark.parametrize("phone", ["+15550001234", "+6281234567890", " +447911123456 "])
def test_validate_phone_number_valid(phone):
    assert validate_phone_number(phone) == phone.strip()


@pytest.mark.parametrize("phone", ["", None, "15550001234", "+05550001234", "+1 555 000 1234", "+12"])
def test_validate_phone_number_invalid(phone):
    with pytest.raises(ValidationError):
        validate_phone_number(phone)


def test_validate_note():
    assert validate_note(None) is None
    assert validate_note("   ") is None
    assert validate_note(" loves hiking ") == "loves hiking"

    with pytest.raises(ValidationError):
        validate_note("x" * 501)


def test_validate_page():
    validate_page(20, 0)
    validate_page(100, 40)

    with pytest.raises(ValidationError):
        validate_page(0, 0)
    with pytest.raises(ValidationError):
        validate_page(101, 0)
    with pytest.raises(ValidationError):
        validate_page(20, -1)
