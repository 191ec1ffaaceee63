from datetime import date, datetime, timezone

import pytest

from app.services import validation


class TestNameAndEmail:
    def test_valid_name_is_trimmed(self):
        result = validation.validate_name("  Mary-Jane ", "First name")
        assert result.is_valid
        assert result.sanitized == "Mary-Jane"

    @pytest.mark.parametrize(
        ("value", "message"),
        [
            ("", "First name is required"),
            ("A", "First name must be at least 2 characters long"),
            ("R2D2", "First name can only contain letters, spaces, hyphens, and apostrophes"),
        ],
    )
    def test_invalid_names(self, value, message):
        result = validation.validate_name(value, "First name")
        assert not result.is_valid
        assert result.error == message

    def test_email_is_lowercased(self):
        result = validation.validate_email("  Jane.Doe@Example.COM ")
        assert result.is_valid
        assert result.sanitized == "jane.doe@example.com"

    def test_invalid_email(self):
        result = validation.validate_email("not-an-email")
        assert result.error == "Please enter a valid email address"


class TestUsername:
    def test_reserved_username(self):
        result = validation.validate_username("Admin")
        assert result.error == "Username is reserved and cannot be used"

    def test_consecutive_separators(self):
        result = validation.validate_username("jane..doe")
        assert not result.is_valid
        assert "consecutive" in result.error

    def test_leading_separator(self):
        result = validation.validate_username("_jane")
        assert not result.is_valid
        assert "start or end" in result.error

    def test_valid_username(self):
        assert validation.validate_username("jane.doe").sanitized == "jane.doe"


class TestPassword:
    @pytest.mark.parametrize(
        ("value", "fragment"),
        [
            ("Sh0rt!", "at least 8 characters"),
            ("NOLOWER1!", "lowercase"),
            ("noupper1!", "uppercase"),
            ("NoNumber!", "number"),
            ("NoSpecial1", "special character"),
        ],
    )
    def test_rejects_weak_passwords(self, value, fragment):
        result = validation.validate_password(value)
        assert not result.is_valid
        assert fragment in result.error

    def test_accepts_strong_password(self):
        assert validation.validate_password("Secret123!").is_valid


class TestMiscValidators:
    def test_phone_optional(self):
        assert validation.validate_phone(None).sanitized == ""
        assert validation.validate_phone("+1 (555) 123-4567").is_valid
        assert not validation.validate_phone("phone").is_valid

    def test_document_title_min_length(self):
        result = validation.validate_document_title("ab")
        assert result.error == "Document title must be at least 3 characters long"

    def test_category_name_characters(self):
        assert validation.validate_category_name("Run books_2024").is_valid
        assert not validation.validate_category_name("Bad/Name").is_valid

    def test_sanitize_string_collapses_whitespace(self):
        assert validation.sanitize_string("  Tom &\n\t Jerry's ") == "Tom & Jerry's"
        assert validation.sanitize_string("R&D <ops>") == "R&D <ops>"
        assert validation.sanitize_string("abc   def", 4) == "abc"
        assert validation.sanitize_string(None) == ""

    def test_validate_date_variants(self):
        assert validation.validate_date(None).sanitized is None
        parsed = validation.validate_date("2024-03-01T10:00:00Z").sanitized
        assert parsed == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
        from_date = validation.validate_date(date(2024, 3, 1)).sanitized
        assert from_date.tzinfo is timezone.utc
        assert validation.validate_date("nope", "Due date").error == (
            "Due date must be a valid date"
        )

    def test_validate_enum(self):
        assert validation.validate_enum("a", ["a", "b"], "kind").is_valid
        result = validation.validate_enum("c", ["a", "b"], "kind")
        assert result.error == "Invalid kind. Allowed: a, b"


class TestAreAllObjectFieldsEmpty:
    def test_all_blank(self):
        assert validation.are_all_object_fields_empty(
            {"title": "  ", "owners": [], "notes": None}
        )

    def test_one_value_present(self):
        assert not validation.are_all_object_fields_empty({"title": "x", "notes": None})

    def test_non_mapping(self):
        assert not validation.are_all_object_fields_empty(["a"])
