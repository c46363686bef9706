"""
Unit tests for validators.
"""

import pytest

from localvol.cli.lib.validators import validate_name


class TestValidateName:
    """Tests for validate_name function."""

    @pytest.mark.unit
    def test_valid_name(self):
        """Test valid names."""
        validate_name("local-thin")
        validate_name("vg-a")
        validate_name("pvc-1.data")
        validate_name("a")
        validate_name("a" * 253)

    @pytest.mark.unit
    def test_empty_name(self):
        """Test empty name raises error."""
        with pytest.raises(ValueError, match="cannot be empty"):
            validate_name("")

    @pytest.mark.unit
    def test_name_too_long(self):
        """Test name too long raises error."""
        with pytest.raises(ValueError, match="between 1 and 253"):
            validate_name("a" * 254)

    @pytest.mark.unit
    def test_name_invalid_chars(self):
        """Test name with invalid characters raises error."""
        with pytest.raises(ValueError):
            validate_name("Local")  # upper case
        with pytest.raises(ValueError):
            validate_name("local_thin")  # underscore
        with pytest.raises(ValueError):
            validate_name("-local")  # starts with hyphen
        with pytest.raises(ValueError):
            validate_name("local-")  # ends with hyphen
