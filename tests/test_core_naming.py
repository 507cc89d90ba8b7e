"""Tests for player naming."""

import re

import pytest

from roonmpris.core.naming import player_name, sanitize_name, unique_player_name

_BUS_ELEMENT = re.compile(r"^[A-Za-z_-][A-Za-z0-9_-]*$")


class TestSanitizeName:
    """Test sanitize_name."""

    def test_spaces_become_underscores(self) -> None:
        """Test the common case."""
        assert sanitize_name("Living Room") == "Living_Room"

    def test_keeps_allowed_characters(self) -> None:
        """Test letters, digits, underscore and hyphen pass through."""
        assert sanitize_name("Zone_A-1") == "Zone_A-1"

    def test_leading_digit_is_prefixed(self) -> None:
        """Test names starting with a digit get the zone_ prefix."""
        assert sanitize_name("2nd Floor") == "zone_2nd_Floor"

    def test_empty_name_falls_back(self) -> None:
        """Test the fallback for an empty name."""
        assert sanitize_name("") == "unnamed_zone"

    def test_non_ascii_replaced_per_character(self) -> None:
        """Test each disallowed character maps to one underscore."""
        assert sanitize_name("Küche") == "K_che"
        assert sanitize_name("!!!") == "___"

    @pytest.mark.parametrize(
        "display_name",
        ["Living Room", "", "9", "Bad.Name/Here", "🎵 Music", "a b c", "Office (Mac)"],
    )
    def test_result_is_valid_bus_name_element(self, display_name: str) -> None:
        """Test every result is usable as a bus-name element."""
        assert _BUS_ELEMENT.match(sanitize_name(display_name))


class TestPlayerName:
    """Test player_name and unique_player_name."""

    def test_prefix(self) -> None:
        """Test the roon_ namespace prefix."""
        assert player_name("Living Room") == "roon_Living_Room"

    def test_unique_without_collision(self) -> None:
        """Test no suffix when the name is free."""
        assert unique_player_name("Kitchen", {"roon_Office"}) == "roon_Kitchen"

    def test_unique_appends_suffix(self) -> None:
        """Test names differing only in disallowed characters get a suffix."""
        taken = {"roon_Living_Room"}
        assert unique_player_name("Living-Room", taken) == "roon_Living-Room"
        assert unique_player_name("Living.Room", taken) == "roon_Living_Room_2"

    def test_unique_skips_taken_suffixes(self) -> None:
        """Test the suffix counts up past taken names."""
        taken = {"roon_Den", "roon_Den_2"}
        assert unique_player_name("Den", taken) == "roon_Den_3"
