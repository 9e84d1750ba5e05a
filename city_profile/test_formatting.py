from city_profile.formatting import format_grouped, format_population
from city_profile.models.names import NameRankingEntry


def test_format_grouped_uses_dot_separator():
    assert format_grouped(1234567) == "1.234.567"
    assert format_grouped(999) == "999"
    assert format_grouped(0) == "0"


def test_format_population_adds_suffix():
    assert format_population("11451999") == "11.451.999 habitantes"


def test_format_population_keeps_non_numeric_values():
    assert format_population("...") == "..."


def test_name_entry_frequency_display():
    entry = NameRankingEntry(name="maria", frequency=1234567, rank=1)
    assert entry.name == "MARIA"
    assert entry.frequency_display == "1.234.567"
