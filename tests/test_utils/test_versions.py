"""Tests for version ordering and template helpers."""

from lxcspawn.utils.templates import merge_dicts
from lxcspawn.utils.versions import version_key


def test_numeric_components_compare_as_numbers():
    versions = ["12.10-1", "12.2-1", "12.7-1", "9.13-1"]

    assert sorted(versions, key=version_key) == ["9.13-1", "12.2-1", "12.7-1", "12.10-1"]


def test_release_suffix_breaks_ties():
    assert max(["12.7-1", "12.7-2"], key=version_key) == "12.7-2"


def test_merge_dicts_is_deep():
    base = {"general": {"log_level": "INFO", "state_dir": "/var/lib/lxcspawn"}, "x": 1}

    merged = merge_dicts(base, {"general": {"log_level": "DEBUG"}})

    assert merged == {"general": {"log_level": "DEBUG", "state_dir": "/var/lib/lxcspawn"}, "x": 1}
    assert base["general"]["log_level"] == "INFO"
