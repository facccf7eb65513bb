"""Tests for size resolution."""

import pytest

from backingfiles.core.exceptions import UnsupportedSizeError
from backingfiles.core.size import (
    available_space,
    calc_size,
    dehumanize,
    is_percent,
    resolve_size,
    validate_size_spec,
)

from fakes import FakeDiskTools


@pytest.mark.parametrize(
    "value, expected",
    [
        ("10K", 10 * 1024),
        ("10KB", 10 * 1024),
        ("1M", 1024**2),
        ("512MB", 512 * 1024**2),
        ("2G", 2 * 1024**3),
        ("32GB", 32 * 1024**3),
    ],
)
def test_dehumanize_uses_binary_units(value, expected):
    assert dehumanize(value) == expected


@pytest.mark.parametrize("value", ["abc", "10", "10T", "1.5G", "10gb", "G", "-5G", "10GBs", ""])
def test_dehumanize_rejects_unsupported_values(value):
    with pytest.raises(UnsupportedSizeError, match="not supported"):
        dehumanize(value)


def test_is_percent():
    assert is_percent("50%")
    assert is_percent("0%")
    assert not is_percent("50")
    assert not is_percent("50G")
    assert not is_percent("%")


@pytest.mark.parametrize(
    "spec, expected",
    [
        ("10K", 10),
        ("1M", 1024),
        ("1MB", 1024),
        ("3G", 3 * 1024 * 1024),
    ],
)
def test_absolute_sizes_resolve_to_kilobytes(spec, expected):
    assert resolve_size(spec, 10 * 1024 * 1024) == expected


def test_percentages_use_floor_division():
    assert resolve_size("50%", 89760) == 44880
    assert resolve_size("50%", 999) == 499
    assert resolve_size("33%", 1000) == 330
    assert resolve_size("0%", 1000) == 0
    assert resolve_size("100%", 1000) == 1000


def test_oversized_requests_are_clamped():
    assert resolve_size("10GB", 1000) == 1000
    assert resolve_size("150%", 1000) == 1000


def test_zero_resolves_to_zero():
    assert resolve_size("0", 1000) == 0


def test_negative_available_space_resolves_to_zero():
    assert resolve_size("50%", -1) == 0
    assert resolve_size("10G", -5000) == 0


def test_resolved_size_never_exceeds_available():
    for spec in ["1K", "1M", "1G", "1%", "50%", "100%", "0"]:
        for available in [0, 1, 1023, 1024, 100000]:
            assert 0 <= resolve_size(spec, available) <= available


def test_unsupported_spec_is_fatal_even_without_space():
    with pytest.raises(UnsupportedSizeError):
        resolve_size("abc", 1000)
    with pytest.raises(UnsupportedSizeError):
        resolve_size("abc", -1)


def test_validate_size_spec():
    for spec in ["0", "0%", "100%", "5K", "5KB", "5M", "5G"]:
        validate_size_spec(spec)
    with pytest.raises(UnsupportedSizeError):
        validate_size_spec("five gigs")


def test_available_space_subtracts_reserve(tmp_path):
    tools = FakeDiskTools(free_kb=100000)
    assert available_space(tmp_path, tools) == 100000 - 10 * 1024
    assert available_space(tmp_path, tools, reserve_kb=0) == 100000


def test_available_space_may_be_negative(tmp_path):
    tools = FakeDiskTools(free_kb=5000)
    assert available_space(tmp_path, tools) == 5000 - 10240


def test_calc_size_against_mountpoint(tmp_path):
    tools = FakeDiskTools(free_kb=100000)
    assert calc_size("50%", tmp_path, tools) == 44880
    assert calc_size("10GB", tmp_path, tools) == 89760
    assert calc_size("50%", tmp_path, FakeDiskTools(free_kb=5000)) == 0
