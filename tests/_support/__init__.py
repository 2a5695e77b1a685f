"""
Test support utilities for chat-archive tests.

Fakes for the stores and the chat transport live in :mod:`fakes`; this
module holds assertion helpers that don't fit as pytest fixtures.
"""

from __future__ import annotations


def assert_dict_subset(actual: dict, expected: dict, path: str = "") -> None:
    """
    Assert that expected is a subset of actual (recursive).

    Useful for checking generated request bodies without pinning every key.
    """
    for key, expected_value in expected.items():
        current_path = f"{path}.{key}" if path else key

        assert key in actual, f"Missing key at {current_path}"
        actual_value = actual[key]

        if isinstance(expected_value, dict) and isinstance(actual_value, dict):
            assert_dict_subset(actual_value, expected_value, current_path)
        else:
            assert actual_value == expected_value, (
                f"Mismatch at {current_path}: expected {expected_value!r}, got {actual_value!r}"
            )
