"""Tests for extension discovery."""

from modsync.utils.extensions import EXTENSIONS, unqualify


def test_extensions_are_found():
    assert EXTENSIONS == {
        "modsync.exts.backend.error_handling",
        "modsync.exts.backend.sync",
        "modsync.exts.moderation.infractions",
    }


def test_unqualify():
    assert unqualify("modsync.exts.backend.sync") == "sync"
