"""Tests for package metadata."""
from __future__ import annotations

import tomllib
from pathlib import Path

import apperf


def test_metadata_attributes() -> None:
    assert isinstance(apperf.__version__, str)
    assert apperf.__author__ == "apperf contributors"


def test_license_matches_packaging() -> None:
    pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
    data = tomllib.loads(pyproject.read_text())
    assert apperf.__license__ == data["project"]["license"]["text"]
