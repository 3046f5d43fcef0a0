"""
Test LocalePreferenceStore
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json

import pytest

from menuchat.persistence import DEFAULT_LANGUAGE, LocalePreferenceStore


def test_default_when_missing(tmp_path):
    store = LocalePreferenceStore(tmp_path / "locale.json")

    assert store.load() == DEFAULT_LANGUAGE


def test_save_and_load(tmp_path):
    path = tmp_path / "nested" / "locale.json"
    store = LocalePreferenceStore(path)

    assert store.save("en") == "en"

    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8")) == {'language': "en"}
    assert LocalePreferenceStore(path).load() == "en"


def test_save_rejects_unknown_language(tmp_path):
    store = LocalePreferenceStore(tmp_path / "locale.json")

    with pytest.raises(ValueError, match="Unsupported language"):
        store.save("fr")

    assert not (tmp_path / "locale.json").exists()


def test_invalid_stored_value_falls_back(tmp_path):
    path = tmp_path / "locale.json"
    path.write_text(json.dumps({'language': "xx"}), encoding="utf-8")

    assert LocalePreferenceStore(path).load() == DEFAULT_LANGUAGE


def test_corrupt_file_falls_back(tmp_path):
    path = tmp_path / "locale.json"
    path.write_text("{not json", encoding="utf-8")

    assert LocalePreferenceStore(path).load() == DEFAULT_LANGUAGE
