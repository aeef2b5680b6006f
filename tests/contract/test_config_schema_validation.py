from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest
import yaml

from stats_import.config.loader import SCHEMA_PATH

"""Bundled config schema contract."""


@pytest.fixture()
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_schema_is_valid_draft_2020_12(schema):
    jsonschema.Draft202012Validator.check_schema(schema)


def test_sample_config_validates(schema, sample_config_yaml: str):
    jsonschema.validate(yaml.safe_load(sample_config_yaml), schema)


def test_shipped_example_config_validates(schema):
    example = Path(__file__).resolve().parents[2] / "config" / "import.yml"
    jsonschema.validate(yaml.safe_load(example.read_text(encoding="utf-8")), schema)


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"inference": {}},
        {"inference": {"url": "http://x", "unknown": 1}},
        {"inference": {"url": "http://x"}, "storage": {"owner_column": "User Id"}},
        {"inference": {"url": "http://x"}, "storage": {"saved_mapping_limit": 0}},
        {"inference": {"url": "http://x"}, "autosave_delay_seconds": -1},
    ],
)
def test_invalid_configs_are_rejected(schema, data):
    with pytest.raises(jsonschema.ValidationError):
        jsonschema.validate(data, schema)
