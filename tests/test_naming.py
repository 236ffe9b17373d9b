"""Tests for tool name synthesis"""

import pytest

from openapi_mcp_adapter.models import PATH, OperationDescriptor, ParameterSpec
from openapi_mcp_adapter.naming import ToolNameSynthesizer, base_tool_name
from openapi_mcp_adapter.openapi import extract_operations


def _op(verb, path, with_params=None):
    has_params = "{" in path if with_params is None else with_params
    params = (ParameterSpec("id", PATH, required=True),) if has_params else ()
    return OperationDescriptor(path=path, verb=verb, path_params=params)


@pytest.mark.parametrize(
    "verb,path,expected",
    [
        ("GET", "/asset_category", "search-asset_category"),
        ("POST", "/asset_category", "create-asset_category"),
        ("GET", "/asset_category/{id}", "read-asset_category"),
        ("POST", "/asset_category/{id}", "update-asset_category"),
        ("PUT", "/asset_category/{id}", "update-asset_category-put"),
        ("PATCH", "/asset_category/{id}", "patch-asset_category"),
        ("DELETE", "/asset_category/{id}", "delete-asset_category"),
        ("DELETE", "/asset_category", "delete-asset_category"),
        ("PUT", "/asset_category", None),
        ("PATCH", "/asset_category", None),
    ],
)
def test_name_table(verb, path, expected):
    assert base_tool_name(_op(verb, path)) == expected


def test_collision_appends_verb_then_drops():
    synthesizer = ToolNameSynthesizer()

    first = synthesizer.assign(_op("DELETE", "/widget/{id}/parts"))
    second = synthesizer.assign(_op("DELETE", "/widget/{id}"))
    third = synthesizer.assign(_op("DELETE", "/widget/{id}/items"))

    assert first == "delete-widget"
    assert second == "delete-widget-delete"
    assert third is None
    assert "delete-widget" in synthesizer


def test_reserved_names_are_never_issued():
    synthesizer = ToolNameSynthesizer(reserved=["search-user"])

    assert synthesizer.assign(_op("GET", "/user")) == "search-user-get"


def test_unclassified_operation_does_not_reserve_a_name():
    synthesizer = ToolNameSynthesizer()

    assert synthesizer.assign(_op("PUT", "/report")) is None
    assert "update-report-put" not in synthesizer


def test_names_are_deterministic(document):
    def run():
        synthesizer = ToolNameSynthesizer()
        return [
            (synthesizer.assign(op), op.verb, op.path) for op in extract_operations(document)
        ]

    assert run() == run()
