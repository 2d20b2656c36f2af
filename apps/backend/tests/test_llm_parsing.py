"""Tests for LLM reply cleanup and JSON recovery."""
import pytest

from exceptions import UnparseableResponseError
from services.llm import parse_llm_json, strip_code_fences


def test_strip_code_fences_json_block():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'


def test_strip_code_fences_plain_block_and_case():
    assert strip_code_fences('```JSON {"a": 1} ```') == '{"a": 1}'
    assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'


def test_strip_code_fences_none():
    assert strip_code_fences(None) == ""


def test_parse_direct_json():
    assert parse_llm_json('{"category": "lumber"}') == {"category": "lumber"}


def test_parse_fenced_json():
    assert parse_llm_json('```json\n{"category": "lumber"}\n```') == {"category": "lumber"}


def test_parse_recovers_from_surrounding_prose():
    text = 'Sure! Here is the JSON: {"category": "lumber", "items": [{"name": "2x4"}]} Let me know.'
    assert parse_llm_json(text) == {"category": "lumber", "items": [{"name": "2x4"}]}


def test_parse_without_braces_fails():
    with pytest.raises(UnparseableResponseError):
        parse_llm_json("I could not understand the request.")


def test_parse_broken_json_inside_braces_fails():
    with pytest.raises(UnparseableResponseError):
        parse_llm_json('prefix {"category": "lumber",, } suffix')


def test_parse_non_object_fails():
    with pytest.raises(UnparseableResponseError):
        parse_llm_json('["lumber"]')


def test_parse_empty_reply_fails():
    with pytest.raises(UnparseableResponseError):
        parse_llm_json("")
