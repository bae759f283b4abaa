from __future__ import annotations

import pytest

from invoice_service.application.submission import extract_batch_id
from invoice_service.utils.json_scanner import LenientJSONError, extract_json, find_json_region


def test_leading_noise_before_object_is_skipped():
    body = 'garbage...{"OCR_ref_no":"X"}'
    assert extract_batch_id(extract_json(body)) == "X"


def test_trailing_noise_after_balanced_object_is_dropped():
    body = 'INFO started\n{"a": {"b": 1}} trailing log line }'
    assert extract_json(body) == {"a": {"b": 1}}


def test_escaped_quotes_and_braces_inside_strings_do_not_count():
    body = 'noise {"msg": "he said \\"}\\" then {left", "n": 2} tail'
    assert find_json_region(body) == '{"msg": "he said \\"}\\" then {left", "n": 2}'
    assert extract_json(body) == {"msg": 'he said "}" then {left', "n": 2}


def test_array_starting_before_object_wins():
    assert extract_json('x [1, {"a": 2}] y') == [1, {"a": 2}]


def test_no_json_raises():
    with pytest.raises(LenientJSONError):
        extract_json("plain text, nothing here")


def test_unbalanced_region_raises_value_error():
    with pytest.raises(ValueError):
        extract_json('prefix {"a": 1')


def test_batch_id_priority():
    assert extract_batch_id({"OCR_ref_no": "R", "OCR_ext_no": "E", "batch_id": "B"}) == "R"
    assert extract_batch_id({"OCR_ext_no": "E", "batch_id": "B"}) == "E"
    assert extract_batch_id({"OCR_ref_no": "", "batch_id": "B"}) == "B"
    assert extract_batch_id({"status": "ok"}) is None
    assert extract_batch_id(["OCR_ref_no"]) is None
