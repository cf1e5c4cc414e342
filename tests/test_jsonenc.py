import json

import pytest

from contextbus.jsonenc import JsonBuffer


def test_object_with_keys_round_trips_through_json():
    buf = JsonBuffer()
    buf.begin_object().append_key("caller").append_string("here")
    buf.append_key("level").append_string("info")
    buf.end_object()
    assert json.loads(str(buf)) == {"caller": "here", "level": "info"}


def test_first_key_has_no_leading_comma():
    buf = JsonBuffer().begin_object().append_key("a")
    assert str(buf).startswith('{"a"')


def test_append_key_on_empty_buffer_raises():
    with pytest.raises(ValueError):
        JsonBuffer().append_key("a")


def test_append_ids_format():
    buf = JsonBuffer().append_ids(7, 9)
    assert str(buf) == '"RequestID 7, EventID 9"'


def test_append_ids_inside_object():
    buf = JsonBuffer().begin_object().append_key("ID").append_ids(3, 4).end_object()
    assert json.loads(str(buf))["ID"] == "RequestID 3, EventID 4"


def test_append_uint_negative_raises():
    with pytest.raises(ValueError):
        JsonBuffer().append_uint(-1)


def test_append_uint_writes_decimal():
    assert str(JsonBuffer().append_uint(12345)) == "12345"


def test_append_tags_round_trip():
    tags = {"method": "POST", "handler": "/handler1"}
    buf = JsonBuffer().append_tags(tags)
    assert json.loads(str(buf)) == tags


def test_empty_tags_give_empty_object():
    assert json.loads(str(JsonBuffer().append_tags({}))) == {}


def test_raw_text_between_string_delimiters():
    buf = JsonBuffer().begin_object().append_key("time")
    buf.begin_string().append_raw("2024-01-01").end_string().end_object()
    assert json.loads(str(buf)) == {"time": "2024-01-01"}


def test_nested_tags_after_key():
    buf = JsonBuffer().begin_object().append_key("tags").append_tags({"k": "v"})
    buf.end_object()
    assert json.loads(str(buf)) == {"tags": {"k": "v"}}


def test_initial_content_is_kept():
    buf = JsonBuffer("{").append_key("x").append_string("y").end_object()
    assert json.loads(str(buf)) == {"x": "y"}