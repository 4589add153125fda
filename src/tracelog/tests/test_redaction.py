"""Tests for sensitive-field redaction."""

from __future__ import annotations

import copy

from tracelog.runtime.redaction import (
    CIRCULAR,
    ERROR_SENSITIVE_FIELDS,
    REDACTED,
    is_sensitive,
    sanitize_data,
)


def test_redacts_case_insensitive_substrings() -> None:
    data = {"userPassword": "hunter2", "accessToken": "abc", "myApiKey": "k", "CLIENT_SECRET": "s", "name": "bob"}
    assert sanitize_data(data) == {
        "userPassword": REDACTED, "accessToken": REDACTED, "myApiKey": REDACTED,
        "CLIENT_SECRET": REDACTED, "name": "bob",
    }


def test_redacts_whole_value_whatever_its_type() -> None:
    assert sanitize_data({"token": {"nested": 1}, "secrets": [1, 2]}) == {"token": REDACTED, "secrets": REDACTED}


def test_walks_nested_mappings_and_sequences() -> None:
    data = {"users": [{"name": "a", "password": "x"}, ({"token": "t"}, 3)], "meta": {"deep": {"secret": 1}}}
    assert sanitize_data(data) == {
        "users": [{"name": "a", "password": REDACTED}, ({"token": REDACTED}, 3)],
        "meta": {"deep": {"secret": REDACTED}},
    }


def test_does_not_mutate_input() -> None:
    data = {"password": "x", "items": [{"token": "t"}]}
    before = copy.deepcopy(data)
    sanitize_data(data)
    assert data == before


def test_is_idempotent() -> None:
    data = {"password": "x", "list": [{"apiKey": 1}, "plain"], "ok": True}
    once = sanitize_data(data)
    assert sanitize_data(once) == once


def test_scalars_pass_through() -> None:
    for value in (None, 1, 2.5, "password", True):
        assert sanitize_data(value) == value


def test_cycles_become_marker() -> None:
    data: dict[str, object] = {"a": 1}
    data["self"] = data
    items: list[object] = [1]
    items.append(items)
    assert sanitize_data(data) == {"a": 1, "self": CIRCULAR}
    assert sanitize_data(items) == [1, CIRCULAR]


def test_shared_subtrees_are_not_cycles() -> None:
    shared = {"v": 1}
    assert sanitize_data({"a": shared, "b": [shared, shared]}) == {"a": {"v": 1}, "b": [{"v": 1}, {"v": 1}]}


def test_custom_sensitive_fields_replace_defaults() -> None:
    assert sanitize_data({"ssn": "123", "password": "p"}, ["SSN"]) == {"ssn": REDACTED, "password": "p"}


def test_error_fields_cover_authorization() -> None:
    assert is_sensitive("Authorization", ERROR_SENSITIVE_FIELDS)
    assert not is_sensitive("Authorization")
    assert sanitize_data({"authorization": "Bearer x"}, ERROR_SENSITIVE_FIELDS) == {"authorization": REDACTED}
