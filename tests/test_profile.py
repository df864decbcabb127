# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/authentiq_strategy

import json
from typing import Any

import pytest

from authentiq_strategy.exceptions import MissingSubjectError, ProfileParseError
from authentiq_strategy.profile import parse_profile


def test_parse_full_profile() -> None:
    claims: dict[str, Any] = {
        "sub": "JKDRAJ4MVUOD2WPJ",
        "name": "Alice Example",
        "email": "alice@example.com",
        "phone_number": "+15551234567",
        "address": {"formatted": "1 Main St\nSpringfield", "country": "US"},
        "email_verified": True,
    }
    assert parse_profile(claims) == {
        "id": "JKDRAJ4MVUOD2WPJ",
        "name": "Alice Example",
        "email": "alice@example.com",
        "phone": "+15551234567",
        "address": "1 Main St\nSpringfield",
    }


def test_absent_fields_are_omitted() -> None:
    profile = parse_profile({"sub": "7"})
    assert profile == {"id": "7"}
    for key in ("name", "email", "phone", "address"):
        assert key not in profile


def test_numeric_subject_is_stringified() -> None:
    assert parse_profile({"sub": 42})["id"] == "42"


def test_json_string_and_object_are_equivalent() -> None:
    claims = {"sub": "7", "name": "X", "address": {"formatted": "Somewhere"}}
    assert parse_profile(json.dumps(claims)) == parse_profile(claims)
    assert parse_profile(json.dumps(claims).encode("utf-8")) == parse_profile(claims)


def test_address_without_formatted_is_omitted() -> None:
    assert "address" not in parse_profile({"sub": "1", "address": {"country": "US"}})
    assert "address" not in parse_profile({"sub": "1", "address": "1 Main St"})


def test_empty_values_are_omitted() -> None:
    profile = parse_profile({"sub": "1", "name": "", "email": None, "phone_number": ""})
    assert profile == {"id": "1"}


def test_missing_subject_is_an_error() -> None:
    with pytest.raises(MissingSubjectError):
        parse_profile({"name": "No Subject"})


def test_missing_subject_is_a_parse_error() -> None:
    assert issubclass(MissingSubjectError, ProfileParseError)


@pytest.mark.parametrize("payload", ["not json", "[1, 2]", "42"])
def test_non_object_input_rejected(payload: str) -> None:
    with pytest.raises(ProfileParseError):
        parse_profile(payload)


def test_input_is_not_mutated() -> None:
    claims = {"sub": "1", "phone_number": "+1"}
    parse_profile(claims)
    assert claims == {"sub": "1", "phone_number": "+1"}


def test_invalid_utf8_bytes_rejected() -> None:
    with pytest.raises(ProfileParseError):
        parse_profile(b'{"sub": "\x80"}')


def test_claims_are_copied_verbatim() -> None:
    profile = parse_profile({"sub": "1", "name": "  Alice  ", "email": "ALICE@Example.com"})
    assert profile["name"] == "  Alice  "
    assert profile["email"] == "ALICE@Example.com"


@pytest.mark.parametrize("claim", ["name", "email", "phone_number"])
def test_non_string_profile_claim_rejected(claim: str) -> None:
    with pytest.raises(ProfileParseError, match="Invalid profile claims"):
        parse_profile({"sub": "1", claim: {"nested": True}})
