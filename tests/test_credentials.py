from __future__ import annotations

import pytest
from starlette.datastructures import Headers

from app.features.auth.credentials import get_bearer_token


@pytest.mark.parametrize(
    "headers, expected",
    [
        ({"Authorization": "Bearer abc.def.ghi"}, "abc.def.ghi"),
        ({"authorization": "Bearer abc"}, "abc"),
        ({"AUTHORIZATION": "bearer abc"}, "abc"),
        ({"Authorization": "BEARER    abc   "}, "abc"),
        ({"Authorization": ["Bearer abc"]}, "abc"),
    ],
)
def test_extracts_bearer_token(headers, expected):
    assert get_bearer_token(headers) == expected


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"X-Token": "Bearer abc"},
        {"Authorization": ""},
        {"Authorization": "Bearer"},
        {"Authorization": "Bearer    "},
        {"Authorization": "Basic dXNlcjpwYXNz"},
        {"Authorization": "abc"},
        {"Authorization": "Bearerabc"},
        {"Authorization": "Bearer\tabc"},
        {"Authorization": ["Bearer a", "Bearer b"]},
        {"Authorization": "Bearer a", "authorization": "Bearer b"},
        {"Authorization": None},
    ],
)
def test_absent_or_malformed_header_yields_none(headers):
    assert get_bearer_token(headers) is None


def test_starlette_headers_single_value():
    headers = Headers(raw=[(b"authorization", b"Bearer tok")])
    assert get_bearer_token(headers) == "tok"


def test_starlette_headers_repeated_authorization_is_rejected():
    headers = Headers(raw=[(b"authorization", b"Bearer a"), (b"authorization", b"Bearer b")])
    assert get_bearer_token(headers) is None
