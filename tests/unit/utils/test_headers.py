"""Tests for global header storage and request header merging."""

import httpx
import pytest

from proxyswitch.utils.headers import (
    SINGLE_VALUE_HEADERS,
    GlobalHeaders,
    canonicalize_header_name,
    is_single_value_header,
    merge_global_headers,
)


@pytest.mark.unit
class TestCanonicalization:
    def test_title_cases_hyphenated_names(self) -> None:
        assert canonicalize_header_name("content-type") == "Content-Type"
        assert canonicalize_header_name("X-REQUEST-ID") == "X-Request-Id"

    def test_special_cases(self) -> None:
        assert canonicalize_header_name("etag") == "ETag"
        assert canonicalize_header_name("www-authenticate") == "WWW-Authenticate"

    def test_single_value_lookup_is_case_insensitive(self) -> None:
        assert is_single_value_header("user-agent")
        assert is_single_value_header("IF-NONE-MATCH")
        assert not is_single_value_header("Accept-Language")

    def test_single_value_set_is_closed(self) -> None:
        assert SINGLE_VALUE_HEADERS == {
            "authorization",
            "content-type",
            "content-length",
            "content-encoding",
            "host",
            "user-agent",
            "if-match",
            "if-none-match",
            "if-modified-since",
            "if-range",
            "range",
        }


@pytest.mark.unit
class TestGlobalHeaders:
    def test_with_set_replaces_all_values(self) -> None:
        headers = GlobalHeaders([("X-Tag", "a"), ("X-Tag", "b")])

        updated = headers.with_set("x-tag", "c")

        assert updated.get_list("X-Tag") == ["c"]

    def test_with_added_appends(self) -> None:
        headers = GlobalHeaders().with_added("X-Tag", "a").with_added("x-tag", "b")

        assert headers.get_list("X-TAG") == ["a", "b"]
        assert list(headers) == ["X-Tag"]

    def test_mutations_return_new_snapshots(self) -> None:
        original = GlobalHeaders({"User-Agent": "agent/1"})

        original.with_set("User-Agent", "agent/2")
        original.with_added("Accept-Language", "en")
        original.without("User-Agent")

        assert original.multi_items() == [("User-Agent", "agent/1")]

    def test_without_missing_header_is_noop(self) -> None:
        headers = GlobalHeaders({"X-Tag": "a"})

        assert headers.without("X-Other") is headers

    def test_cleared_is_empty_not_none(self) -> None:
        cleared = GlobalHeaders({"X-Tag": "a"}).cleared()

        assert isinstance(cleared, GlobalHeaders)
        assert len(cleared) == 0

    def test_mapping_values_may_be_lists(self) -> None:
        headers = GlobalHeaders({"Accept-Language": ["en", "fr"]})

        assert headers.get("accept-language") == "en"
        assert headers.get_list("Accept-Language") == ["en", "fr"]

    def test_contains_is_case_insensitive(self) -> None:
        headers = GlobalHeaders({"User-Agent": "agent"})

        assert "user-agent" in headers
        assert "USER-AGENT" in headers
        assert "Accept" not in headers

    def test_insertion_order_preserved(self) -> None:
        headers = (
            GlobalHeaders().with_set("B", "1").with_set("A", "2").with_set("b", "3")
        )

        assert headers.multi_items() == [("B", "3"), ("A", "2")]

    @pytest.mark.parametrize(
        "name", ["", "   ", "X-Caf\u00e9", "X Tag", "X-Tag:", "X-\r\nTag"]
    )
    def test_rejects_invalid_names(self, name: str) -> None:
        with pytest.raises(ValueError):
            GlobalHeaders().with_set(name, "value")
        with pytest.raises(ValueError):
            GlobalHeaders().with_added(name, "value")
        with pytest.raises(ValueError):
            GlobalHeaders({name: "value"})

    @pytest.mark.parametrize("value", ["a\r\nX-Injected: 1", "a\nb", "a\x00"])
    def test_rejects_control_characters_in_values(self, value: str) -> None:
        with pytest.raises(ValueError):
            GlobalHeaders().with_set("X-Tag", value)
        with pytest.raises(ValueError):
            GlobalHeaders().with_added("X-Tag", value)

    def test_accepts_token_punctuation(self) -> None:
        headers = GlobalHeaders().with_set("X-Custom_Header.v1!", "1")

        assert headers.get("x-custom_header.v1!") == "1"

    def test_equality(self) -> None:
        assert GlobalHeaders({"X-Tag": "a"}) == GlobalHeaders([("x-tag", "a")])
        assert GlobalHeaders({"X-Tag": "a"}) != GlobalHeaders({"X-Tag": "b"})

    def test_to_httpx(self) -> None:
        headers = GlobalHeaders([("X-Tag", "a"), ("X-Tag", "b")]).to_httpx()

        assert isinstance(headers, httpx.Headers)
        assert headers.get_list("x-tag") == ["a", "b"]


@pytest.mark.unit
class TestMergeGlobalHeaders:
    def test_multi_value_globals_set_in_configured_order(self) -> None:
        global_headers = GlobalHeaders([("X-Tag", "a"), ("X-Tag", "b")])

        merged = merge_global_headers(httpx.Headers(), global_headers)

        assert merged.get_list("X-Tag") == ["a", "b"]

    def test_multi_value_globals_append_to_request_values(self) -> None:
        global_headers = GlobalHeaders({"Accept-Language": ["en", "fr"]})

        merged = merge_global_headers(
            httpx.Headers({"accept-language": "de"}), global_headers
        )

        assert merged.get_list("Accept-Language") == ["de", "en", "fr"]

    def test_request_value_wins_for_single_value_headers(self) -> None:
        global_headers = GlobalHeaders({"Authorization": "Bearer global"})

        merged = merge_global_headers(
            httpx.Headers({"authorization": "Bearer request"}), global_headers
        )

        assert merged.get_list("Authorization") == ["Bearer request"]

    def test_first_global_value_used_for_single_value_headers(self) -> None:
        global_headers = GlobalHeaders({"User-Agent": ["first", "second"]})

        merged = merge_global_headers(httpx.Headers(), global_headers)

        assert merged.get_list("User-Agent") == ["first"]

    @pytest.mark.parametrize("name", sorted(SINGLE_VALUE_HEADERS))
    def test_every_single_value_header_prefers_request(self, name: str) -> None:
        global_headers = GlobalHeaders({name: "global"})

        merged = merge_global_headers(httpx.Headers({name: "request"}), global_headers)

        assert merged.get_list(name) == ["request"]

    def test_request_headers_left_untouched(self) -> None:
        request_headers = httpx.Headers({"X-Trace": "1"})
        global_headers = GlobalHeaders({"User-Agent": "agent", "X-Trace": "2"})

        merged = merge_global_headers(request_headers, global_headers)

        assert request_headers.multi_items() == [("x-trace", "1")]
        assert merged.get_list("X-Trace") == ["1", "2"]
        assert merged["User-Agent"] == "agent"

    def test_request_header_casing_preserved(self) -> None:
        request_headers = httpx.Headers([("X-Custom-CASE", "v")])

        merged = merge_global_headers(request_headers, GlobalHeaders({"X-Tag": "a"}))

        assert merged.raw == [(b"X-Custom-CASE", b"v"), (b"X-Tag", b"a")]

    def test_non_ascii_values_encoded_as_utf8(self) -> None:
        merged = merge_global_headers(
            httpx.Headers(), GlobalHeaders({"X-City": "Z\u00fcrich"})
        )

        assert merged.raw == [(b"X-City", "Z\u00fcrich".encode())]
        assert merged["X-City"] == "Z\u00fcrich"

    def test_empty_globals_copy_request_headers(self) -> None:
        request_headers = httpx.Headers({"X-Trace": "1"})

        merged = merge_global_headers(request_headers, GlobalHeaders())

        assert merged is not request_headers
        assert merged == request_headers
