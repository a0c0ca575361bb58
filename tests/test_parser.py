"""Tests for the request-text parser."""

import logging
import os
from unittest.mock import MagicMock

import pytest

from reqtext.models import EmptyBody, FileSegment, StreamBody, TextBody, TextSegment
from reqtext.parser import (
    MalformedJSONBodyError,
    Sections,
    body_block,
    detect_line_ending,
    fix_content_type,
    load_request_file,
    locate_sections,
    normalize_lines,
    parse_http_request,
    parse_request_line,
    resolve_url,
    split_query_continuation,
)
from reqtext.settings import FormParamEncodingStrategy, RestClientSettings


def make_settings(**kwargs) -> RestClientSettings:
    kwargs.setdefault("line_ending", "\n")
    return RestClientSettings(**kwargs)


def parse(text, request_path="/work/requests/req.http", **kwargs):
    return parse_http_request(text, request_path, make_settings(**kwargs))


class TestNormalizeLines:
    """Tests for line splitting and blank-edge trimming."""

    def test_strips_leading_and_trailing_blank_lines(self):
        lines = normalize_lines("\n  \nGET /x\n\nbody\n\t\n\n", "\n")
        assert lines == ["GET /x", "", "body"]

    def test_keeps_intra_line_whitespace(self):
        assert normalize_lines("  GET /x  ", "\n") == ["  GET /x  "]

    def test_blank_document_is_empty(self):
        assert normalize_lines(" \n\t\n", "\n") == []

    def test_detect_line_ending(self):
        assert detect_line_ending("GET /x\r\nA: b") == "\r\n"
        assert detect_line_ending("GET /x\nA: b") == "\n"
        assert detect_line_ending("GET /x") == "\n"

    def test_splits_on_configured_line_ending(self):
        assert normalize_lines("GET /x\r\nA: b", "\r\n") == ["GET /x", "A: b"]


class TestParseRequestLine:
    """Tests for request-line parsing."""

    def test_method_and_url(self):
        assert parse_request_line("GET /x") == ("GET", "/x")

    def test_url_only_defaults_to_get(self):
        assert parse_request_line("/x") == ("GET", "/x")

    def test_strips_http_version(self):
        assert parse_request_line("POST /x HTTP/1.1") == ("POST", "/x")

    def test_version_match_is_case_insensitive(self):
        assert parse_request_line("PUT /x http/2") == ("PUT", "/x")

    def test_url_keeps_internal_whitespace(self):
        line = "GET /search?q=a  b HTTP/1.1"
        assert parse_request_line(line) == ("GET", "/search?q=a  b")

    def test_tab_separated_tokens(self):
        assert parse_request_line("DELETE\t/items/1") == ("DELETE", "/items/1")

    def test_surrounding_whitespace_ignored(self):
        assert parse_request_line("  PATCH   /x   ") == ("PATCH", "/x")


class TestSections:
    """Tests for header/body boundary detection."""

    def test_query_continuation_lines(self):
        query, rest = split_query_continuation(["?a=1", "  &b=2 ", "Accept: x"])
        assert query == "?a=1&b=2"
        assert rest == ["Accept: x"]

    def test_no_query_continuation(self):
        assert split_query_continuation(["A: b"]) == ("", ["A: b"])

    def test_request_line_only(self):
        assert locate_sections(["GET /x"]) == Sections()

    def test_header_block_then_body(self):
        lines = ["POST /x", "A: 1", "B: 2", "", "", "body"]
        sections = locate_sections(lines)
        assert sections.has_headers is True
        assert sections.header_lines == ["A: 1", "B: 2"]
        assert sections.body_start == 5

    def test_blank_line_after_request_line_means_body(self):
        sections = locate_sections(["POST /x", "", "A: 1"])
        assert sections.has_headers is False
        assert sections.header_lines == []
        assert sections.body_start == 2

    def test_body_block_stops_at_blank_line(self):
        lines = ["POST /x", "", "a", "b", "", "c"]
        assert body_block(lines, 2) == ["a", "b"]

    def test_body_block_to_end(self):
        lines = ["POST /x", "", "a", "", "c"]
        assert body_block(lines, 2, to_end=True) == ["a", "", "c"]

    def test_body_block_without_start(self):
        assert body_block(["GET /x"], None) == []


class TestResolveUrl:
    """Tests for Host-based URL rewriting."""

    def test_tls_port_gives_https(self):
        url = resolve_url("/p", {"Host": "example.com:8443"}, {})
        assert url == "https://example.com:8443/p"

    def test_port_443_gives_https(self):
        url = resolve_url("/p", {"host": "example.com:443"}, {})
        assert url == "https://example.com:443/p"

    def test_no_port_gives_http(self):
        assert resolve_url("/p", {"Host": "example.com"}, {}) == "http://example.com/p"

    def test_other_port_gives_http(self):
        url = resolve_url("/p", {"Host": "localhost:8080"}, {})
        assert url == "http://localhost:8080/p"

    def test_absolute_url_unchanged(self):
        url = resolve_url("https://a.com/p", {"Host": "example.com"}, {})
        assert url == "https://a.com/p"

    def test_default_host_header(self):
        url = resolve_url("/p", {}, {"Host": "fallback.test"})
        assert url == "http://fallback.test/p"

    def test_no_host(self):
        assert resolve_url("/p", {}, {}) == "/p"


class TestParseHttpRequest:
    """End-to-end tests for parse_http_request."""

    def test_blank_document_returns_none(self):
        assert parse("") is None
        assert parse("  \n\t\n   ") is None

    def test_simple_get(self):
        request = parse("GET /x")
        assert request.method == "GET"
        assert request.url == "/x"
        assert request.headers == {}
        assert request.body == EmptyBody()
        assert request.raw_body == ""

    def test_url_only_equals_explicit_get(self):
        assert parse("/x") == parse("GET /x")

    def test_version_token_stripped(self):
        request = parse("POST /x HTTP/1.1")
        assert request.method == "POST"
        assert request.url == "/x"

    def test_host_header_makes_url_absolute(self):
        request = parse("GET /p\nHost: example.com:8443")
        assert request.url == "https://example.com:8443/p"
        assert request.headers == {"Host": "example.com:8443"}

    def test_headers_and_body_split(self):
        text = (
            "POST /x\n"
            "Content-Type: text/plain\n"
            "Accept: */*\n"
            "\n"
            "hello\n"
            "world\n"
            "\n"
            "\n"
        )
        request = parse(text)
        assert request.headers == {"Content-Type": "text/plain", "Accept": "*/*"}
        assert request.body == TextBody("hello\nworld")
        assert request.raw_body == "hello\nworld"

    def test_body_ends_at_blank_line(self):
        request = parse("POST /x\nA: b\n\nfirst\n\nignored")
        assert request.body == TextBody("first")

    def test_body_without_headers(self):
        request = parse("POST /x\n\n{\"a\": 1}")
        assert request.headers == {}
        assert request.body == TextBody('{"a": 1}')

    def test_multipart_body_keeps_blank_lines(self):
        text = (
            "POST /upload\n"
            "Content-Type: multipart/form-data; boundary=XX\n"
            "\n"
            "--XX\n"
            'Content-Disposition: form-data; name="a"\n'
            "\n"
            "1\n"
            "--XX--\n"
        )
        request = parse(text)
        assert request.body == TextBody(
            '--XX\nContent-Disposition: form-data; name="a"\n\n1\n--XX--'
        )

    def test_query_continuation_appended_to_url(self):
        text = "GET /search\n  ?q=term\n  &page=2\nAccept: text/html"
        request = parse(text)
        assert request.url == "/search?q=term&page=2"
        assert request.headers == {"Accept": "text/html"}

    def test_query_continuation_before_host_rewrite(self):
        request = parse("GET /s\n?q=1\nHost: api.test")
        assert request.url == "http://api.test/s?q=1"

    def test_form_continuation_join(self):
        text = (
            "POST /login\n"
            "Content-Type: application/x-www-form-urlencoded\n"
            "\n"
            "a=1\n"
            "&b=2"
        )
        request = parse(text)
        assert request.body == TextBody("a=1&b=2")
        assert request.raw_body == "a=1\n&b=2"

    def test_default_content_type_from_settings(self):
        request = parse(
            "POST /login\n\na=1\n&b=2",
            default_headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert request.body == TextBody("a=1&b=2")

    def test_form_automatic_encoding_keeps_delimiters(self):
        text = (
            "POST /f\n"
            "Content-Type: application/x-www-form-urlencoded\n"
            "\n"
            "name=John Smith&code=%41"
        )
        request = parse(text)
        assert request.body == TextBody("name=John%20Smith&code=%41")

    def test_form_automatic_encoding_leaves_valid_escapes(self):
        # existing %XX sequences pass through unchanged; a stray % is escaped
        text = (
            "POST /f\n"
            "Content-Type: application/x-www-form-urlencoded\n"
            "\n"
            "a=%20&b=100%"
        )
        assert parse(text).body == TextBody("a=%20&b=100%25")

    def test_form_always_encoding(self):
        text = (
            "POST /f\n"
            "Content-Type: application/x-www-form-urlencoded\n"
            "\n"
            "a b=c=d&flag"
        )
        request = parse(
            text,
            form_param_encoding_strategy=FormParamEncodingStrategy.ALWAYS,
        )
        assert request.body == TextBody("a%20b=c%3Dd&flag=")

    def test_form_never_encoding(self):
        text = (
            "POST /f\n"
            "Content-Type: application/x-www-form-urlencoded\n"
            "\n"
            "a=x y"
        )
        request = parse(
            text,
            form_param_encoding_strategy=FormParamEncodingStrategy.NEVER,
        )
        assert request.body == TextBody("a=x y")

    def test_json_to_form_transform(self):
        text = (
            "POST /f\n"
            "Content-Type: application/x-www-form-urlencoded+json\n"
            "\n"
            '{"a":{"b":1},"c":[2,3]}'
        )
        request = parse(text)
        assert request.body == TextBody("a%5Bb%5D=1&c%5B%5D=2&c%5B%5D=3")
        assert request.headers == {
            "Content-Type": "application/x-www-form-urlencoded"
        }
        assert request.raw_body == '{"a":{"b":1},"c":[2,3]}'

    def test_json_to_form_uses_raw_multiline_body(self):
        text = (
            "POST /f\n"
            "content-type: application/x-www-form-urlencoded+json\n"
            "\n"
            "{\n"
            '  "user": {"name": "Jo Do", "admin": true}\n'
            "}"
        )
        request = parse(text)
        assert request.body == TextBody(
            "user%5Bname%5D=Jo%20Do&user%5Badmin%5D=true"
        )
        assert request.headers == {
            "content-type": "application/x-www-form-urlencoded"
        }

    def test_malformed_json_fails_and_notifies(self):
        text = (
            "POST /f\n"
            "Content-Type: application/x-www-form-urlencoded+json\n"
            "\n"
            "{not json"
        )
        notify = MagicMock()
        with pytest.raises(MalformedJSONBodyError):
            parse_http_request(text, "/r.http", make_settings(), notify=notify)
        notify.assert_called_once()
        assert notify.call_args.args[0].startswith("Unable to parse JSON")

    def test_missing_upload_becomes_literal_stream_segment(self, tmp_path):
        request_path = str(tmp_path / "req.http")
        text = "POST /u\nContent-Type: application/octet-stream\n\n<   ./missing-file.bin"
        request = parse(text, request_path)
        assert request.body == StreamBody(
            (TextSegment("<   ./missing-file.bin"),)
        )
        assert b"".join(request.body.iter_bytes()) == b"<   ./missing-file.bin"

    def test_upload_next_to_request_file(self, tmp_path):
        (tmp_path / "data.bin").write_bytes(b"\x00\x01")
        request_path = str(tmp_path / "req.http")
        text = (
            "POST /u\n"
            "Content-Type: multipart/form-data; boundary=b\n"
            "\n"
            "--b\n"
            "<  ./data.bin\n"
            "--b--"
        )
        request = parse(text, request_path)
        expected_path = os.path.join(str(tmp_path), "./data.bin")
        assert request.body == StreamBody(
            (
                TextSegment("--b"),
                TextSegment("\r\n"),
                FileSegment(expected_path),
                TextSegment("\r\n"),
                TextSegment("--b--"),
            )
        )
        assert b"".join(request.body.iter_bytes()) == b"--b\r\n\x00\x01\r\n--b--"
        assert request.raw_body == "--b\n<  ./data.bin\n--b--"

    def test_upload_from_workspace_root(self, tmp_path):
        workspace = tmp_path / "ws"
        workspace.mkdir()
        (workspace / "payload.json").write_text('{"k": 1}')
        request_path = str(tmp_path / "docs" / "req.http")
        text = "POST /u\n\n<  payload.json"
        request = parse(text, request_path, workspace_root=str(workspace))
        assert request.body == StreamBody(
            (FileSegment(os.path.join(str(workspace), "payload.json")),)
        )

    def test_stream_uses_line_ending_outside_multipart(self, tmp_path):
        (tmp_path / "part.txt").write_text("PART")
        request_path = str(tmp_path / "req.http")
        request = parse("POST /u\n\nhead\n<  part.txt", request_path)
        assert b"".join(request.body.iter_bytes()) == b"head\nPART"

    def test_stream_body_skips_content_type_fixup(self, tmp_path):
        request_path = str(tmp_path / "req.http")
        text = (
            "POST /u\n"
            "Content-Type: application/x-www-form-urlencoded+json\n"
            "\n"
            "<  missing.json"
        )
        request = parse(text, request_path)
        assert isinstance(request.body, StreamBody)
        assert request.headers["Content-Type"] == (
            "application/x-www-form-urlencoded+json"
        )

    def test_custom_header_parser(self):
        seen = []

        def header_parser(lines):
            seen.extend(lines)
            return {"X-Parsed": "yes"}

        request = parse_http_request(
            "GET /x\nA: 1", "/r.http", make_settings(), header_parser=header_parser
        )
        assert seen == ["A: 1"]
        assert request.headers == {"X-Parsed": "yes"}

    def test_reparsing_raw_body_is_idempotent(self):
        head = "POST /f\nContent-Type: application/x-www-form-urlencoded\n\n"
        first = parse(head + "a=1 2\n&b=%33\nc=4")
        second = parse(head + first.raw_body)
        assert second.body == first.body
        assert second.raw_body == first.raw_body

    def test_crlf_line_endings(self):
        text = "POST /x HTTP/1.1\r\nHost: example.com\r\n\r\nbody\r\n"
        request = parse_http_request(
            text, "/r.http", RestClientSettings(line_ending="\r\n")
        )
        assert request.url == "http://example.com/x"
        assert request.body == TextBody("body")

    def test_line_ending_detected_when_unset(self):
        text = (
            "POST /f\r\n"
            "Content-Type: application/x-www-form-urlencoded\r\n"
            "\r\n"
            "a=1\r\n"
            "&b=2\r\n"
        )
        request = parse_http_request(text, "/r.http", RestClientSettings())
        assert request.headers == {"Content-Type": "application/x-www-form-urlencoded"}
        assert request.body == TextBody("a=1&b=2")
        assert request.raw_body == "a=1\r\n&b=2"

    def test_host_rewrite_is_logged(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="reqtext.parser"):
            parse("GET /p\nHost: example.com")
        assert "Rewrote /p to http://example.com/p" in caplog.text

    def test_request_is_immutable(self):
        request = parse("GET /x")
        with pytest.raises(AttributeError):
            request.url = "/y"


class TestFixContentType:
    """Tests for the pseudo content type rewrite."""

    def test_other_content_type_untouched(self):
        headers = {"Content-Type": "text/plain"}
        assert fix_content_type(headers, "text/plain") is headers

    def test_appends_when_pseudo_type_comes_from_defaults(self):
        fixed = fix_content_type({"Accept": "x"}, "application/x-www-form-urlencoded+json")
        assert fixed == {
            "Accept": "x",
            "Content-Type": "application/x-www-form-urlencoded",
        }


class TestLoadRequestFile:
    """Tests for load_request_file function."""

    def test_load_valid_file(self, tmp_path):
        f = tmp_path / "req.http"
        f.write_bytes(b"GET /test HTTP/1.1\r\nHost: x\r\n\r\n")
        content = load_request_file(str(f))
        assert content == "GET /test HTTP/1.1\r\nHost: x\r\n\r\n"

    def test_load_nonexistent_file(self):
        with pytest.raises(FileNotFoundError):
            load_request_file("/nonexistent/path/file.http")
