"""Tests for the GitHub contents-API provider (urllib mocked)."""

from __future__ import annotations

import base64
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from vaultkeeper.errors import NetworkFailure, RemoteError, Unauthorized
from vaultkeeper.remote.credentials import MemoryCredentialStore
from vaultkeeper.remote.github import GitHubContentProvider

_URLOPEN = "vaultkeeper.remote.github.urllib.request.urlopen"


def _response(payload) -> MagicMock:
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    resp = MagicMock()
    resp.__enter__.return_value.read.return_value = body
    return resp


def _http_error(code: int) -> urllib.error.HTTPError:
    return urllib.error.HTTPError("https://api.github.com/x", code, "err", {}, None)


@pytest.fixture
def creds():
    return MemoryCredentialStore("ghp_test")


@pytest.fixture
def gh(creds):
    return GitHubContentProvider(creds, branch="main")


def test_rejects_non_https_api_url(creds):
    with pytest.raises(ValueError, match="https"):
        GitHubContentProvider(creds, api_url="http://api.github.com")


# ------------------------------------------------------------------
# list_contents
# ------------------------------------------------------------------


def test_list_contents_maps_entries(gh):
    payload = [
        {"name": "a.md", "path": "notes/a.md", "sha": "s1", "size": 12, "type": "file",
         "download_url": "https://raw.example/notes/a.md"},
        {"name": "sub", "path": "notes/sub", "sha": "s2", "size": 0, "type": "dir", "download_url": None},
    ]
    with patch(_URLOPEN, return_value=_response(payload)) as mock_open:
        result = gh.list_contents("me", "vault", "notes")

    assert result.ok
    a, sub = result.value
    assert (a.path, a.content_hash, a.kind, a.size) == ("notes/a.md", "s1", "file", 12)
    assert a.download_url == "https://raw.example/notes/a.md"
    assert sub.kind == "dir"
    req = mock_open.call_args.args[0]
    assert req.full_url == "https://api.github.com/repos/me/vault/contents/notes?ref=main"
    assert req.get_header("Authorization") == "Bearer ghp_test"
    assert mock_open.call_args.kwargs["timeout"] == 30


def test_list_contents_of_file_is_single_element(gh):
    payload = {"name": "a.md", "path": "a.md", "sha": "s1", "size": 1, "type": "file", "download_url": "u"}
    with patch(_URLOPEN, return_value=_response(payload)):
        result = gh.list_contents("me", "vault", "a.md")
    assert [f.path for f in result.value] == ["a.md"]


def test_no_authorization_header_without_token():
    gh = GitHubContentProvider(MemoryCredentialStore(None))
    with patch(_URLOPEN, return_value=_response([])) as mock_open:
        gh.list_contents("me", "vault")
    assert mock_open.call_args.args[0].get_header("Authorization") is None


def test_list_contents_network_failure(gh):
    with patch(_URLOPEN, side_effect=urllib.error.URLError("dns")):
        result = gh.list_contents("me", "vault")
    assert not result.ok
    assert isinstance(result.error, NetworkFailure)


def test_timeout_is_network_failure(gh):
    with patch(_URLOPEN, side_effect=TimeoutError("slow")):
        result = gh.fetch_hash("me", "vault", "a.md")
    assert isinstance(result.error, NetworkFailure)


def test_unauthorized_clears_credentials(gh, creds):
    with patch(_URLOPEN, side_effect=_http_error(401)):
        result = gh.list_contents("me", "vault")
    assert isinstance(result.error, Unauthorized)
    assert creds.get() is None


def test_server_error_is_remote_error_with_status(gh):
    with patch(_URLOPEN, side_effect=_http_error(502)):
        result = gh.list_contents("me", "vault")
    assert isinstance(result.error, RemoteError)
    assert result.error.status == 502


def test_list_missing_folder_is_404_remote_error(gh):
    with patch(_URLOPEN, side_effect=_http_error(404)):
        result = gh.list_contents("me", "vault", "nope")
    assert isinstance(result.error, RemoteError)
    assert result.error.status == 404


def test_malformed_json_is_remote_error(gh):
    with patch(_URLOPEN, return_value=_response(b"<html>")):
        result = gh.list_contents("me", "vault")
    assert isinstance(result.error, RemoteError)


# ------------------------------------------------------------------
# fetch_hash / fetch_content
# ------------------------------------------------------------------


def test_fetch_hash_returns_sha(gh):
    with patch(_URLOPEN, return_value=_response({"sha": "abc", "type": "file"})):
        assert gh.fetch_hash("me", "vault", "a.md").value == "abc"


def test_fetch_hash_missing_file_is_success_none(gh):
    with patch(_URLOPEN, side_effect=_http_error(404)):
        result = gh.fetch_hash("me", "vault", "new.md")
    assert result.ok
    assert result.value is None


def test_fetch_hash_of_directory_fails(gh):
    with patch(_URLOPEN, return_value=_response([])):
        assert not gh.fetch_hash("me", "vault", "notes").ok


def test_fetch_content_returns_raw_bytes(gh):
    with patch(_URLOPEN, return_value=_response("# Hi ✓".encode("utf-8"))) as mock_open:
        result = gh.fetch_content("https://raw.example/a.md")
    assert result.value == "# Hi ✓".encode("utf-8")
    assert mock_open.call_args.args[0].get_header("Accept") == "application/vnd.github.raw"


# ------------------------------------------------------------------
# push_content
# ------------------------------------------------------------------


def test_push_update_sends_sha_and_returns_new_hash(gh):
    with patch(_URLOPEN, return_value=_response({"content": {"sha": "new"}})) as mock_open:
        result = gh.push_content("me", "vault", "a.md", b"body", "old", "msg")

    assert result.value == "new"
    req = mock_open.call_args.args[0]
    assert req.get_method() == "PUT"
    body = json.loads(req.data)
    assert body["sha"] == "old"
    assert body["branch"] == "main"
    assert body["message"] == "msg"
    assert base64.b64decode(body["content"]) == b"body"


def test_push_create_omits_sha(gh):
    with patch(_URLOPEN, return_value=_response({"content": {"sha": "new"}})) as mock_open:
        gh.push_content("me", "vault", "new.md", b"x", None, "msg")
    assert "sha" not in json.loads(mock_open.call_args.args[0].data)


def test_push_conflict_is_remote_error(gh):
    with patch(_URLOPEN, side_effect=_http_error(409)):
        result = gh.push_content("me", "vault", "a.md", b"x", "stale", "msg")
    assert isinstance(result.error, RemoteError)
    assert result.error.status == 409


def test_paths_are_url_quoted(gh):
    with patch(_URLOPEN, return_value=_response({"sha": "s"})) as mock_open:
        gh.fetch_hash("me", "vault", "My Notes/día 1.md")
    assert "/contents/My%20Notes/d%C3%ADa%201.md" in mock_open.call_args.args[0].full_url


def test_binary_content_survives_fetch_and_push(gh):
    png = b"\x89PNG\r\n\x1a\n\x00\xff\xfe\x80"
    with patch(_URLOPEN, return_value=_response(png)):
        assert gh.fetch_content("https://raw.example/pic.png").value == png

    with patch(_URLOPEN, return_value=_response({"content": {"sha": "s"}})) as mock_open:
        gh.push_content("me", "vault", "pic.png", png, None, "msg")
    assert base64.b64decode(json.loads(mock_open.call_args.args[0].data)["content"]) == png
