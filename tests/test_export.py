"""Tests for codex_sync.sync.export: request parsing and the export handler."""

import io
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from codex_sync.core.github import GitHubError
from codex_sync.core.storage import ObjectStoreError, S3ObjectStore
from codex_sync.sync.export import (
    ExportError,
    InvalidExportRequest,
    ReverseExportHandler,
    branch_name,
    build_pr_body,
    parse_export_request,
)
from codex_sync.sync.models import ExportRequest

NOW = datetime(2026, 2, 19, 14, 30, 5, tzinfo=timezone.utc)
BRANCH = "codex-sync/export-20260219143005"


@pytest.fixture
def handler(store, fake_github):
    return ReverseExportHandler(store, fake_github, clock=lambda: NOW)


# -------------------------------------------------------------------------
# parse_export_request()
# -------------------------------------------------------------------------


class TestParseExportRequest:
    def test_defaults(self):
        assert parse_export_request(None) == ExportRequest()
        assert parse_export_request({}) == ExportRequest()
        assert ExportRequest().prefixes == ["fragments/"]

    def test_custom_prefix(self):
        request = parse_export_request({"prefix": "standards/"})
        assert request.prefixes == ["standards/"]

    def test_collections_expand(self):
        request = parse_export_request({"collections": ["services", "legal"]})
        assert request.prefixes == ["fragments/services/", "fragments/legal/"]

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            "fragments/",
            {"prefix": 3},
            {"prefix": "../secrets/"},
            {"prefix": "/abs/"},
            {"collections": "services"},
            {"collections": ["a/b"]},
            {"collections": [".."]},
            {"collections": [1]},
        ],
    )
    def test_invalid(self, payload):
        with pytest.raises(InvalidExportRequest):
            parse_export_request(payload)


def test_branch_name():
    assert branch_name(NOW) == BRANCH


def test_pr_body_lists_files():
    body = build_pr_body(["fragments/"], ["content/fragments/a/b.en.md"], 3)
    assert "- `content/fragments/a/b.en.md`" in body
    assert "3 file(s) were unchanged" in body


# -------------------------------------------------------------------------
# ReverseExportHandler
# -------------------------------------------------------------------------


class TestReverseExport:
    def test_no_op_when_content_matches(self, handler, store, fake_github):
        store.put("fragments/services/a.en.md", b"same")
        fake_github.files["content/fragments/services/a.en.md"] = b"same"

        result = handler.export(ExportRequest())

        assert result.files_exported == 0
        assert result.files_unchanged == 1
        assert result.branch == ""
        assert result.pr_url is None
        assert result.to_json() == {
            "branch": "",
            "prUrl": None,
            "filesExported": 0,
            "filesUnchanged": 1,
        }
        fake_github.create_blob.assert_not_called()
        fake_github.create_tree.assert_not_called()
        fake_github.create_branch.assert_not_called()
        fake_github.create_pull_request.assert_not_called()

    def test_empty_store(self, handler, fake_github):
        result = handler.export()
        assert result.files_exported == 0
        assert result.files_unchanged == 0
        fake_github.create_branch.assert_not_called()

    def test_changed_and_new_files_open_pr(self, handler, store, fake_github):
        store.put("fragments/services/a.en.md", b"edited")
        store.put("fragments/services/b.ja.md", "新規".encode("utf-8"))
        store.put("fragments/services/c.en.md", b"same")
        fake_github.files["content/fragments/services/a.en.md"] = b"original"
        fake_github.files["content/fragments/services/c.en.md"] = b"same"

        result = handler.export()

        assert result.branch == BRANCH
        assert result.pr_url == "https://github.com/acme/website/pull/42"
        assert result.files_exported == 2
        assert result.files_unchanged == 1
        assert result.files == [
            "content/fragments/services/a.en.md",
            "content/fragments/services/b.ja.md",
        ]

        # Diff against the head commit
        fake_github.get_file.assert_any_call(
            "content/fragments/services/a.en.md", "head0000sha"
        )
        # Bytes preserved exactly
        assert sorted(fake_github.blobs.values()) == sorted(
            [b"edited", "新規".encode("utf-8")]
        )

        base_tree, entries = fake_github.create_tree.call_args[0]
        assert base_tree == "basetreesha"
        assert entries[0] == {
            "path": "content/fragments/services/a.en.md",
            "mode": "100644",
            "type": "blob",
            "sha": "blob0",
        }

        message, tree, parents = fake_github.create_commit.call_args[0]
        assert message.startswith("chore(codex-sync): export 2 file(s) from CMS")
        assert (tree, parents) == ("newtreesha", ["head0000sha"])

        fake_github.create_branch.assert_called_once_with(BRANCH, "newcommitsha")
        pr_kwargs = fake_github.create_pull_request.call_args[1]
        assert pr_kwargs["head"] == BRANCH
        assert pr_kwargs["base"] == "main"
        assert "content/fragments/services/b.ja.md" in pr_kwargs["body"]

    def test_collections_limit_scope(self, handler, store, fake_github):
        store.put("fragments/services/a.en.md", b"x")
        store.put("fragments/legal/b.en.md", b"y")

        result = handler.export(ExportRequest(collections=["legal"]))

        assert result.files == ["content/fragments/legal/b.en.md"]

    def test_overlapping_prefixes_deduplicated(self, handler, store, fake_github):
        store.put("fragments/services/a.en.md", b"x")

        result = handler.export(
            ExportRequest(collections=["services", "services"])
        )

        assert result.files_exported == 1
        assert fake_github.create_blob.call_count == 1

    def test_pr_failure_deletes_branch(self, handler, store, fake_github):
        store.put("fragments/services/a.en.md", b"x")
        fake_github.create_pull_request.side_effect = GitHubError(
            "GitHub API error: POST /pulls -> 422", status_code=422
        )

        with pytest.raises(ExportError, match="422"):
            handler.export()

        fake_github.create_branch.assert_called_once()
        fake_github.delete_branch.assert_called_once_with(BRANCH)

    def test_cleanup_failure_still_raises_original(self, handler, store, fake_github):
        store.put("fragments/services/a.en.md", b"x")
        fake_github.create_pull_request.side_effect = GitHubError("pr failed")
        fake_github.delete_branch.side_effect = GitHubError("delete failed")

        with pytest.raises(ExportError, match="pr failed"):
            handler.export()

    def test_early_failure_creates_no_branch(self, handler, store, fake_github):
        store.put("fragments/services/a.en.md", b"x")
        fake_github.create_commit.side_effect = GitHubError("HTTP 500")

        with pytest.raises(ExportError):
            handler.export()

        fake_github.create_branch.assert_not_called()
        fake_github.create_pull_request.assert_not_called()

    def test_store_failure_wrapped(self, fake_github):
        class BrokenStore:
            def list(self, prefix=""):
                raise ObjectStoreError("list failed")

        handler = ReverseExportHandler(BrokenStore(), fake_github)
        with pytest.raises(ExportError, match="list failed"):
            handler.export()

    def test_folder_markers_ignored(self, fake_github):
        s3_client = MagicMock()
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {
                "Contents": [
                    {"Key": "fragments/"},
                    {"Key": "fragments/svc/a.en.md"},
                ]
            }
        ]
        s3_client.get_paginator.return_value = paginator
        s3_client.get_object.return_value = {"Body": io.BytesIO(b"same")}
        fake_github.files["content/fragments/svc/a.en.md"] = b"same"
        handler = ReverseExportHandler(
            S3ObjectStore("bucket", client=s3_client), fake_github
        )

        result = handler.export()

        assert result.files_exported == 0
        assert result.files_unchanged == 1
        fake_github.create_blob.assert_not_called()
        s3_client.get_object.assert_called_once_with(
            Bucket="bucket", Key="fragments/svc/a.en.md"
        )

    def test_marker_keys_from_custom_store_skipped(self, handler, fake_github):
        handler.store = MagicMock()
        handler.store.list.return_value = ["fragments/", "fragments/svc/"]

        result = handler.export()

        assert result.files_unchanged == 0
        handler.store.get.assert_not_called()
        fake_github.create_tree.assert_not_called()
