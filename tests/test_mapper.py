"""Tests for codex_sync.sync.mapper: repo path <-> store key <-> identity."""

import pytest

from codex_sync.sync.mapper import (
    FragmentIdentity,
    PathOutsideContentRoot,
    discover_fragment_paths,
    is_under_content_root,
    parse_fragment_identity,
    to_repo_path,
    to_store_key,
)


class TestStoreKeys:
    """to_store_key() / to_repo_path()."""

    def test_strips_content_root(self):
        assert (
            to_store_key("content/fragments/services/totalsupport.en.md")
            == "fragments/services/totalsupport.en.md"
        )

    def test_non_fragment_content(self):
        assert to_store_key("content/standards/style.md") == "standards/style.md"

    def test_inverse(self):
        key = "fragments/services/totalsupport.ja.md"
        assert to_store_key(to_repo_path(key)) == key

    @pytest.mark.parametrize(
        "path",
        [
            "README.md",
            "contents/x.md",
            "content/",
            "content",
            "/content/fragments/a/b.en.md",
            "content/../secrets.md",
            "content/fragments/../../x.md",
            "content//fragments/a.md",
            "content\\fragments\\a.md",
            "content/fragments/services/",
            "",
        ],
    )
    def test_rejects_paths_outside_root(self, path):
        assert not is_under_content_root(path)
        with pytest.raises(PathOutsideContentRoot, match="Invalid path"):
            to_store_key(path)

    def test_path_outside_root_is_value_error(self):
        with pytest.raises(ValueError):
            to_store_key("src/app.py")


class TestFragmentIdentity:
    """parse_fragment_identity()."""

    def test_english_fragment(self):
        identity = parse_fragment_identity(
            "content/fragments/services/totalsupport.en.md"
        )
        assert identity == FragmentIdentity(
            category="services", id="totalsupport", lang="en"
        )
        assert identity.store_key == "fragments/services/totalsupport.en.md"

    def test_japanese_fragment(self):
        identity = parse_fragment_identity("content/fragments/legal/privacy.ja.md")
        assert identity.lang == "ja"
        assert identity.id == "privacy"

    def test_dotted_id(self):
        identity = parse_fragment_identity("content/fragments/x/v1.2.en.md")
        assert identity.id == "v1.2"

    @pytest.mark.parametrize(
        "path",
        [
            "content/fragments/services/totalsupport.md",
            "content/fragments/services/totalsupport.fr.md",
            "content/fragments/totalsupport.en.md",
            "content/fragments/a/b/c.en.md",
            "content/standards/style.en.md",
            "fragments/services/totalsupport.en.md",
        ],
    )
    def test_non_fragment_paths(self, path):
        assert parse_fragment_identity(path) is None


class TestDiscoverFragmentPaths:
    """discover_fragment_paths() scans a checkout."""

    def test_finds_fragments_only(self, tmp_path):
        fragments = tmp_path / "content" / "fragments"
        (fragments / "services").mkdir(parents=True)
        (fragments / "services" / "totalsupport.en.md").write_text("x")
        (fragments / "services" / "totalsupport.ja.md").write_text("x")
        (fragments / "services" / "notes.txt").write_text("x")
        (fragments / "services" / "draft.md").write_text("x")
        (tmp_path / "content" / "standards").mkdir()
        (tmp_path / "content" / "standards" / "style.en.md").write_text("x")

        assert discover_fragment_paths(tmp_path) == [
            "content/fragments/services/totalsupport.en.md",
            "content/fragments/services/totalsupport.ja.md",
        ]

    def test_missing_directory(self, tmp_path):
        assert discover_fragment_paths(tmp_path) == []
