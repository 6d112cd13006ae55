"""Tests for codex_sync.sync.seed.seed_index()."""

import pytest

from codex_sync.sync.models import EntryStatus
from codex_sync.sync.seed import seed_index


@pytest.fixture
def checkout(tmp_path):
    root = tmp_path / "website"
    services = root / "content" / "fragments" / "services"
    services.mkdir(parents=True)
    (services / "totalsupport.en.md").write_text(
        "---\ntitle: TotalSupport\ntags: [support]\n---\nBody\n", encoding="utf-8"
    )
    (services / "totalsupport.ja.md").write_text(
        "---\ntitle: トータルサポート\n---\n本文\n", encoding="utf-8"
    )
    legal = root / "content" / "fragments" / "legal"
    legal.mkdir()
    (legal / "privacy.en.md").write_text("---\nstatus: draft\n---\n", encoding="utf-8")
    (root / "content" / "standards").mkdir()
    (root / "content" / "standards" / "style.md").write_text("# Style")
    return root


async def test_indexes_every_fragment(checkout, index):
    response = await seed_index(checkout, index)

    assert response.indexed == 3
    assert all(r.status == EntryStatus.INDEXED for r in response.results)

    row = index.get("totalsupport")
    assert row.has_en and row.has_ja
    assert row.title_ja == "トータルサポート"
    assert row.r2_key_en == "fragments/services/totalsupport.en.md"
    assert row.tags == ["support"]
    assert index.get("privacy").status == "draft"


async def test_reseed_is_idempotent(checkout, index):
    await seed_index(checkout, index)
    await seed_index(checkout, index)
    assert [r.id for r in index.list_rows()] == ["privacy", "totalsupport"]


async def test_default_author(checkout, index):
    await seed_index(checkout, index, default_author="Docs Team")
    assert index.get("privacy").author == "Docs Team"


async def test_missing_content_dir(tmp_path, index):
    with pytest.raises(FileNotFoundError):
        await seed_index(tmp_path, index)


async def test_reseed_prunes_deleted_fragment(checkout, index):
    await seed_index(checkout, index)
    (checkout / "content" / "fragments" / "legal" / "privacy.en.md").unlink()

    response = await seed_index(checkout, index)

    assert index.get("privacy") is None
    assert index.get("totalsupport") is not None
    removed = [r for r in response.results if r.status == EntryStatus.REMOVED]
    assert [r.path for r in removed] == ["content/fragments/legal/privacy.en.md"]
    assert response.indexed == 2


async def test_reseed_clears_deleted_language(checkout, index):
    await seed_index(checkout, index)
    services = checkout / "content" / "fragments" / "services"
    (services / "totalsupport.ja.md").unlink()

    response = await seed_index(checkout, index)

    row = index.get("totalsupport")
    assert row.has_en
    assert not row.has_ja
    assert row.title_ja is None
    assert row.r2_key_ja is None
    assert response.removed == 1


async def test_unchanged_checkout_prunes_nothing(checkout, index):
    await seed_index(checkout, index)
    response = await seed_index(checkout, index)
    assert response.removed == 0
