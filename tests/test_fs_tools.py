from __future__ import annotations

import os

import pytest

from recipekit.core.Exceptions import ToolInvocationError
from recipekit.tools import LocalFsTools, ToolCatalog
from recipekit.tools.fs import human_readable


@pytest.fixture
def tree(tmp_path):
    tmp_path = tmp_path.resolve()
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "a.pdf").write_bytes(b"x" * 10)
    (tmp_path / "docs" / "b.PDF").write_bytes(b"x" * 20)
    (tmp_path / "docs" / "notes.md").write_text("# notes\n", encoding="utf-8")
    (tmp_path / "docs" / "nested").mkdir()
    (tmp_path / "docs" / "nested" / "c.png").write_bytes(b"x" * 30)
    (tmp_path / "docs" / ".hidden.txt").write_text("secret", encoding="utf-8")
    return tmp_path


@pytest.fixture
def fs(tree) -> LocalFsTools:
    return LocalFsTools(allowed_root=tree, cwd=tree, max_kb=1)


@pytest.fixture
def catalog(fs) -> ToolCatalog:
    return ToolCatalog.build([fs])


def test_published_tools(catalog) -> None:
    assert catalog.keys() == {"readFile", "writeFile", "readText", "countEntries", "filesByType", "totalSizeByType"}


def test_read_and_write_roundtrip(catalog, tree) -> None:
    result = catalog.invoke("writeFile", ["out/summary.md", "# Summary"])

    assert result == f"wrote:\n{tree / 'out' / 'summary.md'}"
    assert catalog.invoke("readFile", "out/summary.md") == "# Summary"
    assert catalog.invoke("readFile", {"path": str(tree / "out" / "summary.md")}) == "# Summary"


def test_paths_outside_root_are_rejected(catalog, tree) -> None:
    with pytest.raises(ToolInvocationError, match="escapes allowed root"):
        catalog.invoke("readFile", ["../outside.txt"])
    with pytest.raises(ToolInvocationError, match="escapes allowed root"):
        catalog.invoke("writeFile", ["/etc/recipekit-test", "nope"])
    with pytest.raises(ToolInvocationError, match="not found"):
        catalog.invoke("readFile", ["missing.txt"])


@pytest.fixture
def symlinks(tmp_path):
    target = tmp_path / "support-target"
    try:
        os.symlink(target, tmp_path / "support-link")
    except (OSError, NotImplementedError):
        pytest.skip("symlinks are not supported here")
    return tmp_path.resolve()


def test_symlinked_root_is_usable(symlinks) -> None:
    real = symlinks / "real"
    real.mkdir()
    (real / "x.txt").write_text("inside", encoding="utf-8")
    link = symlinks / "link"
    os.symlink(real, link, target_is_directory=True)

    fs = LocalFsTools(allowed_root=link, cwd=link)

    assert fs.read_file(str(link / "x.txt")) == "inside"
    assert fs.read_file("x.txt") == "inside"
    fs.write_file(str(link / "new" / "y.txt"), "written")
    assert (real / "new" / "y.txt").read_text(encoding="utf-8") == "written"


def test_symlink_escaping_root_is_rejected(symlinks) -> None:
    root = (symlinks / "root").resolve()
    root.mkdir()
    outside = symlinks / "secret.txt"
    outside.write_text("secret", encoding="utf-8")
    os.symlink(outside, root / "peek.txt")
    os.symlink(symlinks, root / "up", target_is_directory=True)
    fs = LocalFsTools(allowed_root=root, cwd=root)

    with pytest.raises(ToolInvocationError, match="escapes allowed root"):
        fs.read_file("peek.txt")
    with pytest.raises(ToolInvocationError, match="escapes allowed root"):
        fs.write_file("up/planted.txt", "x")
    assert fs.read_text("peek.txt")["error"] == "read_failed"
    assert not (symlinks / "planted.txt").exists()


def test_read_text_success(fs, tree) -> None:
    result = fs.read_text("docs/notes.md")

    assert result == {"ok": True, "text": "# notes\n", "path": str(tree / "docs" / "notes.md"), "bytes": 8}


def test_read_text_errors_are_reported_not_raised(fs, tree) -> None:
    (tree / "big.txt").write_text("a" * 2048, encoding="utf-8")
    (tree / "blob.bin").write_bytes(b"\x00\x01\x02binary")

    assert fs.read_text("big.txt")["error"] == "too_large"
    assert fs.read_text("blob.bin")["error"] == "binary"
    missing = fs.read_text("nope.txt")
    assert missing["ok"] is False
    assert missing["error"] == "read_failed"


def test_count_entries(catalog) -> None:
    flat = catalog.invoke("countEntries", {"path": "docs"})
    deep = catalog.invoke("countEntries", {"path": "docs", "recursive": "true", "includeHidden": True})

    assert (flat["files"], flat["dirs"], flat["bytes"]) == (3, 1, 38)
    assert (deep["files"], deep["dirs"]) == (5, 1)
    assert deep["human"] == human_readable(deep["bytes"])


def test_files_by_type_category_and_extensions(catalog) -> None:
    docs = catalog.invoke("filesByType", {"path": "docs", "category": "doc"})
    images = catalog.invoke("filesByType", {"path": "docs", "category": "image", "recursive": True})
    pdfs = catalog.invoke("filesByType", {"path": "docs", "extensions": [".PDF"]})

    assert docs["files"] == [".hidden.txt", "a.pdf", "b.PDF", "notes.md"]
    assert images["files"] == ["nested/c.png"]
    assert pdfs["count"] == 2
    assert pdfs["nextCursor"] is None


def test_files_by_type_pagination(catalog) -> None:
    first = catalog.invoke("filesByType", {"path": "docs", "category": "doc", "limit": 3})
    second = catalog.invoke("filesByType", {"path": "docs", "category": "doc", "limit": 3, "cursor": first["nextCursor"]})

    assert first["files"] == [".hidden.txt", "a.pdf", "b.PDF"]
    assert first["nextCursor"] == "3"
    assert second["files"] == ["notes.md"]
    assert second["nextCursor"] is None


def test_files_by_type_requires_a_filter(catalog) -> None:
    with pytest.raises(ToolInvocationError, match="either"):
        catalog.invoke("filesByType", {"path": "docs"})
    with pytest.raises(ToolInvocationError, match="Unknown category"):
        catalog.invoke("filesByType", {"path": "docs", "category": "spreadsheet"})
    with pytest.raises(ToolInvocationError, match="Not a directory"):
        catalog.invoke("filesByType", {"path": "docs/a.pdf", "category": "doc"})


def test_total_size_by_type(catalog) -> None:
    result = catalog.invoke("totalSizeByType", {"path": "docs", "extensions": ["pdf"], "category": "image"})
    by_category = catalog.invoke("totalSizeByType", {"path": "docs", "category": "image", "recursive": True})

    assert (result["count"], result["bytes"], result["matchedExtensions"]) == (2, 30, ["pdf"])
    assert result["human"] == "30 B"
    assert by_category["bytes"] == 30


@pytest.mark.parametrize(
    ("size", "expected"),
    [(0, "0 B"), (1023, "1023 B"), (1536, "1.50 KB"), (5 * 1024 * 1024, "5.00 MB")],
)
def test_human_readable(size, expected) -> None:
    assert human_readable(size) == expected
