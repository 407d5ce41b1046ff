import os
import sys
import unicodedata

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from study_errors import DocumentNotFound
from study_fs import (
    collect_markdown_tree,
    find_document_path,
    find_folder,
    find_slug_collisions,
    flatten_files,
    get_all_study_slugs,
    load_document,
    normalize_segment,
    parse_front_matter,
    slug_parts,
    to_study_href,
)


def test_normalize_segment_cleans_whitespace_and_invisibles():
    zwsp = chr(0x200B)
    assert normalize_segment("  a" + zwsp + "  b   c  ") == "a b c"
    # tabs are control characters: dropped, not turned into spaces
    assert normalize_segment("b\t\tc") == "bc"
    assert normalize_segment("bell" + chr(7)) == "bell"
    assert normalize_segment("R" + chr(0xFF06) + "D") == "R&D"


def test_normalize_segment_composes_hangul():
    decomposed = unicodedata.normalize("NFD", "한글")
    assert decomposed != "한글"
    assert normalize_segment(decomposed) == "한글"


def test_slug_parts_strips_extension_and_index():
    assert slug_parts("notes/intro.md") == ["notes", "intro"]
    assert slug_parts("notes/intro.MDX") == ["notes", "intro"]
    assert slug_parts("notes/index.md") == ["notes"]
    assert slug_parts("notes/README.md") == ["notes"]
    assert slug_parts(["  spaced  dir ", "file name.md"]) == ["spaced dir", "file name"]


def test_parse_front_matter_mapping():
    data, body = parse_front_matter("---\ntitle: Hello\n---\nbody text\n")
    assert data == {"title": "Hello"}
    assert body == "body text\n"


def test_parse_front_matter_leaves_non_mapping_in_body():
    raw = "---\nWhat is 2 + 2?\n---\n"
    data, body = parse_front_matter(raw)
    assert data == {}
    assert body == raw


def test_parse_front_matter_broken_yaml():
    raw = "---\ntitle: [unclosed\n---\nbody\n"
    assert parse_front_matter(raw) == ({}, raw)


def test_tree_skips_hidden_and_non_documents(tmp_path, note_writer):
    note_writer(tmp_path, "visible.md", "x")
    note_writer(tmp_path, ".hidden.md", "x")
    note_writer(tmp_path, ".git/config.md", "x")
    note_writer(tmp_path, "image.png", b"\x89PNG")
    note_writer(tmp_path, "notes.txt", "x")

    tree = collect_markdown_tree(str(tmp_path))
    assert [f["slug"] for f in flatten_files(tree)] == ["visible"]
    assert tree["folders"] == []


def test_tree_titles_and_sorting(tmp_path, note_writer):
    note_writer(tmp_path, "gamma.md", "x")
    note_writer(tmp_path, "beta.md", "x")
    note_writer(tmp_path, "zeta.md", "---\ntitle: Alpha\n---\nx")
    note_writer(tmp_path, "blank.md", "---\ntitle: '   '\n---\nx")

    titles = [f["title"] for f in collect_markdown_tree(str(tmp_path))["files"]]
    assert titles == ["Alpha", "beta", "blank", "gamma"]


def test_tree_sorting_folds_accents(tmp_path, note_writer):
    note_writer(tmp_path, "zeta.md", "---\ntitle: Zeta\n---\n")
    note_writer(tmp_path, "eclair.md", "---\ntitle: Éclair\n---\n")
    note_writer(tmp_path, "eagle.md", "---\ntitle: eagle\n---\n")
    note_writer(tmp_path, "Ölbaum/x.md", "x")
    note_writer(tmp_path, "pine/x.md", "x")
    note_writer(tmp_path, "oak/x.md", "x")

    tree = collect_markdown_tree(str(tmp_path))
    assert [f["title"] for f in tree["files"]] == ["eagle", "Éclair", "Zeta"]
    assert [f["name"] for f in tree["folders"]] == ["oak", "Ölbaum", "pine"]


def test_symlinked_folders_are_walked_everywhere(tmp_path, note_writer):
    outside = tmp_path / "shared"
    root = tmp_path / "posts"
    note_writer(outside, "linked.md", "x")
    note_writer(root, "linked.md", "x")
    os.symlink(str(outside), str(root / "shared"))

    tree_slugs = sorted(f["slug"] for f in flatten_files(collect_markdown_tree(str(root))))
    assert tree_slugs == ["linked", "shared/linked"]
    assert sorted("/".join(s) for s in get_all_study_slugs(str(root))) == tree_slugs
    assert load_document(str(root), ["shared", "linked"])["slug"] == ["shared", "linked"]


def test_tree_folders_carry_normalized_paths(tmp_path, note_writer):
    note_writer(tmp_path, "os/ kernel  notes /sched.md", "x")
    note_writer(tmp_path, "os/index.md", "x")

    tree = collect_markdown_tree(str(tmp_path))
    os_folder = tree["folders"][0]
    assert os_folder["path"] == "os"
    assert [f["slug"] for f in os_folder["files"]] == ["os"]
    inner = os_folder["folders"][0]
    assert inner["name"] == "kernel notes"
    assert inner["path"] == "os/kernel notes"
    assert inner["files"][0] == {"title": "sched", "slug": "os/kernel notes/sched", "rel_dir": "os/kernel notes"}


def test_slugs_never_carry_raw_whitespace_or_controls(tmp_path, note_writer):
    note_writer(tmp_path, " dir   with " + chr(0x200B) + "gaps /a" + chr(7) + "  b.md", "x")
    assert get_all_study_slugs(str(tmp_path)) == [["dir with gaps", "a b"]]
    for slug in get_all_study_slugs(str(tmp_path)):
        for seg in slug:
            assert seg == seg.strip()
            assert "  " not in seg
            assert all(unicodedata.category(ch) not in ("Cc", "Cf") for ch in seg)
            assert unicodedata.normalize("NFC", seg) == seg


def test_missing_root_gives_empty_tree(tmp_path):
    tree = collect_markdown_tree(str(tmp_path / "nope"))
    assert tree == {"name": "", "path": "", "folders": [], "files": []}
    assert get_all_study_slugs(str(tmp_path / "nope")) == []


def test_unreadable_document_is_not_swallowed(tmp_path, note_writer):
    note_writer(tmp_path, "bad.md", b"\xff\xfe\xfa not utf-8")
    with pytest.raises(UnicodeDecodeError):
        collect_markdown_tree(str(tmp_path))


def test_slug_collisions(tmp_path, note_writer):
    note_writer(tmp_path, "a.md", "x")
    note_writer(tmp_path, "a.mdx", "x")
    note_writer(tmp_path, "x/index.md", "x")
    note_writer(tmp_path, "x.md", "x")
    note_writer(tmp_path, "solo.md", "x")

    collisions = find_slug_collisions(str(tmp_path))
    assert sorted(collisions) == ["a", "x"]
    assert sorted(collisions["a"]) == ["a.md", "a.mdx"]
    assert sorted(collisions["x"]) == ["x.md", "x/index.md"]


def test_load_document_prefers_mdx(tmp_path, note_writer):
    note_writer(tmp_path, "a.md", "from md")
    note_writer(tmp_path, "a.mdx", "from mdx")
    doc = load_document(str(tmp_path), ["a"])
    assert doc["content"] == "from mdx"
    assert doc["slug"] == ["a"]


def test_load_document_index_and_front_matter(tmp_path, note_writer):
    note_writer(tmp_path, "topic/index.md", "---\ntitle: Topic\n---\nbody")
    doc = load_document(str(tmp_path), ["topic"])
    assert doc["data"] == {"title": "Topic"}
    assert doc["content"] == "body"
    assert doc["slug"] == ["topic"]


def test_load_document_matches_decomposed_names_on_disk(tmp_path, note_writer):
    note_writer(tmp_path, unicodedata.normalize("NFD", "한글") + ".md", "hangul")
    doc = load_document(str(tmp_path), ["한글"])
    assert doc["content"] == "hangul"


def test_load_document_matches_messy_names_on_disk(tmp_path, note_writer):
    note_writer(tmp_path, "two  spaces .md", "messy")
    assert load_document(str(tmp_path), ["two spaces"])["content"] == "messy"


def test_load_document_not_found(tmp_path, note_writer):
    note_writer(tmp_path, "a.md", "x")
    with pytest.raises(DocumentNotFound) as exc:
        load_document(str(tmp_path), ["missing", "doc"])
    assert exc.value.status_code == 404
    assert exc.value.slug == "missing/doc"


def test_lookup_rejects_traversal(tmp_path, note_writer):
    root = tmp_path / "posts"
    note_writer(tmp_path, "secret.md", "do not serve")
    note_writer(root, "ok.md", "x")
    assert find_document_path(str(root), ["..", "secret"]) is None
    with pytest.raises(DocumentNotFound):
        load_document(str(root), ["..", "secret"])


def test_lookup_rejects_hidden_entries(tmp_path, note_writer):
    note_writer(tmp_path, ".drafts/secret.md", "draft")
    note_writer(tmp_path, ".hidden.md", "draft")
    assert find_document_path(str(tmp_path), [".drafts", "secret"]) is None
    assert find_document_path(str(tmp_path), [".hidden"]) is None
    with pytest.raises(DocumentNotFound):
        load_document(str(tmp_path), [".drafts", "secret"])


def test_find_folder(corpus):
    tree = collect_markdown_tree(str(corpus))
    assert find_folder(tree, "")["path"] == ""
    assert find_folder(tree, "a")["files"][0]["slug"] == "a/b"
    assert find_folder(tree, "nope") is None


def test_to_study_href():
    assert to_study_href(["a", "b"]) == "/study/a/b"
    assert to_study_href("folder name/note") == "/study/folder%20name/note"
    assert to_study_href(["%ED%95%9C"]) == to_study_href(["한"])
    # malformed escapes are encoded as-is
    assert to_study_href(["%E0%A4%A"]) == "/study/%25E0%25A4%25A"
    assert to_study_href(["x"], prefix="/api/reveal/") == "/api/reveal/x"
