# study_fs.py
import locale
import logging
import os
import re
import unicodedata
from urllib.parse import quote, unquote

import yaml

from study_errors import DocumentNotFound

logger = logging.getLogger(__name__)

DOC_EXTENSIONS = (".md", ".mdx")
INDEX_NAMES = ("index", "readme")

FRONT_MATTER_RE = re.compile(r"(?s)\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)")
_DOC_EXT_RE = re.compile(r"\.(md|mdx)$", re.I)
_ANY_EXT_RE = re.compile(r"\.[^/.]+$")
_WS_RE = re.compile(r"\s+")
_COMBINING_RE = re.compile(r"[\u0300-\u036f]")


# -----------------------------
# Segments, titles, front matter
# -----------------------------
def normalize_segment(seg: str):
    s = unicodedata.normalize("NFC", seg or "")
    # Cc = control, Cf = format (zero-width joiners, BOMs, bidi marks ...)
    s = "".join(ch for ch in s if unicodedata.category(ch) not in ("Cc", "Cf"))
    s = _WS_RE.sub(" ", s).strip()
    return s.replace("＆", "&")


def is_document_name(name: str):
    return name.lower().endswith(DOC_EXTENSIONS)


def title_from_filename(fname: str):
    return _ANY_EXT_RE.sub("", fname)


def parse_front_matter(raw: str):
    """Split ``raw`` into ``(data, body)``.

    Only a leading ``---`` fenced YAML *mapping* counts as front matter. A
    fenced block that is not a mapping (a quiz block opening the file, for
    example) is left in the body untouched.
    """
    m = FRONT_MATTER_RE.match(raw or "")
    if not m:
        return {}, raw or ""
    try:
        data = yaml.safe_load(m.group(1) or "")
    except yaml.YAMLError:
        return {}, raw
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return {}, raw
    return data, raw[m.end():]


def extract_title(raw: str, fallback: str):
    data, _ = parse_front_matter(raw)
    title = data.get("title")
    if isinstance(title, str) and title.strip():
        return title.strip()
    return fallback


def slug_parts(rel_path):
    """Normalized slug segments for a path relative to the corpus root.

    Accepts a ``/`` (or ``\\``) separated string or a list of raw segments.
    """
    if isinstance(rel_path, str):
        segments = rel_path.replace("\\", "/").split("/")
    else:
        segments = list(rel_path)
    if segments:
        segments[-1] = _DOC_EXT_RE.sub("", segments[-1])
    parts = [p for p in (normalize_segment(s) for s in segments) if p]
    if parts and parts[-1].lower() in INDEX_NAMES:
        parts.pop()
    return parts


def sort_key(text: str):
    folded = unicodedata.normalize("NFKD", text.casefold())
    base = _COMBINING_RE.sub("", folded)
    return (locale.strxfrm(base), locale.strxfrm(text.casefold()), text)


def _read_text(path: str):
    with open(path, "r", encoding="utf-8-sig") as f:
        return f.read()


# -----------------------------
# Tree walk
# -----------------------------
def empty_tree():
    return {"name": "", "path": "", "folders": [], "files": []}


def _walk(dir_path: str, rel_parts):
    folders = []
    files = []

    for name in os.listdir(dir_path):
        if name.startswith("."):
            continue
        full = os.path.join(dir_path, name)

        if os.path.isdir(full):
            folders.append(_walk(full, rel_parts + [name]))
            continue

        if not (os.path.isfile(full) and is_document_name(name)):
            continue

        raw = _read_text(full)
        title = extract_title(raw, title_from_filename(name))
        parts = slug_parts(rel_parts + [name])
        if not parts:
            continue
        files.append({
            "title": title,
            "slug": "/".join(parts),
            "rel_dir": "/".join(parts[:-1]),
        })

    path_parts = [p for p in (normalize_segment(s) for s in rel_parts) if p]
    return {
        "name": normalize_segment(rel_parts[-1]) if rel_parts else "",
        "path": "/".join(path_parts),
        "folders": sorted(folders, key=lambda f: sort_key(f["name"])),
        "files": sorted(files, key=lambda f: sort_key(f["title"])),
    }


def collect_markdown_tree(root_dir: str):
    if not os.path.isdir(root_dir):
        logger.info("Study root %s does not exist, serving an empty tree", root_dir)
        return empty_tree()
    tree = _walk(root_dir, [])
    logger.debug("Collected %d documents under %s", len(flatten_files(tree)), root_dir)
    return tree


def flatten_files(root):
    out = []

    def rec(node):
        out.extend(node["files"])
        for child in node["folders"]:
            rec(child)

    rec(root)
    return out


def count_folders(root):
    return sum(1 + count_folders(child) for child in root["folders"])


def find_folder(root, path: str):
    wanted = "/".join(p for p in (normalize_segment(s) for s in (path or "").split("/")) if p)
    if root["path"] == wanted:
        return root
    for child in root["folders"]:
        if wanted == child["path"] or wanted.startswith(child["path"] + "/"):
            hit = find_folder(child, wanted)
            if hit is not None:
                return hit
    return None


# -----------------------------
# Flat iteration and lookup
# -----------------------------
def iter_document_files(root_dir: str):
    """Yield ``(abs_path, rel_parts, slug)`` for every document, in path order."""
    if not os.path.isdir(root_dir):
        return
    for dirpath, dirnames, filenames in os.walk(root_dir, followlinks=True):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        rel_dir = os.path.relpath(dirpath, root_dir)
        rel_base = [] if rel_dir == os.curdir else rel_dir.split(os.sep)
        for name in sorted(filenames):
            if name.startswith(".") or not is_document_name(name):
                continue
            rel = rel_base + [name]
            parts = slug_parts(rel)
            if parts:
                yield os.path.join(dirpath, name), rel, "/".join(parts)


def get_all_study_slugs(root_dir: str):
    return [slug.split("/") for _, _, slug in iter_document_files(root_dir)]


def find_slug_collisions(root_dir: str):
    seen = {}
    for _, rel, slug in iter_document_files(root_dir):
        seen.setdefault(slug, []).append("/".join(rel))
    return {slug: paths for slug, paths in seen.items() if len(paths) > 1}


def _is_safe_segment(seg: str):
    # hidden entries are never walked, so they are never served either
    if not seg or seg.startswith("."):
        return False
    return not any(ch in seg for ch in ("/", "\\", "\x00"))


def _inside(root_dir: str, path: str):
    root = os.path.realpath(root_dir)
    try:
        return os.path.commonpath([root, os.path.realpath(path)]) == root
    except ValueError:
        return False


def _direct_candidates(root_dir: str, parts):
    base = os.path.join(root_dir, *parts)
    # .mdx wins over .md when both exist
    yield base + ".mdx"
    yield base + ".md"
    if os.path.isdir(base):
        for name in sorted(os.listdir(base)):
            stem = _DOC_EXT_RE.sub("", name)
            if stem != name and stem.lower() in INDEX_NAMES:
                yield os.path.join(base, name)


def find_document_path(root_dir: str, parts):
    parts = list(parts or [])
    if not parts or not all(_is_safe_segment(p) for p in parts):
        return None
    if not os.path.isdir(root_dir):
        return None

    variants = [parts]
    nfc = [unicodedata.normalize("NFC", p) for p in parts]
    if nfc != parts:
        variants.append(nfc)

    for variant in variants:
        for candidate in _direct_candidates(root_dir, variant):
            if os.path.isfile(candidate) and _inside(root_dir, candidate):
                return candidate

    # names on disk may differ from the normalized slug (NFD, stray whitespace)
    wanted = "/".join(slug_parts(parts))
    for full, _, slug in iter_document_files(root_dir):
        if slug == wanted:
            return full
    return None


def load_document(root_dir: str, parts):
    path = find_document_path(root_dir, parts)
    if path is None:
        raise DocumentNotFound(list(parts or []))
    raw = _read_text(path)
    data, content = parse_front_matter(raw)
    rel = os.path.relpath(path, root_dir).split(os.sep)
    return {"data": data, "content": content, "path": path, "slug": slug_parts(rel)}


# -----------------------------
# URLs
# -----------------------------
def to_url_segments(slug_arr):
    return [quote(s, safe="") for s in slug_arr]


def from_url_segments(encoded):
    return [unquote(s) for s in encoded]


def _decode_segment(seg: str):
    try:
        return unquote(seg, errors="strict")
    except UnicodeDecodeError:
        return seg


def to_study_href(value, prefix: str = "/study/"):
    parts = value if isinstance(value, (list, tuple)) else [p for p in value.split("/") if p]
    safe = [quote(unicodedata.normalize("NFC", _decode_segment(seg)), safe="") for seg in parts]
    return prefix + "/".join(safe)
