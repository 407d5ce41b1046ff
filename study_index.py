# study_index.py
import logging
import re
import unicodedata

from study_fs import collect_markdown_tree, flatten_files, to_study_href

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 200

_COMBINING_RE = re.compile(r"[\u0300-\u036f]")
_WS_RE = re.compile(r"\s+")


def index_items(tree):
    items = []
    for f in flatten_files(tree):
        slug_arr = [unicodedata.normalize("NFC", s) for s in f["slug"].split("/")]
        items.append({
            "title": f["title"],
            "slug": slug_arr,
            "href": to_study_href(slug_arr),
            "full_path_label": "/".join(slug_arr),
        })
    return items


def build_study_index(root_dir: str):
    return index_items(collect_markdown_tree(root_dir))


def normalize_search_text(s: str):
    """Case, accent and whitespace insensitive form used on both sides of a search."""
    s = unicodedata.normalize("NFKD", (s or "").lower())
    s = _COMBINING_RE.sub("", s)
    return _WS_RE.sub("", s)


def search_index(items, query: str, limit: int = SEARCH_LIMIT):
    """Rank ``items`` by where ``query`` first occurs in title + path label.

    Earlier matches rank higher; ties keep index order. Items that do not
    contain the query are dropped.
    """
    if not query:
        return list(items[:limit])

    nq = normalize_search_text(query)
    scored = []
    for it in items:
        hay = normalize_search_text(f"{it['title']} {it['full_path_label']}")
        score = hay.find(nq)
        if score != -1:
            scored.append((score, it))

    scored.sort(key=lambda pair: pair[0])
    logger.debug("Search %r matched %d of %d items", query, len(scored), len(items))
    return [it for _, it in scored[:limit]]
