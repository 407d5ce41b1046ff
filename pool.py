# pool.py
"""
Random-study selection pool.

The pool is the list of slug paths ("folder/sub/file") a learner picked on
the /random page. It never lives on the server: every navigation target
carries it as a JSON array in the ``files`` query parameter.
"""

import json
import logging
import random
from urllib.parse import quote

logger = logging.getLogger(__name__)

RANDOM_PREFIX = "/random"

_system_random = random.SystemRandom()


# -------- codec --------
def decode_pool(raw):
    """Pool from the ``files`` parameter. Anything malformed is an empty pool."""
    if not raw or not isinstance(raw, str):
        return []
    try:
        parsed = json.loads(raw)
    except (ValueError, RecursionError):
        logger.debug("Ignoring malformed pool parameter %r", raw[:80])
        return []
    if not isinstance(parsed, list):
        logger.debug("Ignoring non-list pool parameter %r", raw[:80])
        return []

    out = []
    seen = set()
    for item in parsed:
        if isinstance(item, str) and item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


def encode_pool(pool):
    return json.dumps(list(pool), ensure_ascii=False, separators=(",", ":"))


# -------- toggles --------
def collect_slug_paths(folder):
    out = [f["slug"] for f in folder["files"]]
    for child in folder["folders"]:
        out.extend(collect_slug_paths(child))
    return out


def toggle_file(pool, slug_path: str):
    if slug_path in pool:
        return [s for s in pool if s != slug_path]
    return list(pool) + [slug_path]


def folder_state(pool, folder):
    """'all', 'some' or 'none' of the files under ``folder`` are in the pool."""
    everything = collect_slug_paths(folder)
    chosen = [s for s in everything if s in pool]
    if everything and len(chosen) == len(everything):
        return "all"
    return "some" if chosen else "none"


def toggle_folder(pool, folder):
    everything = collect_slug_paths(folder)
    if not everything:
        return list(pool)
    if folder_state(pool, folder) == "all":
        drop = set(everything)
        return [s for s in pool if s not in drop]
    out = list(pool)
    for s in everything:
        if s not in out:
            out.append(s)
    return out


# -------- navigation --------
def make_token(rng=None):
    rng = rng or _system_random
    return format(rng.getrandbits(48), "x")


def random_href(slug_path: str, pool=None, token=None):
    segments = [quote(seg, safe="") for seg in slug_path.split("/") if seg]
    href = RANDOM_PREFIX + "/" + "/".join(segments)
    params = []
    if pool:
        params.append("files=" + quote(encode_pool(pool), safe=""))
    if token:
        params.append("r=" + quote(token, safe=""))
    if params:
        href += "?" + "&".join(params)
    return href


def selection_href(pool):
    if not pool:
        return RANDOM_PREFIX
    return RANDOM_PREFIX + "?files=" + quote(encode_pool(pool), safe="")


def start(pool, rng=None):
    if not pool:
        return None
    rng = rng or _system_random
    return rng.choice(list(pool))


def start_href(pool, rng=None):
    slug_path = start(pool, rng=rng)
    if slug_path is None:
        return None
    return random_href(slug_path, pool)


def next_slug(pool, current=None, exclude_current=False, rng=None):
    """Draw the next slug with replacement; repeats are allowed."""
    if not pool:
        return None
    rng = rng or _system_random
    choices = list(pool)
    if exclude_current and current is not None:
        others = [s for s in choices if s != current]
        if others:
            choices = others
    return rng.choice(choices)


def next_href(pool, current=None, exclude_current=False, rng=None):
    slug_path = next_slug(pool, current=current, exclude_current=exclude_current, rng=rng)
    if slug_path is None:
        return RANDOM_PREFIX
    return random_href(slug_path, pool, token=make_token(rng))
