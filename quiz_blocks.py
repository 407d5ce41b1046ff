# quiz_blocks.py
import logging
import random
import re

logger = logging.getLogger(__name__)

SEPARATOR = "---"

_LINE_SPLIT_RE = re.compile(r"\r?\n")
_H1_RE = re.compile(r"^#[ \t]+(.+)$", re.M)

_system_random = random.SystemRandom()


def separator_indices(lines):
    return [i for i, line in enumerate(lines) if line.strip() == SEPARATOR]


def extract_problem_blocks(content: str):
    """
    Blocks framed by a ``---`` line above and below.

    Every adjacent pair of separators frames one candidate, so
        ---
        Q1
        ---
        ---
        Q2
        ---
    yields ["Q1", "Q2"] (the empty frame between the middle pair is dropped).
    Fewer than two separators means there are no framed blocks at all.
    """
    lines = _LINE_SPLIT_RE.split(content or "")
    seps = separator_indices(lines)
    if len(seps) < 2:
        return []

    blocks = []
    for start, end in zip(seps, seps[1:]):
        if start + 1 >= end:
            continue
        chunk = "\n".join(lines[start + 1:end]).strip()
        if not chunk:
            continue
        blocks.append(chunk)
    return blocks


def candidate_blocks(content: str):
    # no framed blocks: the whole document is the question
    return extract_problem_blocks(content) or [(content or "").strip()]


def pick_problem_block(content: str, rng=None):
    """Choose one candidate block; returns ``(index, block)``.

    Uses fresh entropy unless an ``rng`` is given: every visit is a new
    question.
    """
    rng = rng or _system_random
    blocks = candidate_blocks(content)
    idx = rng.randrange(len(blocks))
    logger.debug("Picked block %d of %d", idx, len(blocks))
    return idx, blocks[idx]


def block_at(content: str, index):
    blocks = candidate_blocks(content)
    if index is None or not 0 <= index < len(blocks):
        return blocks[0]
    return blocks[index]


def first_heading(text: str):
    m = _H1_RE.search(text or "")
    return m.group(1).strip() if m else None
