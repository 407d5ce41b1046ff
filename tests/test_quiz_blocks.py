import os
import random
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from quiz_blocks import (
    block_at,
    candidate_blocks,
    extract_problem_blocks,
    first_heading,
    pick_problem_block,
)


TWO_BLOCKS = "---\nQ1\n---\n---\nQ2\n---\n"


def test_adjacent_fences_yield_one_block_each():
    assert extract_problem_blocks(TWO_BLOCKS) == ["Q1", "Q2"]


def test_n_fenced_blocks_yield_n_blocks():
    body = "".join("---\nQuestion %d\nline two\n---\n" % i for i in range(5))
    blocks = extract_problem_blocks(body)
    assert blocks == ["Question %d\nline two" % i for i in range(5)]
    assert all(b == b.strip() and b for b in blocks)


def test_text_between_fences_is_a_candidate():
    text = "intro\n---\nfirst\n---\nbetween\n---\nlast\n---\noutro"
    assert extract_problem_blocks(text) == ["first", "between", "last"]


def test_separator_lines_tolerate_surrounding_whitespace():
    assert extract_problem_blocks("  ---  \r\nA\r\n---\t\r\n") == ["A"]
    # four dashes are not a separator
    assert extract_problem_blocks("----\nA\n----\n") == []


def test_fewer_than_two_separators():
    assert extract_problem_blocks("no fences at all") == []
    assert extract_problem_blocks("above\n---\nbelow") == []
    assert extract_problem_blocks("") == []


def test_candidate_blocks_falls_back_to_whole_document():
    assert candidate_blocks("  # Title\n\nbody  \n") == ["# Title\n\nbody"]
    assert candidate_blocks(TWO_BLOCKS) == ["Q1", "Q2"]


def test_extraction_is_idempotent():
    text = "---\nA\n---\n---\nB\n---\n---\nC\n---\n"
    first = extract_problem_blocks(text)
    for _ in range(5):
        assert extract_problem_blocks(text) == first


def test_pick_is_deterministic_with_seeded_rng():
    a = pick_problem_block(TWO_BLOCKS, rng=random.Random(7))
    b = pick_problem_block(TWO_BLOCKS, rng=random.Random(7))
    assert a == b
    assert a[1] == ["Q1", "Q2"][a[0]]


def test_pick_reaches_every_block():
    rng = random.Random(3)
    seen = {pick_problem_block(TWO_BLOCKS, rng=rng)[1] for _ in range(200)}
    assert seen == {"Q1", "Q2"}


def test_pick_without_fences_returns_whole_document():
    assert pick_problem_block("just text\n") == (0, "just text")


def test_block_at():
    assert block_at(TWO_BLOCKS, 1) == "Q2"
    assert block_at(TWO_BLOCKS, 0) == "Q1"
    assert block_at(TWO_BLOCKS, 9) == "Q1"
    assert block_at(TWO_BLOCKS, -1) == "Q1"
    assert block_at(TWO_BLOCKS, None) == "Q1"


def test_first_heading():
    assert first_heading("intro\n# Real Title \n## Sub") == "Real Title"
    assert first_heading("## only sub") is None
    assert first_heading("#nospace") is None
