# study_markdown.py
import html
import logging
import xml.etree.ElementTree as etree

import markdown
from markdown.extensions import Extension
from markdown.extensions.toc import TocExtension, slugify_unicode
from markdown.treeprocessors import Treeprocessor
from markdown.util import AtomicString, code_escape

from reveal import InlineSpan, StaticView

logger = logging.getLogger(__name__)

TOC_MAX_LEVEL = 3


class RevealTreeprocessor(Treeprocessor):
    """Hand every code span to the view and rewrite it as text or a blank.

    Runs after inline parsing and the TOC. Fenced code never reaches the tree
    (it is stashed as raw HTML) and indented code sits inside ``<pre>``; both
    are left verbatim.
    """

    def __init__(self, md, view, box_visible=False):
        super().__init__(md)
        self.view = view
        self.box_visible = box_visible
        self.decisions = []

    def run(self, root):
        self.decisions = []
        parents = {child: parent for parent in root.iter() for child in parent}
        position = 0

        for el in list(root.iter("code")):
            parent = parents.get(el)
            is_block = (parent is not None and parent.tag == "pre") or "language-" in el.get("class", "")
            if is_block:
                continue
            position += 1
            text = html.unescape(el.text or "")
            decision = self.view.decide(InlineSpan(text), position)
            self.decisions.append(decision)
            if decision.hidden:
                self._blank(el, decision)
            else:
                self._plain(el, text)

    def _plain(self, el, text):
        el.attrib.clear()
        if self.box_visible:
            el.set("class", "reveal-box")
        else:
            el.tag = "span"
            el.set("class", "reveal-text")
        el.text = AtomicString(code_escape(text))

    def _blank(self, el, decision):
        text = decision.text
        el.tag = "span"
        el.attrib.clear()
        el.set("class", "blank")
        el.set("data-index", str(decision.index))
        el.set("data-answer", text)
        el.text = None

        inp = etree.SubElement(el, "input")
        inp.set("type", "text")
        inp.set("class", "blank-input")
        inp.set("autocomplete", "off")
        inp.set("spellcheck", "false")
        inp.set("aria-label", "Answer")
        inp.set("style", "width: %dch" % max(4, len(text) + 2))

        btn = etree.SubElement(el, "button")
        btn.set("type", "button")
        btn.set("class", "blank-eye")
        btn.set("aria-label", "Show answer")
        btn.text = "👁"

        peek = etree.SubElement(el, "span")
        peek.set("class", "blank-answer")
        peek.set("hidden", "hidden")
        peek.text = AtomicString(code_escape(text))


class RevealExtension(Extension):
    def __init__(self, **kwargs):
        self.config = {
            "view": [StaticView(), "StaticView or InteractiveView deciding each code span"],
            "box_visible": [False, "Keep a code box around shown spans"],
        }
        super().__init__(**kwargs)
        self.processor = None

    def extendMarkdown(self, md):
        self.processor = RevealTreeprocessor(md, self.getConfig("view"), self.getConfig("box_visible"))
        md.treeprocessors.register(self.processor, "reveal", 4)


def flatten_toc(tokens, max_level: int = TOC_MAX_LEVEL):
    out = []
    for tok in tokens:
        if tok["level"] <= max_level:
            out.append({"level": tok["level"], "id": tok["id"], "text": html.unescape(tok["name"])})
        out.extend(flatten_toc(tok.get("children") or [], max_level))
    return out


def render_markdown(text: str, view=None, box_visible=False):
    reveal_ext = RevealExtension(view=view or StaticView(), box_visible=box_visible)
    md = markdown.Markdown(extensions=[
        "fenced_code",
        "tables",
        "sane_lists",
        TocExtension(
            permalink="#",
            permalink_class="heading-anchor",
            slugify=slugify_unicode,
            toc_depth="1-%d" % TOC_MAX_LEVEL,
        ),
        reveal_ext,
    ])
    body = md.convert(text or "")
    decisions = reveal_ext.processor.decisions
    logger.debug(
        "Rendered %d chars, %d inline spans, %d hidden",
        len(text or ""), len(decisions), sum(1 for d in decisions if d.hidden),
    )
    return {"html": body, "toc": flatten_toc(getattr(md, "toc_tokens", [])), "decisions": decisions}
