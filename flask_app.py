# flask_app.py
from flask import Flask, render_template_string, abort, jsonify, redirect, request, current_app
import logging
import os

import click

from answer_judge import AnswerJudge
from pool import (
    decode_pool,
    folder_state,
    next_href,
    selection_href,
    start_href,
    toggle_file,
    toggle_folder,
)
from quiz_blocks import block_at, first_heading, pick_problem_block
from reveal import InteractiveView, RevealState, StaticView, clamp_ratio
from study_errors import DocumentNotFound, InvalidInput, register_error_handlers
from study_fs import (
    collect_markdown_tree,
    count_folders,
    find_folder,
    find_slug_collisions,
    flatten_files,
    load_document,
    to_study_href,
)
from study_index import index_items, search_index
from study_markdown import render_markdown

logger = logging.getLogger(__name__)

app = Flask(__name__)
APP_DIR = os.path.dirname(os.path.abspath(__file__))
BASE_DIR = os.environ.get('STUDY_BASE_DIR') or os.path.join(APP_DIR, "posts")


def _env_number(name: str, default, cast=float):
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r, using %r", name, raw, default)
        return default


app.config.update(
    STUDY_BASE_DIR=BASE_DIR,
    REVEAL_DEFAULT_RATIO=clamp_ratio(_env_number("REVEAL_DEFAULT_RATIO", 0.5)),
    REVEAL_BOX_VISIBLE=os.environ.get("REVEAL_BOX_VISIBLE", "").lower() in ("1", "true", "yes", "on"),
    JUDGE_DELAY_MS=_env_number("JUDGE_DELAY_MS", 500, int),
    RATIO_SETTLE_MS=_env_number("RATIO_SETTLE_MS", 50, int),
    AUTOFILL_TRIGGER=os.environ.get("AUTOFILL_TRIGGER", "?"),
    SEARCH_LIMIT=_env_number("SEARCH_LIMIT", 200, int),
)
register_error_handlers(app)


# -----------------------------
# Helpers
# -----------------------------
def posts_dir():
    return current_app.config["STUDY_BASE_DIR"]


def split_slug(slug: str):
    return [p for p in (slug or "").split("/") if p]


def load_or_404(slug: str):
    try:
        return load_document(posts_dir(), split_slug(slug))
    except DocumentNotFound:
        abort(404)


def doc_title(data, text: str, slug_arr, fallback: str):
    title = data.get("title")
    if isinstance(title, str) and title.strip():
        return title.strip()
    return first_heading(text) or (slug_arr[-1] if slug_arr else "") or fallback


def study_crumbs(slug_arr):
    crumbs = []
    for i in range(len(slug_arr) - 1):
        crumbs.append({"label": slug_arr[i], "href": to_study_href(slug_arr[:i + 1])})
    return crumbs


def reveal_config(slug_arr, block=None):
    cfg = current_app.config
    return {
        "endpoint": to_study_href(slug_arr, prefix="/api/reveal/"),
        "judgeUrl": "/api/judge",
        "block": block,
        "seed": 1,
        "ratio": cfg["REVEAL_DEFAULT_RATIO"],
        "signal": 0,
        "judgeDelay": cfg["JUDGE_DELAY_MS"],
        "settle": cfg["RATIO_SETTLE_MS"],
        "trigger": cfg["AUTOFILL_TRIGGER"],
    }


def render_static(text: str):
    return render_markdown(text, StaticView(), box_visible=current_app.config["REVEAL_BOX_VISIBLE"])


# -----------------------------
# Templates
# -----------------------------
BASE_CSS = """
    :root{
      --bg:#0b1220;
      --card:#0f1a2e;
      --text:#e6edf7;
      --muted:#9fb0c7;
      --accent:#63b3ed;
      --ok:#10b981;
      --bad:#f43f5e;
      --border:rgba(255,255,255,0.10);
      --shadow: 0 14px 40px rgba(0,0,0,0.35);
    }
    body{
      margin:0;
      font-family: Inter, Segoe UI, system-ui, -apple-system, sans-serif;
      background: radial-gradient(1200px 600px at 20% -10%, rgba(99,179,237,0.18), transparent 60%), var(--bg);
      color: var(--text);
      min-height:100vh;
      padding: 32px 18px 80px;
      box-sizing:border-box;
    }
    a{color: var(--accent); text-decoration:none;}
    a:hover{text-decoration:underline;}
    .wrap{max-width:1100px;margin:0 auto;}
    .title{font-size: 30px;font-weight: 900;letter-spacing: -0.02em;margin:0;}
    .subtitle{margin:6px 0 0;color: var(--muted);font-weight: 600;}
    .panel{
      background: linear-gradient(180deg, rgba(255,255,255,0.06), rgba(255,255,255,0.03));
      border: 1px solid var(--border);
      border-radius: 18px;
      padding: 16px;
      box-shadow: var(--shadow);
    }
    .pill{
      display:inline-flex;align-items:center;gap:6px;
      padding: 4px 9px;border-radius: 999px;
      background: rgba(99,179,237,0.14);border: 1px solid rgba(99,179,237,0.22);
      font-weight: 800;font-size: 11px;color: var(--text);
    }
    .muted{color: var(--muted);font-size: 12px;}
    .empty{
      margin-top: 18px;padding: 18px;border: 1px dashed var(--border);border-radius: 18px;
      color: var(--muted);font-weight: 700;
    }
    .btn{
      display:inline-block;padding: 8px 12px;border-radius: 12px;border: 1px solid var(--border);
      background: rgba(255,255,255,0.06);color: var(--text);font-weight: 700;font-size: 13px;cursor:pointer;
    }
    .btn.primary{background: #0284c7;border-color:#0ea5e9;}
    .btn[disabled]{opacity:.45;cursor:not-allowed;}
"""

HOME_HTML = """
<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>Study Hub</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <style>""" + BASE_CSS + """
    .grid{display:grid;grid-template-columns: repeat(auto-fill, minmax(260px, 1fr));gap: 14px;margin-top: 22px;}
    .card{display:block;color: var(--text);}
    .card:hover{text-decoration:none;border-color: rgba(99,179,237,0.35);}
    .card-title{font-weight: 900;font-size: 18px;margin: 10px 0 6px;}
  </style>
</head>
<body>
  <div class="wrap">
    <h1 class="title">Study Hub</h1>
    <p class="subtitle">{{ file_count }} notes in {{ folder_count }} folders</p>

    {% if file_count == 0 %}
      <div class="empty">No notes yet. Add .md or .mdx files under <code>{{ base_dir }}</code>.</div>
    {% endif %}

    <div class="grid">
      <a class="card panel" href="/study">
        <div class="pill">Study</div>
        <div class="card-title">Read &amp; fill in the blanks</div>
        <div class="muted">Browse every note; inline code becomes blanks you can answer.</div>
      </a>
      <a class="card panel" href="/random">
        <div class="pill">Random</div>
        <div class="card-title">Random problems</div>
        <div class="muted">Pick notes, then get one --- framed block at a time.</div>
      </a>
    </div>
  </div>
</body>
</html>
"""

STUDY_HTML = """
{% macro render_folder(node) %}
        <section class="folder">
          {% if node.path %}
            <div class="folder-head">
              <a href="{{ study_href(node.path) }}">{{ node.name }}</a>
              {% if node.files %}<span class="pill">{{ node.files|length }} files</span>{% endif %}
              {% if node.folders %}<span class="pill">{{ node.folders|length }} folders</span>{% endif %}
            </div>
          {% endif %}
          {% if node.files %}
            <ul class="files">
              {% for f in node.files %}
                <li><a href="{{ study_href(f.slug) }}">{{ f.title }}</a></li>
              {% endfor %}
            </ul>
          {% endif %}
          {% for child in node.folders %}{{ render_folder(child) }}{% endfor %}
        </section>
{% endmacro %}
<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>{{ heading }}</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <style>""" + BASE_CSS + """
    .top{display:flex;gap:14px;align-items:flex-end;justify-content:space-between;flex-wrap:wrap;margin-bottom:18px;}
    .search-box{position:relative;min-width:260px;max-width:460px;width:100%;}
    .search{
      width:100%;box-sizing:border-box;padding: 12px 14px;border-radius: 14px;border: 1px solid var(--border);
      background: rgba(255,255,255,0.06);color: var(--text);outline: none;
    }
    .results{
      position:absolute;left:0;right:0;top:calc(100% + 6px);z-index:30;max-height:65vh;overflow-y:auto;
      background: var(--card);border:1px solid var(--border);border-radius:14px;box-shadow: var(--shadow);
    }
    .results a{display:block;padding:10px 12px;border-bottom:1px solid var(--border);color: var(--text);}
    .results a:hover{background: rgba(99,179,237,0.10);text-decoration:none;}
    .folder{margin: 10px 0 18px;}
    .folder .folder{margin-left: 18px;}
    .folder-head{display:flex;align-items:center;gap:8px;font-weight:800;margin-bottom:8px;}
    .files{list-style:none;margin:0;padding:0;display:grid;grid-template-columns:repeat(auto-fill,minmax(220px,1fr));gap:8px;}
    .files a{display:block;padding:9px 12px;border-radius:12px;border:1px solid var(--border);background:rgba(255,255,255,0.04);color:var(--text);}
    .files a:hover{border-color: rgba(99,179,237,0.35);text-decoration:none;}
  </style>
</head>
<body>
  <div class="wrap">
    <div class="top">
      <div>
        <div class="muted"><a href="/">Home</a>{% for c in crumbs %} › <a href="{{ c.href }}">{{ c.label }}</a>{% endfor %}</div>
        <h1 class="title">{{ heading }}</h1>
        <p class="subtitle">{{ total }} notes</p>
      </div>
      <form class="search-box" action="/study" method="get">
        <input id="q" name="q" class="search" value="{{ q }}" placeholder="Search notes…" autocomplete="off">
        <div id="results" class="results" hidden></div>
        <div class="muted" style="margin-top:6px">Ignores case, accents and spaces. Up to {{ limit }} results.</div>
      </form>
    </div>

    {% if results is not none %}
      <div class="panel">
        <div class="muted">{{ results|length }} result{{ '' if results|length == 1 else 's' }} for “{{ q }}”</div>
        {% if results %}
          <ul class="files" style="margin-top:10px">
            {% for it in results %}
              <li><a href="{{ it.href }}"><div class="muted">{{ it.full_path_label }}</div>{{ it.title }}</a></li>
            {% endfor %}
          </ul>
        {% endif %}
      </div>
    {% elif folder.files|length == 0 and folder.folders|length == 0 %}
      <div class="empty">No notes yet. Add .md or .mdx files under <code>{{ base_dir }}</code>.</div>
    {% else %}
      {{ render_folder(folder) }}
    {% endif %}
  </div>

  <script>
    const q = document.getElementById('q');
    const box = document.getElementById('results');
    let searchTimer = null;

    function esc(s){
      return String(s).replace(/[&<>"']/g, c => ({'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;',"'":'&#39;'}[c]));
    }

    async function runSearch(){
      const v = q.value;
      if (!v){ box.hidden = true; box.innerHTML = ''; return; }
      const res = await fetch('/api/search?q=' + encodeURIComponent(v));
      if (!res.ok || q.value !== v) return;
      const data = await res.json();
      box.innerHTML = data.items.length
        ? data.items.map(it => `<a href="${esc(it.href)}"><div class="muted">${esc(it.full_path_label)}</div>${esc(it.title)}</a>`).join('')
        : '<div class="muted" style="padding:12px">No results.</div>';
      box.hidden = false;
    }

    q && q.addEventListener('input', () => {
      if (searchTimer) clearTimeout(searchTimer);
      searchTimer = setTimeout(runSearch, 150);
    });
  </script>
</body>
</html>
"""

RANDOM_HTML = """
{% macro render_folder(node) %}
        {% if node.files or node.folders %}
        <section class="folder">
          <a class="folder-head {{ folder_state(node) }}" href="{{ folder_toggle_href(node) }}" title="Select or clear the whole folder">
            <span class="check"></span>
            <span>{{ node.name if node.path else 'All notes' }}</span>
            {% if node.files %}<span class="pill">{{ node.files|length }} files</span>{% endif %}
            {% if node.folders %}<span class="pill">{{ node.folders|length }} folders</span>{% endif %}
          </a>
          {% if node.files %}
            <ul class="files">
              {% for f in node.files %}
                <li>
                  <a class="{{ 'on' if f.slug in pool else '' }}" href="{{ file_toggle_href(f) }}">
                    <span class="check"></span><span>{{ f.title }}</span>
                  </a>
                </li>
              {% endfor %}
            </ul>
          {% endif %}
          {% for child in node.folders %}{{ render_folder(child) }}{% endfor %}
        </section>
        {% endif %}
{% endmacro %}
<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>Random Study</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <style>""" + BASE_CSS + """
    .folder{margin: 10px 0 16px;}
    .folder .folder{margin-left: 18px;}
    .folder-head{display:flex;align-items:center;gap:8px;padding:6px 8px;border-radius:10px;color:var(--text);font-weight:800;}
    .folder-head:hover{background: rgba(255,255,255,0.05);text-decoration:none;}
    .check{display:inline-block;width:14px;height:14px;border-radius:4px;border:1px solid var(--muted);}
    .all > .check, .on > .check{background: var(--accent);border-color: var(--accent);}
    .some > .check{background: linear-gradient(135deg, var(--accent) 50%, transparent 50%);}
    .files{list-style:none;margin:6px 0 0;padding:0;display:grid;grid-template-columns:repeat(auto-fill,minmax(220px,1fr));gap:8px;}
    .files a{display:flex;align-items:center;gap:10px;padding:9px 12px;border-radius:12px;border:1px solid var(--border);background:rgba(255,255,255,0.04);color:var(--text);}
    .files a.on{border-color: var(--accent);background: rgba(99,179,237,0.12);}
    .files a:hover{text-decoration:none;}
    .bar{position:sticky;bottom:16px;display:flex;justify-content:space-between;align-items:center;margin-top:22px;}
  </style>
</head>
<body>
  <div class="wrap">
    <div class="muted"><a href="/">Home</a></div>
    <h1 class="title">Random study</h1>
    <p class="subtitle">Select notes; problems are drawn at random from the selection.</p>

    {% if tree.files|length == 0 and tree.folders|length == 0 %}
      <div class="empty">No notes yet. Add .md or .mdx files under <code>{{ base_dir }}</code>.</div>
    {% else %}
      <div class="panel">{{ render_folder(tree) }}</div>

      <div class="bar panel">
        <span>Selected: <b>{{ pool|length }}</b></span>
        {% if start %}
          <a class="btn primary" href="{{ start }}">Start random problems</a>
        {% else %}
          <button class="btn primary" type="button" disabled>Start random problems</button>
        {% endif %}
      </div>
    {% endif %}
  </div>
</body>
</html>
"""

DOC_HTML = """
<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>{{ title }}</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <style>""" + BASE_CSS + """
    .layout{display:grid;grid-template-columns: minmax(0,1fr) 260px;gap:22px;}
    @media (max-width: 860px){ .layout{grid-template-columns: 1fr;} .toc{order:-1;} }
    .doc{line-height:1.7;font-size:15px;}
    .doc h1,.doc h2,.doc h3{line-height:1.3;}
    .doc pre{background:#020617;border:1px solid var(--border);border-radius:12px;padding:12px;overflow-x:auto;}
    .doc table{border-collapse:collapse;}
    .doc th,.doc td{border:1px solid var(--border);padding:6px 10px;}
    .heading-anchor{margin-left:6px;opacity:.35;font-size:.8em;}
    .reveal-box{background:rgba(255,255,255,0.08);border-radius:6px;padding:1px 6px;font-size:.92em;}
    .blank{position:relative;display:inline-flex;align-items:center;vertical-align:baseline;}
    .blank-input{
      min-width:56px;padding:2px 26px 2px 8px;border-radius:8px;border:1px solid #64748b;
      background:rgba(255,255,255,0.92);color:#0f172a;font: inherit;font-size:.92em;outline:none;
    }
    .blank[data-status="correct"] .blank-input{border-color: var(--ok);box-shadow:0 0 0 3px rgba(16,185,129,0.18);}
    .blank[data-status="wrong"] .blank-input{border-color: var(--bad);box-shadow:0 0 0 3px rgba(244,63,94,0.18);}
    .blank-eye{position:absolute;right:4px;background:none;border:0;cursor:pointer;font-size:12px;opacity:.6;}
    .blank-answer{
      position:absolute;left:0;top:100%;z-index:20;margin-top:4px;padding:2px 8px;border-radius:8px;
      background:#fff;color:#334155;border:1px solid #cbd5e1;white-space:nowrap;font-size:.9em;
    }
    .toc ul{list-style:none;margin:0;padding:0;font-size:13px;}
    .toc li{padding:2px 0;}
    .toc .l2{padding-left:12px;}
    .toc .l3{padding-left:24px;color:var(--muted);}
    .controls{position:fixed;right:20px;bottom:20px;z-index:50;width:250px;}
    .controls input[type=range]{width:100%;}
    .nav{display:flex;justify-content:space-between;margin-top:28px;}
  </style>
</head>
<body id="top">
  <div class="wrap layout">
    <article>
      <div class="panel" style="margin-bottom:18px">
        <div class="muted">
          <a href="{{ root_href }}">{{ root_label }}</a>{% for c in crumbs %} › <a href="{{ c.href }}">{{ c.label }}</a>{% endfor %}
        </div>
        <h1 class="title" style="margin-top:8px">{{ title }}</h1>
        {% if file_label %}<div class="muted">File: <code>{{ file_label }}</code></div>{% endif %}
      </div>

      <div id="doc-body" class="doc">{{ body|safe }}</div>

      <div class="nav">
        <a class="btn" href="{{ back_href }}">← {{ back_label }}</a>
        <div>
          {% if next_href %}<a class="btn primary" href="{{ next_href }}">Next problem</a>{% endif %}
          <a class="muted" href="#top" style="margin-left:10px">Top ↑</a>
        </div>
      </div>
    </article>

    <aside class="toc">
      <div class="panel">
        <div style="font-weight:800;margin-bottom:8px">Contents</div>
        {% if toc %}
          <ul>
            {% for item in toc %}
              <li class="l{{ item.level }}"><a href="#{{ item.id }}">{{ item.text }}</a></li>
            {% endfor %}
          </ul>
        {% else %}
          <div class="muted">No headings (#, ##, ###).</div>
        {% endif %}
      </div>
    </aside>
  </div>

  <div class="controls panel">
    <div style="display:flex;justify-content:space-between;font-weight:800;font-size:13px">
      <span>Reveal ratio</span><span id="ratio-label"></span>
    </div>
    <input id="ratio" type="range" min="0" max="100" disabled>
    <div style="display:flex;justify-content:space-between;align-items:center;margin-top:8px">
      <span id="blank-stats" class="muted">Lower means more blanks.</span>
      <button id="reset" class="btn" type="button" title="Reshuffle blanks and clear answers" disabled>Reset</button>
    </div>
  </div>

  <script>
  (function(){
    const cfg = {{ reveal|tojson }};
    const body = document.getElementById('doc-body');
    const slider = document.getElementById('ratio');
    const label = document.getElementById('ratio-label');
    const stats = document.getElementById('blank-stats');
    const resetBtn = document.getElementById('reset');
    const state = {seed: cfg.seed, ratio: cfg.ratio, signal: cfg.signal};

    let local = state.ratio;
    let dragging = false;
    let commitTimer = null;

    function showRatio(){
      slider.value = Math.round(local * 100);
      label.textContent = Math.round(local * 100) + '%';
    }

    function revealUrl(action){
      const p = new URLSearchParams({seed: state.seed, ratio: state.ratio, signal: state.signal});
      if (cfg.block !== null) p.set('block', cfg.block);
      if (action) p.set('action', action);
      return cfg.endpoint + '?' + p.toString();
    }

    function wireBlank(el){
      const input = el.querySelector('.blank-input');
      const eye = el.querySelector('.blank-eye');
      const peek = el.querySelector('.blank-answer');
      const answer = el.dataset.answer;
      let timer = null;

      function cancel(){
        if (timer !== null){ clearTimeout(timer); timer = null; }
      }

      async function judge(value){
        const res = await fetch(cfg.judgeUrl, {
          method: 'POST',
          headers: {'Content-Type': 'application/json'},
          body: JSON.stringify({answer: answer, value: value}),
        });
        if (!res.ok) return;
        const data = await res.json();
        if (!data.autofilled && input.value.replace(/[\\r\\n]/g, '') !== value) return;
        if (data.autofilled){
          input.value = data.value;
          peek.hidden = true;
          requestAnimationFrame(() => input.setSelectionRange(data.value.length, data.value.length));
        }
        el.dataset.status = data.status;
      }

      input.addEventListener('input', () => {
        const raw = input.value.replace(/[\\r\\n]/g, '');
        el.dataset.status = 'default';
        cancel();
        if (cfg.trigger && raw.endsWith(cfg.trigger)){ judge(raw); return; }
        timer = setTimeout(() => { timer = null; judge(raw); }, cfg.judgeDelay);
      });
      input.addEventListener('keydown', (e) => {
        if (e.key !== 'Enter') return;
        e.preventDefault();
        cancel();
        judge(input.value);
      });
      eye.addEventListener('click', () => { peek.hidden = !peek.hidden; });
      el._cancel = cancel;
    }

    function blanks(){
      return Array.from(body.querySelectorAll('.blank'));
    }

    async function load(action){
      const kept = {};
      blanks().forEach(b => {
        b._cancel && b._cancel();
        const input = b.querySelector('.blank-input');
        if (action !== 'reset' && input && input.value){
          kept[b.dataset.index] = {value: input.value, status: b.dataset.status || 'default', answer: b.dataset.answer};
        }
      });

      const res = await fetch(revealUrl(action), {headers: {'Accept': 'application/json'}});
      if (!res.ok) return;
      const data = await res.json();
      state.seed = data.seed;
      state.ratio = data.ratio;
      state.signal = data.reset_signal;
      if (!dragging) local = state.ratio;

      body.innerHTML = data.html;
      blanks().forEach(b => {
        wireBlank(b);
        const prev = kept[b.dataset.index];
        if (prev && prev.answer === b.dataset.answer){
          b.querySelector('.blank-input').value = prev.value;
          b.dataset.status = prev.status;
        }
      });
      stats.textContent = data.hidden + ' of ' + data.total + ' blank';
      slider.disabled = false;
      resetBtn.disabled = false;
      showRatio();
    }

    function commit(){
      if (commitTimer !== null) clearTimeout(commitTimer);
      commitTimer = setTimeout(() => {
        commitTimer = null;
        if (local !== state.ratio){ state.ratio = local; load(); }
      }, cfg.settle);
    }

    slider.addEventListener('input', () => { local = Number(slider.value) / 100; label.textContent = slider.value + '%'; });
    slider.addEventListener('pointerdown', () => { dragging = true; });
    slider.addEventListener('change', commit);
    slider.addEventListener('keyup', (e) => {
      if (['Enter', ' ', 'ArrowLeft', 'ArrowRight'].includes(e.key)) commit();
    });
    const release = () => { if (dragging){ dragging = false; commit(); } };
    window.addEventListener('pointerup', release);
    window.addEventListener('touchend', release);
    resetBtn.addEventListener('click', () => load('reset'));

    showRatio();
    requestAnimationFrame(() => load());
  })();
  </script>
</body>
</html>
"""


# -----------------------------
# Routes
# -----------------------------
@app.route("/")
def home():
    tree = collect_markdown_tree(posts_dir())
    return render_template_string(
        HOME_HTML,
        file_count=len(flatten_files(tree)),
        folder_count=count_folders(tree),
        base_dir=posts_dir(),
    )


def _render_listing(tree, folder, q="", results=None):
    crumbs = []
    if folder["path"]:
        parts = folder["path"].split("/")
        crumbs = [{"label": "Study", "href": "/study"}] + study_crumbs(parts)
    return render_template_string(
        STUDY_HTML,
        heading=folder["name"] or "Study",
        crumbs=crumbs,
        folder=folder,
        q=q,
        results=results,
        total=len(flatten_files(folder)),
        limit=current_app.config["SEARCH_LIMIT"],
        base_dir=posts_dir(),
        study_href=to_study_href,
    )


@app.route("/study")
def study():
    tree = collect_markdown_tree(posts_dir())
    q = request.args.get("q", "")
    results = None
    if q:
        results = search_index(index_items(tree), q, current_app.config["SEARCH_LIMIT"])
    return _render_listing(tree, tree, q=q, results=results)


@app.route("/study/<path:slug>")
def study_doc(slug):
    try:
        doc = load_document(posts_dir(), split_slug(slug))
    except DocumentNotFound:
        tree = collect_markdown_tree(posts_dir())
        folder = find_folder(tree, slug)
        if folder is None or not folder["path"]:
            abort(404)
        return _render_listing(tree, folder)

    slug_arr = doc["slug"]
    rendered = render_static(doc["content"])
    return render_template_string(
        DOC_HTML,
        title=doc_title(doc["data"], doc["content"], slug_arr, "Untitled"),
        root_label="Study",
        root_href="/study",
        crumbs=study_crumbs(slug_arr),
        file_label=None,
        body=rendered["html"],
        toc=rendered["toc"],
        back_href="/study",
        back_label="Back to list",
        next_href=None,
        reveal=reveal_config(slug_arr),
    )


@app.route("/random")
def random_select():
    tree = collect_markdown_tree(posts_dir())
    known = {f["slug"] for f in flatten_files(tree)}
    pool = [s for s in decode_pool(request.args.get("files")) if s in known]

    toggle = request.args.get("toggle")
    if toggle is not None:
        if toggle in known:
            pool = toggle_file(pool, toggle)
        return redirect(selection_href(pool))
    toggle_path = request.args.get("toggle_folder")
    if toggle_path is not None:
        folder = find_folder(tree, toggle_path)
        if folder is not None:
            pool = toggle_folder(pool, folder)
        return redirect(selection_href(pool))

    return render_template_string(
        RANDOM_HTML,
        tree=tree,
        pool=pool,
        start=start_href(pool),
        base_dir=posts_dir(),
        folder_state=lambda node: folder_state(pool, node),
        folder_toggle_href=lambda node: selection_href(toggle_folder(pool, node)),
        file_toggle_href=lambda f: selection_href(toggle_file(pool, f["slug"])),
    )


@app.route("/random/<path:slug>")
def random_problem(slug):
    doc = load_or_404(slug)
    slug_arr = doc["slug"]
    current = "/".join(slug_arr)
    pool = decode_pool(request.args.get("files"))

    index, block = pick_problem_block(doc["content"])
    rendered = render_static(block)

    return render_template_string(
        DOC_HTML,
        title=doc_title(doc["data"], block, slug_arr, "Problem"),
        root_label="Random",
        root_href=selection_href(pool),
        crumbs=study_crumbs(slug_arr),
        file_label=current + os.path.splitext(doc["path"])[1],
        body=rendered["html"],
        toc=rendered["toc"],
        back_href=selection_href(pool),
        back_label="Choose notes again",
        next_href=next_href(pool, current=current),
        reveal=reveal_config(slug_arr, block=index),
    )


# ---------- API ----------
@app.route("/api/reveal/<path:slug>")
def api_reveal(slug):
    cfg = current_app.config
    doc = load_document(posts_dir(), split_slug(slug))

    block = request.args.get("block", type=int)
    text = doc["content"] if block is None else block_at(doc["content"], block)

    state = RevealState(
        ratio=clamp_ratio(request.args.get("ratio"), default=cfg["REVEAL_DEFAULT_RATIO"]),
        seed=request.args.get("seed", 1, type=int),
        reset_signal=request.args.get("signal", 0, type=int),
    )
    if request.args.get("action") == "reset":
        state.reset()

    rendered = render_markdown(text, InteractiveView(state), box_visible=cfg["REVEAL_BOX_VISIBLE"])
    decisions = rendered["decisions"]
    return jsonify({
        "html": rendered["html"],
        "hidden": sum(1 for d in decisions if d.hidden),
        "total": len(decisions),
        **state.to_dict(),
    })


@app.route("/api/judge", methods=["POST"])
def api_judge():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or not isinstance(payload.get("answer"), str):
        raise InvalidInput("'answer' must be a string", field="answer")
    value = payload.get("value", "")
    if not isinstance(value, str):
        raise InvalidInput("'value' must be a string", field="value")

    cfg = current_app.config
    judge = AnswerJudge(
        payload["answer"],
        delay=cfg["JUDGE_DELAY_MS"] / 1000.0,
        autofill_trigger=cfg["AUTOFILL_TRIGGER"],
    )
    judge.enter(value)
    return jsonify({"status": judge.status, "value": judge.value, "autofilled": judge.autofilled})


@app.route("/api/search")
def api_search():
    q = request.args.get("q", "")
    items = index_items(collect_markdown_tree(posts_dir()))
    results = search_index(items, q, current_app.config["SEARCH_LIMIT"])
    return jsonify({"items": results, "total": len(results)})


@app.route("/api/tree")
def api_tree():
    return jsonify(collect_markdown_tree(posts_dir()))


# ---------- CLI ----------
@app.cli.command("check-corpus")
def check_corpus():
    """Report notes whose paths collapse to the same slug."""
    root = app.config["STUDY_BASE_DIR"]
    collisions = find_slug_collisions(root)
    if not collisions:
        click.echo(f"No slug collisions under {root}")
        return
    for slug, paths in sorted(collisions.items()):
        logger.warning("Slug %r is produced by %s", slug, ", ".join(paths))
        click.echo(f"{slug}: {', '.join(paths)}")
    raise SystemExit(1)


if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Serving notes from %s", BASE_DIR)
    app.run(debug=True, port=8000)
