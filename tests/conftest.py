import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from flask_app import app as flask_app


GUIDE_MD = """---
title: Guide
tags: [geo]
---
# Guide

The capital is `Paris` and the river is `Seine`.

```python
print("not a blank")
```
"""

QUIZ_MD = "---\ntitle: Test\n---\n---\nQ1\n---\n---\nQ2\n---\n"


def write_note(root, rel, text):
    path = root.joinpath(*rel.split("/"))
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(text, bytes):
        path.write_bytes(text)
    else:
        path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def note_writer():
    return write_note


@pytest.fixture
def corpus(tmp_path):
    root = tmp_path / "posts"
    write_note(root, "a/b.md", QUIZ_MD)
    write_note(root, "guide.md", GUIDE_MD)
    return root


@pytest.fixture
def app(corpus):
    saved = dict(flask_app.config)
    flask_app.config.update(TESTING=True, STUDY_BASE_DIR=str(corpus))
    yield flask_app
    flask_app.config.clear()
    flask_app.config.update(saved)


@pytest.fixture
def client(app):
    return app.test_client()


class ManualTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    @property
    def live(self):
        return self.started and not self.cancelled and not self.fired

    def fire(self):
        if self.live:
            self.fired = True
            self.function(*self.args, **self.kwargs)


class ManualTimers:
    def __init__(self):
        self.created = []

    def __call__(self, interval, function, args=None, kwargs=None):
        timer = ManualTimer(interval, function, args, kwargs)
        self.created.append(timer)
        return timer

    def live(self):
        return [t for t in self.created if t.live]

    def fire_all(self):
        for timer in self.live():
            timer.fire()


@pytest.fixture
def timers():
    return ManualTimers()
