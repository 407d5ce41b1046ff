# answer_judge.py
import logging
import re
import threading
import unicodedata

logger = logging.getLogger(__name__)

DEFAULT = "default"
CORRECT = "correct"
WRONG = "wrong"

JUDGE_DELAY = 0.5
AUTOFILL_TRIGGER = "?"

_WS_RE = re.compile(r"\s+")
_NEWLINE_RE = re.compile(r"[\r\n]")


def normalize_answer(s: str):
    return _WS_RE.sub("", unicodedata.normalize("NFC", s or ""))


def answers_match(value: str, expected: str):
    return normalize_answer(value) == normalize_answer(expected)


class Debouncer:
    """Trailing debounce: only the last call inside ``delay`` seconds runs.

    ``timer_factory`` has the ``threading.Timer`` signature; tests pass a
    manual timer.
    """

    def __init__(self, delay: float, timer_factory=threading.Timer):
        self.delay = delay
        self._timer_factory = timer_factory
        self._timer = None

    @property
    def pending(self):
        return self._timer is not None

    def call(self, fn, *args):
        self.cancel()

        def fire():
            if self._timer is timer:
                self._timer = None
            fn(*args)

        timer = self._timer_factory(self.delay, fire)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def cancel(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class AnswerJudge:
    """State of one blank: what was typed, how it was judged, whether the answer is peeked."""

    def __init__(self, answer: str, delay: float = JUDGE_DELAY, autofill_trigger: str = AUTOFILL_TRIGGER,
                 timer_factory=threading.Timer):
        self.answer = answer or ""
        self.autofill_trigger = autofill_trigger
        self.value = ""
        self.status = DEFAULT
        self.show_answer = False
        self.caret = None
        self.autofilled = False
        self._debouncer = Debouncer(delay, timer_factory)
        self._state = None

    @property
    def pending(self):
        return self._debouncer.pending

    def judge(self, text: str):
        self.status = CORRECT if answers_match(text, self.answer) else WRONG
        return self.status

    def _autofill(self, raw: str):
        if not (self.autofill_trigger and raw.endswith(self.autofill_trigger)):
            return False
        self._debouncer.cancel()
        self.value = self.answer
        self.status = CORRECT
        self.show_answer = False
        self.caret = len(self.answer)
        self.autofilled = True
        return True

    def change(self, raw: str):
        raw = _NEWLINE_RE.sub("", raw or "")
        self.status = DEFAULT
        self.autofilled = False
        if self._autofill(raw):
            return self.status

        self.value = raw
        self.caret = len(raw)
        self._debouncer.call(self.judge, raw)
        return self.status

    def enter(self, raw: str):
        """Input followed by Enter: judged at once, nothing is scheduled."""
        raw = _NEWLINE_RE.sub("", raw or "")
        self.autofilled = False
        if self._autofill(raw):
            return self.status

        self._debouncer.cancel()
        self.value = raw
        self.caret = len(raw)
        return self.judge(raw)

    def submit(self):
        self._debouncer.cancel()
        return self.judge(self.value)

    def toggle_answer(self):
        self.show_answer = not self.show_answer
        return self.show_answer

    def on_reset(self, signal=None):
        self._debouncer.cancel()
        self.value = ""
        self.status = DEFAULT
        self.show_answer = False
        self.caret = None
        self.autofilled = False

    def bind(self, state):
        state.subscribe(self.on_reset)
        self._state = state
        return self

    def close(self):
        self._debouncer.cancel()
        if self._state is not None:
            self._state.unsubscribe(self.on_reset)
            self._state = None

    def to_dict(self):
        return {
            "value": self.value,
            "status": self.status,
            "show_answer": self.show_answer,
            "autofilled": self.autofilled,
        }
