"""Tiny terminal UI helpers (prompt_toolkit-based).

Used by the interactive ``add`` command to pick an account, a category or a
criticality when they were not given on the command line. Kept separate from
the ledger logic so the prompts can be driven from tests with a pipe input.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

from .errors import ValidationError as LedgerValidationError
from .money import parse_amount


def _session_for(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def _best_prefix_match(words: Sequence[str], text: str) -> str | None:
    if not text:
        return None
    lower = text.lower()
    for w in words:
        wl = w.lower()
        if wl == lower:
            return None
        if wl.startswith(lower):
            return w
    return None


class _PrefixSuggest(AutoSuggest):
    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        cand = _best_prefix_match(self._vocab, document.text)
        if cand is None:
            return None
        return Suggestion(cand[len(document.text) :])


class _OneOf(Validator):
    def __init__(self, allowed_lower: set[str]) -> None:
        self._allowed_lower = allowed_lower

    def validate(self, document) -> None:
        if document.text.strip().lower() not in self._allowed_lower:
            raise ValidationError(message="Select a value from the list.")


def select_option(
    options: Sequence[str] | Iterable[str],
    *,
    default: str = "",
    message: str = "Choose (Enter to accept): ",
    session: PromptSession | None = None,
    allow_new: bool = False,
) -> str:
    """Prompt for one of ``options`` with completion and inline suggestions.

    Enter accepts the buffer after applying a visible prefix suggestion, so
    typing ``Gro`` then Enter selects ``Groceries``. Tab applies the suggestion
    or opens the completion menu. Matching is case-insensitive and the
    canonical spelling from ``options`` is returned. With ``allow_new`` any
    non-empty value is accepted as typed.
    """

    words = list(options)
    canonical = {w.lower(): w for w in words}
    kb = KeyBindings()

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        cand = _best_prefix_match(words, b.document.text)
        if cand:
            b.insert_text(cand[len(b.document.text) :])
        elif b.complete_state is None:
            b.start_completion(select_first=True)
        else:
            b.complete_next()

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            cand = _best_prefix_match(words, b.document.text)
            if cand:
                b.insert_text(cand[len(b.document.text) :])
        b.validate_and_handle()

    sess = _session_for(session, kb)
    result = sess.prompt(
        message,
        default=default,
        completer=WordCompleter(words, ignore_case=True, match_middle=True, sentence=False),
        auto_suggest=_PrefixSuggest(words),
        validator=None if allow_new else _OneOf(set(canonical)),
        validate_while_typing=False,
        key_bindings=kb,
        style=Style.from_dict({"auto-suggestion": "fg:#888888"}),
    )
    value = result.strip()
    return canonical.get(value.lower(), value)


class _AmountValidator(Validator):
    def validate(self, document) -> None:
        try:
            parse_amount(document.text)
        except LedgerValidationError as exc:
            raise ValidationError(message=str(exc)) from exc


def prompt_amount(
    *,
    initial: str = "",
    session: PromptSession | None = None,
    message: str = "Amount: ",
) -> str:
    """Collect an amount, re-prompting inline until it parses."""

    kb = KeyBindings()
    sess = _session_for(session, kb)
    return sess.prompt(
        message, default=initial, validator=_AmountValidator(), validate_while_typing=False
    )


def prompt_text(
    *,
    message: str,
    initial: str = "",
    session: PromptSession | None = None,
    required: bool = False,
) -> str | None:
    """Free-text prompt; Esc cancels and returns ``None``."""

    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    class _Required(Validator):
        def validate(self, document) -> None:
            if required and not document.text.strip():
                raise ValidationError(message="A value is required.")

    sess = _session_for(session, kb)
    value = sess.prompt(message, default=initial, validator=_Required(), validate_while_typing=False)
    return value.strip() if value is not None else None


__all__ = ["select_option", "prompt_amount", "prompt_text"]
