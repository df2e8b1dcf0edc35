"""Interactive REPL for ETX scripts, powered by prompt_toolkit."""

from __future__ import annotations

import asyncio
import re
import sys

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.shortcuts import clear

from .commands import CommandTable
from .eval.blocks import TERMINATORS, opens_block
from .evaluator import execute_source
from .repl_highlight import EtxLexer
from .runtime import ExecutionContext
from .types import EtxRuntimeError, ReturnSignal, ScriptSource
from .utils import debug_py_trace_enabled, set_debug_py_trace

# Zero-width and invisible characters to strip from input.
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u00a0\r]")

# Slash commands: name => (description, argument_hint).
_SLASH_CMDS = {
    "/clear": ("Clear the terminal screen", ""),
    "/debug": ("Toggle line-by-line debug echo", "[on|off]"),
    "/py-traceback": ("Toggle Python traceback on errors", "[on|off]"),
    "/reset": ("Reset variables and functions", ""),
    "/vars": ("Show defined variables and functions", ""),
}

_ON = ("on", "1", "true", "yes")
_OFF = ("off", "0", "false", "no")


def pending_blocks(text: str) -> int:
    """Number of blocks opened in *text* that are not yet closed."""
    depth = 0

    for line in text.split("\n"):
        stripped = line.strip()
        if opens_block(stripped):
            depth += 1
        elif stripped in TERMINATORS:
            depth = max(depth - 1, 0)

    return depth


class _SlashCompleter(Completer):
    """Autocomplete slash commands and registered command names."""

    def __init__(self, ctx: ExecutionContext):
        self.ctx = ctx

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor

        if text.startswith("/"):
            for cmd, (desc, hint) in _SLASH_CMDS.items():
                if cmd.startswith(text):
                    yield Completion(cmd, start_position=-len(text), display_meta=desc)
            return

        dispatcher = self.ctx.dispatcher
        if "\n" in text or " " in text or not text or not isinstance(dispatcher, CommandTable):
            return

        for name in dispatcher.names():
            if name.startswith(text):
                yield Completion(
                    name,
                    start_position=-len(text),
                    display_meta=dispatcher.commands[name].description,
                )


def _parse_toggle(arg: str, current: bool) -> bool | None:
    lowered = arg.lower()
    if lowered in _ON:
        return True
    if lowered in _OFF:
        return False
    if arg == "":
        return not current
    return None


def _handle_slash(line: str, ctx: ExecutionContext) -> bool:
    """Handle slash commands. Returns True if the line was a command."""
    stripped = line.strip()
    if not stripped.startswith("/"):
        return False

    parts = stripped.split(None, 1)
    cmd = parts[0]
    arg = parts[1] if len(parts) > 1 else ""

    if cmd == "/clear":
        clear()
        return True

    if cmd == "/py-traceback":
        enabled = _parse_toggle(arg, debug_py_trace_enabled())
        if enabled is None:
            print("Usage: /py-traceback [on|off]", file=sys.stderr)
            return True

        set_debug_py_trace(enabled)
        print(f"Python traceback: {'on' if enabled else 'off'}")
        return True

    if cmd == "/debug":
        enabled = _parse_toggle(arg, ctx.debug)
        if enabled is None:
            print("Usage: /debug [on|off]", file=sys.stderr)
            return True

        ctx.set_debug_mode(enabled)
        print(f"Debug mode: {'on' if enabled else 'off'}")
        return True

    if cmd == "/vars":
        snapshot = ctx.get_context()
        for name, value in sorted(snapshot["variables"].items()):
            print(f"{name} = {value!r}")
        if snapshot["functions"]:
            print("functions: " + ", ".join(snapshot["functions"]))
        return True

    if cmd == "/reset":
        ctx.reset()
        print("Environment reset.")
        return True

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return True


def _normalize(text: str) -> str:
    """Strip invisible characters from input."""
    return _INVISIBLE_RE.sub("", text)


async def repl_eval(text: str, ctx: ExecutionContext) -> ReturnSignal | None:
    """Run one REPL entry against the persistent context."""
    signal = await execute_source(ScriptSource.from_text(text, "<repl>"), ctx)
    return signal if isinstance(signal, ReturnSignal) else None


async def _repl_loop(ctx: ExecutionContext) -> None:
    bindings = KeyBindings()

    @bindings.add("enter")
    def _enter(event):
        buf = event.app.current_buffer
        text = buf.text

        # Submit once every opened block has its terminator.
        if pending_blocks(text) == 0:
            buf.validate_and_handle()
            return

        buf.insert_text("\n")

    session: PromptSession[str] = PromptSession(
        history=InMemoryHistory(),
        lexer=EtxLexer(),
        completer=_SlashCompleter(ctx),
        complete_while_typing=True,
        key_bindings=bindings,
        multiline=True,
        prompt_continuation="... ",
    )

    print("etx repl - Ctrl-D to exit, / for commands")

    while True:
        try:
            text = await session.prompt_async(">>> ")
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("KeyboardInterrupt")
            continue

        text = _normalize(text)
        if not text.strip():
            continue

        if _handle_slash(text, ctx):
            continue

        try:
            signal = await repl_eval(text, ctx)
        except EtxRuntimeError as exc:
            ctx.call_stack.clear()
            ctx.report(f"Error: {exc}", exc)
            continue
        finally:
            # a cancelled entry must not poison the next one
            ctx.clear_cancellation()

        if signal is not None:
            print(repr(signal.value))


def repl(debug: bool=False, ctx: ExecutionContext | None=None) -> None:
    """Interactive read-eval-print loop with prompt_toolkit."""
    context = ctx if ctx is not None else ExecutionContext(debug=debug)
    asyncio.run(_repl_loop(context))
