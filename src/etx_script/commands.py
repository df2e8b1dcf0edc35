"""Command collaborator: everything that is not a language statement lands here."""

from __future__ import annotations

import asyncio
import inspect
import shlex
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from .diagnostics import ScriptLogger, get_logger
from .types import EtxCommandError

if TYPE_CHECKING:
    from .runtime import ExecutionContext

logger = get_logger(__name__)

CommandResult = Union[None, Awaitable[None]]
CommandFn = Callable[['ExecutionContext', List[str]], CommandResult]

class CommandDispatcher(Protocol):
    async def dispatch(self, command: str, ctx: 'ExecutionContext') -> None: ...

@dataclass(frozen=True)
class CommandSpec:
    name: str
    fn: CommandFn
    description: str = ""

class CommandTable:
    """Name -> handler registry; handlers may be plain or async functions."""

    def __init__(self, builtins: bool=True):
        self.commands: Dict[str, CommandSpec] = {}

        if builtins:
            register_builtins(self)

    def register_command(self, name: str, description: str=""):
        def dec(fn: CommandFn):
            self.commands[name] = CommandSpec(name=name, fn=fn, description=description)
            return fn

        return dec

    def names(self) -> List[str]:
        return sorted(self.commands)

    async def dispatch(self, command: str, ctx: 'ExecutionContext') -> None:
        try:
            words = shlex.split(command)
        except ValueError as exc:
            raise EtxCommandError(command, f"Malformed command: {exc}") from exc

        if not words:
            return

        spec: Optional[CommandSpec] = self.commands.get(words[0])
        if spec is None:
            raise EtxCommandError(command, f"Command not found: {words[0]}")

        logger.debug("dispatch %s", words[0])
        result = spec.fn(ctx, words[1:])
        if inspect.isawaitable(result):
            await result

def register_builtins(table: CommandTable) -> None:
    @table.register_command("echo", "Print the arguments")
    def _echo(ctx: 'ExecutionContext', args: List[str]) -> None:
        ctx.terminal.write_line(" ".join(args))

    @table.register_command("sleep", "Pause for MS milliseconds")
    async def _sleep(ctx: 'ExecutionContext', args: List[str]) -> None:
        if len(args) != 1:
            raise EtxCommandError("sleep", "Usage: sleep MS")

        try:
            ms = float(args[0])
        except ValueError:
            raise EtxCommandError("sleep", f"Invalid duration: {args[0]}") from None

        await asyncio.sleep(max(ms, 0.0) / 1000)

    @table.register_command("help", "List available commands")
    def _help(ctx: 'ExecutionContext', args: List[str]) -> None:
        for name in table.names():
            desc = table.commands[name].description
            ctx.terminal.write_line(f"{name:<10} {desc}".rstrip())

    @table.register_command("script-log", "Control script logging: on|off|level LEVEL|stats")
    def _script_log(ctx: 'ExecutionContext', args: List[str]) -> None:
        sink = ctx.sink
        if not isinstance(sink, ScriptLogger):
            raise EtxCommandError("script-log", "Script logging is not active for this session")

        action = args[0].lower() if args else "stats"

        match action:
            case "on" | "enable":
                sink.enable()
                ctx.terminal.write_line("Script logging enabled", color="green")
            case "off" | "disable":
                sink.disable()
                ctx.terminal.write_line("Script logging disabled", color="red")
            case "level":
                if len(args) < 2:
                    raise EtxCommandError("script-log", "Usage: script-log level <debug|info|warn|error>")
                try:
                    sink.set_level(args[1])
                except ValueError:
                    raise EtxCommandError(
                        "script-log", f"Invalid log level: {args[1]} (use debug, info, warn or error)"
                    ) from None
                ctx.terminal.write_line(f"Log level set to: {sink.level}", color="green")
            case "stats":
                _write_log_stats(ctx, sink.stats())
            case _:
                raise EtxCommandError("script-log", f"Unknown script-log action: {args[0]}")

def _write_log_stats(ctx: 'ExecutionContext', stats: Dict[str, Any]) -> None:
    ctx.terminal.write_line("Script logger status:", color="cyan")
    ctx.terminal.write_line(f"  Enabled: {'yes' if stats['enabled'] else 'no'}")
    ctx.terminal.write_line(f"  Log level: {stats['level']}")
    ctx.terminal.write_line(f"  Stack depth: {stats['depth']}")
    for path in stats["scripts"]:
        ctx.terminal.write_line(f"    - {path}", color="cyan")
