"""Command output framing over an interactive shell byte stream.

An interactive shell gives no message boundaries, so the session installs a
low-collision marker as its prompt (``PS1``) and appends ``echo $?`` to every
command. A command is complete when the marker shows up at the start of a
line. A marker embedded mid-line (for example inside the echoed ``export
PS1=...`` command) does not count.
"""

import re

from fleet_validator.models import CommandResult

COMMAND_END_MARKER = "__CMD_DONE_a]!9x__"
PROMPT_SETUP = f"export PS1='{COMMAND_END_MARKER}'"
DISABLE_ECHO = "stty -echo"
DISABLE_BRACKETED_PASTE = "bind 'set enable-bracketed-paste off'"

EXIT_STATUS_SUFFIX = "; echo $?"

_READY_SIGNS = ("$", "#", COMMAND_END_MARKER)
_EXIT_CODE_LINE = re.compile(r"-?\d+")
_LEADING_NEWLINE = re.compile(r"^\r?\n")


def wrap_command(command: str) -> str:
    """Line written to the shell for ``command``."""
    return f"{command}{EXIT_STATUS_SUFFIX}\n"


def is_shell_ready(buffer: str) -> bool:
    """Whether the buffer shows an interactive prompt."""
    return any(sign in buffer for sign in _READY_SIGNS)


def find_marker(buffer: str) -> tuple[int, int] | None:
    """Locate the first line-anchored marker.

    Returns:
        ``(index, terminator_length)`` where ``index`` is where the line
        terminator preceding the marker starts, or None if absent
    """
    index = buffer.find("\n" + COMMAND_END_MARKER)
    if index == -1:
        return None
    if index > 0 and buffer[index - 1] == "\r":
        return index - 1, 2
    return index, 1


def split_at_marker(buffer: str) -> tuple[str, str] | None:
    """Split a buffer into completed raw output and whatever follows.

    The text after the marker loses one leading line terminator.

    Returns:
        ``(raw_output, remainder)`` or None if no command has completed
    """
    found = find_marker(buffer)
    if found is None:
        return None
    index, terminator_length = found
    output = buffer[:index]
    remainder = buffer[index + terminator_length + len(COMMAND_END_MARKER):]
    return output, _LEADING_NEWLINE.sub("", remainder, count=1)


def parse_command_output(raw: str, command: str) -> CommandResult:
    """Turn raw framed output into a CommandResult.

    The trailing numeric line is the exit code (0 if it is missing). A
    leading line that echoes the command is dropped. stderr is interleaved
    into stdout by the terminal, so it is always empty.
    """
    lines = [line.rstrip("\r") for line in raw.strip().split("\n")]

    exit_code = 0
    last_line = lines[-1].strip() if lines else ""
    if _EXIT_CODE_LINE.fullmatch(last_line):
        exit_code = int(last_line)
        lines.pop()

    if lines and _is_echoed_command(lines[0], command):
        lines.pop(0)

    return CommandResult(stdout="\n".join(lines).strip(), stderr="", exit_code=exit_code)


def _is_echoed_command(line: str, command: str) -> bool:
    # The terminal reflects the whole written line, exit status echo included
    echoed = command.split(";")[0].strip()
    line = line.strip()
    return bool(echoed) and line.startswith(echoed) and line.endswith(EXIT_STATUS_SUFFIX)


def streamable_text(buffer: str) -> str:
    """Prefix of the buffer that is safe to hand to a stream consumer.

    Only whole lines are released, and the last complete line is held back
    because it may turn out to be the exit code line.
    """
    last_newline = buffer.rfind("\n")
    if last_newline == -1:
        return ""
    lines = buffer[:last_newline].split("\n")
    if len(lines) <= 1:
        return ""
    return "\n".join(lines[:-1]) + "\n"


def complete_lines(buffer: str) -> str:
    """Every whole line in the buffer, including the last complete one."""
    return buffer[: buffer.rfind("\n") + 1]
