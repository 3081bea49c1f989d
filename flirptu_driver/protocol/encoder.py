"""
Command encoding and line trimming for the PTU ASCII dialect.
"""

from typing import Optional, Tuple

from flirptu_driver.utils.exceptions import CommandTooLongError, InvalidValueError


COMMAND_TERMINATOR = "\r\n"
DEFAULT_MAX_COMMAND_LENGTH = 64

VALUE_LEAD_CHARS = "* "
LINE_END_CHARS = "\r\n"


def make_visible(data) -> str:
    """
    Render bytes (or text) with control characters spelled out.

    >>> make_visible(b"PP\\r\\n* 100\\r\\n")
    'PP<CR><LF>* 100<CR><LF>'
    """
    if isinstance(data, str):
        data = data.encode("ascii", errors="replace")

    parts = []
    for b in data:
        if b == 0x0D:
            parts.append("<CR>")
        elif b == 0x0A:
            parts.append("<LF>")
        elif 32 <= b < 127:
            parts.append(chr(b))
        else:
            parts.append(f"[{b:02X}]")
    return "".join(parts)


def validate_command(command: str, max_length: int = DEFAULT_MAX_COMMAND_LENGTH) -> str:
    """
    Check that `command` can be sent as one line.

    Raises:
        CommandTooLongError: If the command exceeds `max_length`.
        InvalidValueError: If it is empty, not printable ASCII, or contains a line break.
    """
    if not command:
        raise InvalidValueError("Command must not be empty")

    if len(command) > max_length:
        raise CommandTooLongError(
            f"Command '{command}' exceeds maximum length of {max_length} characters"
        )

    if any(not (32 <= ord(c) < 127) for c in command):
        raise InvalidValueError(f"Command must be printable ASCII: '{make_visible(command)}'")

    return command


def encode_command(command: str, max_length: int = DEFAULT_MAX_COMMAND_LENGTH) -> bytes:
    """
    Build the wire form of a command.

    Example:
        >>> encode_command("PP0")
        b'PP0\\r\\n'
    """
    validate_command(command, max_length)
    return (command + COMMAND_TERMINATOR).encode("ascii")


def strip_line_ending(line: str) -> str:
    """Remove any trailing run of <CR>/<LF>."""
    return line.rstrip(LINE_END_CHARS)


def value_bounds(line: str) -> Tuple[int, int]:
    """
    Locate the value inside a value line such as '* 123<CR><LF>'.

    Returns:
        (start, end): index of the first character that is not '*' or space,
        and index of the last character that is not <CR>/<LF>. Either is -1
        when no such character exists.
    """
    stripped = line.lstrip(VALUE_LEAD_CHARS)
    start = len(line) - len(stripped) if stripped else -1
    end = len(line.rstrip(LINE_END_CHARS)) - 1
    return start, end


def trim_value(line: str) -> Optional[str]:
    """
    Extract the value from a value line.

    Leading '*' and spaces and trailing <CR><LF> are removed. Trimming an
    already trimmed value returns it unchanged.

    Returns:
        The value, or None when the line holds nothing but framing.

    Example:
        >>> trim_value("* 123\\r\\n")
        '123'
        >>> trim_value("123")
        '123'
    """
    start, end = value_bounds(line)
    if start < 0 or end < 0:
        return None
    return line[start:end + 1]


def trim_field(line: str) -> Tuple[str, bool]:
    """
    Extract the value from one group of a multi-field reply.

    The line is cut at the first <CR><LF>, everything up to and including
    the first '*' is dropped, and surrounding spaces are removed.

    Returns:
        (text, has_value): has_value is False for a bare label line such as
        'TP<CR><LF>', whose value follows on the next line.

    Example:
        >>> trim_field("PP * 100\\r\\n")
        ('100', True)
        >>> trim_field("TP\\r\\n")
        ('TP', False)
    """
    crlf = line.find(COMMAND_TERMINATOR)
    if crlf >= 0:
        line = line[:crlf]

    star = line.find("*")
    if star < 0:
        return line.strip(" "), False

    return line[star + 1:].strip(" "), True
