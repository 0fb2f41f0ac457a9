"""Shell-style variable substitution for migration text."""

from __future__ import annotations

import re
from collections.abc import Mapping

__all__ = ["InterpolationError", "interpolate"]

_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_SUBSTRING = re.compile(r"\s*(-?\d+)\s*(?::\s*(-?\d+)\s*)?")


class InterpolationError(ValueError):
    """Raised when a variable expression cannot be expanded."""


def interpolate(text: str, env: Mapping[str, str]) -> str:
    """Expand ``$VAR`` and ``${VAR...}`` expressions in *text* using *env*.

    Supported forms: ``$VAR``, ``${VAR}``, ``${VAR-default}``, ``${VAR:-default}``,
    ``${VAR+alt}``, ``${VAR:+alt}``, ``${VAR?message}``, ``${VAR:?message}``,
    ``${VAR:offset}`` and ``${VAR:offset:length}``. ``$$`` and ``\\$`` produce a
    literal dollar sign.
    """
    out: list[str] = []
    pos = 0
    size = len(text)
    while pos < size:
        dollar = text.find("$", pos)
        if dollar < 0:
            out.append(text[pos:])
            break
        if dollar > pos and text[dollar - 1] == "\\":
            out.append(text[pos : dollar - 1])
            out.append("$")
            pos = dollar + 1
            continue
        out.append(text[pos:dollar])
        following = text[dollar + 1 : dollar + 2]
        if following == "$":
            out.append("$")
            pos = dollar + 2
        elif following == "{":
            end = _matching_brace(text, dollar + 2)
            out.append(_expand_braced(text[dollar + 2 : end], env))
            pos = end + 1
        else:
            match = _IDENT.match(text, dollar + 1)
            if match:
                out.append(env.get(match.group()) or "")
                pos = match.end()
            else:
                out.append("$")
                pos = dollar + 1
    return "".join(out)


def _matching_brace(text: str, start: int) -> int:
    depth = 1
    pos = start
    while pos < len(text):
        if text.startswith("${", pos):
            depth += 1
            pos += 2
            continue
        if text[pos] == "}":
            depth -= 1
            if depth == 0:
                return pos
        pos += 1
    raise InterpolationError(f"unterminated variable expression: {text[start - 2:]}")


def _expand_braced(body: str, env: Mapping[str, str]) -> str:
    match = _IDENT.match(body)
    if not match:
        raise InterpolationError(f"invalid variable name in ${{{body}}}")
    name = match.group()
    rest = body[match.end() :]
    value = env.get(name)

    if rest == "":
        return value or ""
    if rest.startswith(":-"):
        return value if value else interpolate(rest[2:], env)
    if rest.startswith(":?"):
        if not value:
            raise _required(name, rest[2:], env)
        return value
    if rest.startswith(":+"):
        return interpolate(rest[2:], env) if value else ""
    if rest.startswith(":"):
        return _substring(name, value or "", rest[1:])
    if rest.startswith("-"):
        return value if value is not None else interpolate(rest[1:], env)
    if rest.startswith("?"):
        if value is None:
            raise _required(name, rest[1:], env)
        return value
    if rest.startswith("+"):
        return interpolate(rest[1:], env) if value is not None else ""
    raise InterpolationError(f"unsupported expression ${{{body}}}")


def _required(name: str, message: str, env: Mapping[str, str]) -> InterpolationError:
    expanded = interpolate(message, env) if message else "not set"
    return InterpolationError(f"${name}: {expanded}")


def _substring(name: str, value: str, spec: str) -> str:
    match = _SUBSTRING.fullmatch(spec)
    if not match:
        raise InterpolationError(f"invalid substring expression for ${name}: {spec!r}")
    offset = int(match.group(1))
    start = max(len(value) + offset, 0) if offset < 0 else offset
    if match.group(2) is None:
        return value[start:]
    length = int(match.group(2))
    if length < 0:
        return value[start : max(len(value) + length, start)]
    return value[start : start + length]