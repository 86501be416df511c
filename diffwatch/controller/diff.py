"""Structural diff between two object snapshots.

Produces an RFC 6902 style operation list (``add`` / ``remove`` /
``replace``) that turns the previous snapshot into the current one, minus
any operation on an ignored path.  The rendered patch is indented JSON, or
the empty string when nothing is left to report.

Comparison rules:

* Objects are compared key by key, keys in sorted order.
* Arrays are compared index by index.  Extra trailing elements in the new
  array become ``add`` operations; missing trailing elements become
  ``remove`` operations, highest index first so the patch applies in order.
* Values of different JSON types are replaced wholesale.

Ignore paths accept JSON Pointer (``/spec/replicas``) or dotted
(``spec.replicas``) notation.  An ignored path suppresses its whole subtree.
Keys containing ``.`` or ``/`` need pointer form with ``~1`` escapes.
"""

from __future__ import annotations

import functools
import json
from collections.abc import Iterable, Sequence
from typing import Any

from diffwatch.observability.logging import get_logger

_log = get_logger("controller.diff")

Operation = dict[str, Any]
_Tokens = tuple[str, ...]


@functools.lru_cache(maxsize=256)
def parse_path(path: str) -> _Tokens:
    """Split an ignore path into unescaped pointer tokens.

    ``"/metadata/labels/app.kubernetes.io~1name"`` and
    ``"metadata.resourceVersion"`` are both accepted.  ``""`` and ``"/"``
    address the document root.

    Dotted form splits on every ``.``, so keys that themselves contain
    dots or slashes (``kubectl.kubernetes.io/last-applied-configuration``)
    can only be addressed in pointer form.  A dotted path containing ``/``
    is logged as a warning since it can never match.
    """
    path = path.strip()
    if not path or path == "/":
        return ()
    if path.startswith("/"):
        return tuple(_unescape(token) for token in path[1:].split("/"))
    if "/" in path:
        _log.warning("dotted_ignore_path_unmatchable", path=path)
    return tuple(token for token in path.split(".") if token)


def _escape(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def _unescape(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def _pointer(tokens: _Tokens) -> str:
    return "".join(f"/{_escape(token)}" for token in tokens)


class _Differ:
    def __init__(self, ignore: Iterable[_Tokens]) -> None:
        self._ignore = [tokens for tokens in ignore if tokens]
        self.ops: list[Operation] = []

    def _ignored(self, tokens: _Tokens) -> bool:
        return any(tokens[: len(ignored)] == ignored for ignored in self._ignore)

    def _emit(self, op: str, tokens: _Tokens, value: Any = None, *, with_value: bool = True) -> None:
        if self._ignored(tokens):
            return
        operation: Operation = {"op": op, "path": _pointer(tokens)}
        if with_value:
            operation["value"] = value
        self.ops.append(operation)

    def compare(self, src: Any, dst: Any, tokens: _Tokens = ()) -> None:
        if self._ignored(tokens):
            return
        if isinstance(src, dict) and isinstance(dst, dict):
            self._compare_objects(src, dst, tokens)
        elif isinstance(src, list) and isinstance(dst, list):
            self._compare_arrays(src, dst, tokens)
        elif not _same_scalar(src, dst):
            self._emit("replace", tokens, dst)

    def _compare_objects(self, src: dict[str, Any], dst: dict[str, Any], tokens: _Tokens) -> None:
        for key in sorted(set(src) | set(dst)):
            child = (*tokens, str(key))
            if key not in dst:
                self._emit("remove", child, with_value=False)
            elif key not in src:
                self._emit("add", child, dst[key])
            else:
                self.compare(src[key], dst[key], child)

    def _compare_arrays(self, src: Sequence[Any], dst: Sequence[Any], tokens: _Tokens) -> None:
        common = min(len(src), len(dst))
        for index in range(common):
            self.compare(src[index], dst[index], (*tokens, str(index)))
        for index in range(common, len(dst)):
            self._emit("add", (*tokens, str(index)), dst[index])
        for index in range(len(src) - 1, common - 1, -1):
            self._emit("remove", (*tokens, str(index)), with_value=False)


def _same_scalar(src: Any, dst: Any) -> bool:
    # True == 1 in Python but not in JSON.
    if isinstance(src, bool) or isinstance(dst, bool):
        return type(src) is type(dst) and src == dst
    if isinstance(src, dict | list) or isinstance(dst, dict | list):
        return False
    return bool(src == dst)


def diff_operations(previous: Any, current: Any, ignore_paths: Iterable[str] = ()) -> list[Operation]:
    """Return the operations turning *previous* into *current*."""
    differ = _Differ(parse_path(path) for path in ignore_paths)
    differ.compare(previous, current)
    return differ.ops


def render_patch(ops: list[Operation]) -> str:
    """Render *ops* as indented JSON; an empty list renders as ``""``."""
    if not ops:
        return ""
    return json.dumps(ops, indent=4, default=str)


def compute_diff(previous: Any, current: Any, ignore_paths: Iterable[str] = ()) -> str:
    """Diff two snapshots and render the patch.

    Best-effort: a failure is logged and reported as "no diff" so that a
    malformed snapshot never blocks the rest of the pipeline.
    """
    try:
        return render_patch(diff_operations(previous, current, ignore_paths))
    except (TypeError, ValueError, RecursionError) as exc:
        _log.warning("diff_failed", error=str(exc), error_type=type(exc).__name__)
        return ""
