"""Structured operation logging for wsctl.

Every CLI invocation is recorded as a single JSON document appended to
``operations.jsonl`` inside the configured log directory. A record captures
the command, its arguments, the steps the run went through and the final
result. Logging is best-effort: when the directory cannot be created or a
write fails the logger disables itself instead of failing the command.
"""
from __future__ import annotations

import json
import secrets
import time
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from . import __version__

OPERATIONS_LOG_NAME = "operations.jsonl"


def _sanitize(value: object) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _sanitize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize(item) for item in value]
    return str(value)


def _timestamp() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class OperationScope:
    """Accumulates steps and the final result for a single operation."""

    def __init__(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> None:
        """Initialise an empty scope for *command*."""
        self.command = command
        self.op_id = f"op-{datetime.now(tz=UTC):%Y%m%d-%H%M%S}-{secrets.token_hex(4)}"
        self.args = dict(args or {})
        self.target = dict(target or {})
        self.steps: list[dict[str, object]] = []
        self.result: dict[str, object] | None = None
        self._started = time.perf_counter()

    def add_step(self, name: str, *, status: str, detail: str | None = None) -> None:
        """Record a named step and its status."""
        entry: dict[str, object] = {"name": name, "status": status, "ts": _timestamp()}
        if detail:
            entry["detail"] = detail
        self.steps.append(entry)

    def success(
        self,
        message: str,
        *,
        changed: int = 0,
        warnings: Sequence[str] = (),
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as successful."""
        self._finish("success", message, changed=changed, warnings=warnings, context=context)

    def warning(
        self,
        message: str,
        *,
        warnings: Sequence[str] = (),
        errors: Sequence[str] = (),
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as completed with warnings."""
        self._finish(
            "warning",
            message,
            changed=changed,
            warnings=warnings,
            errors=errors,
            context=context,
        )

    def error(
        self,
        message: str,
        *,
        errors: Sequence[str] | None = None,
        rc: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as failed."""
        self._finish(
            "error",
            message,
            errors=list(errors) if errors else [message],
            rc=rc,
            context=context,
        )

    @property
    def duration_ms(self) -> int:
        """Return milliseconds elapsed since the scope was opened."""
        return int((time.perf_counter() - self._started) * 1000)

    def to_record(self) -> dict[str, object]:
        """Return the JSON-safe record for this operation."""
        return {
            "ts": _timestamp(),
            "op_id": self.op_id,
            "command": self.command,
            "args": _sanitize(self.args),
            "target": _sanitize(self.target),
            "steps": _sanitize(self.steps),
            "result": self.result,
            "duration_ms": self.duration_ms,
            "context": {"wsctl_version": __version__},
        }

    def _finish(
        self,
        status: str,
        message: str,
        *,
        changed: int = 0,
        warnings: Sequence[str] = (),
        errors: Sequence[str] = (),
        rc: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        result: dict[str, object] = {
            "status": status,
            "message": message,
            "changed": changed,
            "warnings": list(warnings),
            "errors": list(errors),
        }
        if rc is not None:
            result["rc"] = rc
        if context:
            result["context"] = _sanitize(context)
        self.result = result


class StructuredLogger:
    """Append operation records to ``operations.jsonl``."""

    def __init__(self, log_dir: Path) -> None:
        """Prepare *log_dir*, disabling the logger when it is unusable."""
        self.log_dir = Path(log_dir).expanduser()
        self._operations_log_path = self.log_dir / OPERATIONS_LOG_NAME
        self._enabled = True
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            self._enabled = False

    @property
    def operations_log_path(self) -> Path:
        """Return the path of the JSONL operations log."""
        return self._operations_log_path

    @contextmanager
    def operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Yield an :class:`OperationScope` and persist it on exit."""
        scope = OperationScope(command, args=args, target=target)
        try:
            yield scope
        except BaseException as exc:
            if scope.result is None:
                scope.error(f"Operation aborted: {exc!r}", errors=[type(exc).__name__])
            raise
        finally:
            if scope.result is None:
                scope.success("Operation completed.", changed=0)
            self._write(scope.to_record())

    def _write(self, record: Mapping[str, object]) -> None:
        if not self._enabled:
            return
        try:
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record, sort_keys=True) + "\n")
        except OSError:
            self._enabled = False


__all__ = ["OperationScope", "StructuredLogger"]
