"""Handler and payload loading for the command line.

Handlers are referenced as:

- ``path/to/handler.py``: the module's ``handler``, ``default`` or ``main``
  attribute, tried in that order
- ``path/to/handler.py:charge``: a named attribute of a file
- ``package.module:charge``: a named attribute of an importable module

Payloads come from an explicit JSON file, else from ``payload.json`` or
``<handler stem>.payload.json`` next to the handler file, else a small default
event.

Examples:
    >>> handler = load_handler("examples/charge.py:handle_charge")
    >>> payload, ref = load_payload(None, handler_path="examples/charge.py")
"""

import importlib
import importlib.util
import json
import sys
from pathlib import Path
from typing import Any

from webhook_replay.exceptions import HandlerLoadError
from webhook_replay.fingerprint import payload_reference

DEFAULT_PAYLOAD: dict[str, Any] = {"id": "evt_demo_123"}

EXPORT_NAMES = ("handler", "default", "main")


def load_handler(target: str) -> Any:
    """Import a handler callable.

    Args:
        target: File path or module path, optionally followed by ``:attribute``

    Returns:
        The handler callable

    Raises:
        HandlerLoadError: If the module cannot be imported or exports no callable
    """
    module_ref, _, attribute = target.partition(":")
    if not module_ref:
        raise HandlerLoadError("Handler reference is empty", target=target)

    module = _import_module(module_ref, target)

    names = (attribute,) if attribute else EXPORT_NAMES
    for name in names:
        candidate = getattr(module, name, None)
        if callable(candidate):
            return candidate

    expected = attribute or " / ".join(EXPORT_NAMES)
    raise HandlerLoadError(
        f"Handler module must export a callable named {expected}",
        target=target,
    )


def handler_source_path(target: str) -> Path | None:
    """Return the handler's source file, if the reference names one."""
    module_ref = target.partition(":")[0]
    if _looks_like_path(module_ref):
        return Path(module_ref).resolve()

    spec = importlib.util.find_spec(module_ref) if module_ref else None
    if spec is None or spec.origin is None or not spec.origin.endswith(".py"):
        return None
    return Path(spec.origin)


def load_payload(
    payload_path: str | Path | None,
    handler_path: str | Path | None = None,
) -> tuple[Any, str]:
    """Load the payload to replay.

    Args:
        payload_path: Explicit JSON file, if any
        handler_path: Handler source file used to discover a default payload

    Returns:
        ``(payload, payload_ref)`` where ``payload_ref`` is the file path or the
        payload fingerprint reference

    Raises:
        HandlerLoadError: If the payload file cannot be read or parsed
    """
    if payload_path is not None:
        path = Path(payload_path)
        return _read_json(path), str(path)

    if handler_path is not None:
        handler_file = Path(handler_path)
        for candidate in (
            handler_file.with_name("payload.json"),
            handler_file.with_name(f"{handler_file.stem}.payload.json"),
        ):
            if candidate.is_file():
                return _read_json(candidate), str(candidate)

    payload = dict(DEFAULT_PAYLOAD)
    return payload, payload_reference(payload)


def _looks_like_path(module_ref: str) -> bool:
    return module_ref.endswith(".py") or "/" in module_ref or "\\" in module_ref


def _import_module(module_ref: str, target: str) -> Any:
    if not _looks_like_path(module_ref):
        try:
            return importlib.import_module(module_ref)
        except ImportError as e:
            raise HandlerLoadError(
                f"Could not import handler module {module_ref}: {e}", target=target, cause=e
            ) from e

    path = Path(module_ref).resolve()
    if not path.is_file():
        raise HandlerLoadError(f"Handler file not found: {path}", target=target)

    module_name = f"webhook_replay_handler_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise HandlerLoadError(f"Could not load handler file: {path}", target=target)

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise HandlerLoadError(
            f"Could not load handler {path}: {e}", target=target, cause=e
        ) from e
    return module


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise HandlerLoadError(f"Could not read payload {path}: {e}", target=str(path), cause=e) from e
