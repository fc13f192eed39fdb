"""Ready-made ``accept`` predicates.

Each predicate has the ``accept(value, meta)`` signature expected by
:class:`~FallbackChain.types.FallbackOptions`; ``meta`` is optional so they can
also be called with the value alone.

Response-like values are read from mappings (``value["ok"]``) or attributes
(``value.ok``), which covers plain dicts as well as ``requests``/``httpx``
response objects (``status_code``, ``is_success``).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Optional

_MISSING = object()


def _field(value: Any, *names: str) -> Any:
    for name in names:
        if isinstance(value, Mapping):
            if name in value:
                return value[name]
        else:
            found = getattr(value, name, _MISSING)
            if found is not _MISSING:
                return found
    return _MISSING


def accept_ok(value: Any, meta: Optional[Mapping[str, int]] = None) -> bool:
    """Accept if the value's ``ok`` flag is truthy.

    Examples:
        >>> accept_ok({"ok": True})
        True
        >>> accept_ok({"ok": False, "status": 500})
        False
    """
    flag = _field(value, "ok", "is_success")
    return flag is not _MISSING and bool(flag)


def accept_status(*codes: int) -> Callable[..., bool]:
    """Build a predicate accepting values whose status is one of ``codes``.

    Examples:
        >>> accept_status(200, 201)({"status": 201})
        True
        >>> accept_status(200)({"status": 404})
        False
    """
    allowed = tuple(codes)

    def _accept(value: Any, meta: Optional[Mapping[str, int]] = None) -> bool:
        status = _field(value, "status", "status_code")
        return status is not _MISSING and status in allowed

    _accept.__name__ = f"accept_status_{'_'.join(str(c) for c in codes)}"
    return _accept


def accept_truthy(value: Any, meta: Optional[Mapping[str, int]] = None) -> bool:
    """Accept if the value is truthy."""
    return bool(value)


def accept_defined(value: Any, meta: Optional[Mapping[str, int]] = None) -> bool:
    """Accept anything except ``None``."""
    return value is not None


__all__ = ["accept_ok", "accept_status", "accept_truthy", "accept_defined"]
