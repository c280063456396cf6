"""
nocapture_lint/markers.py
═════════════════════════

The no-capture marker: runtime objects for user code, and the name-based
lookup the checker performs.

User code marks a whole method with a decorator, or a single parameter with
``typing.Annotated`` metadata::

    from typing import Annotated, Callable
    from nocapture_lint.markers import NoCapture, no_capture

    @no_capture
    def run_all(callbacks): ...

    def invoke(seed: int, func: Annotated[Callable[[int], T], NoCapture]): ...

Lookup is by *name*, not identity: any decorator or ``Annotated`` tag whose
last dotted component is a configured marker name counts.  A project can
declare its own ``NoCapture`` class and the checker treats it the same.
Markers are not inherited: an overriding method is judged on its own
decorators only.
"""

from __future__ import annotations

from typing import Any, Callable, FrozenSet, Iterable, Optional, TypeVar

from nocapture_lint.binder import CallBinding
from nocapture_lint.semantic import SemanticModel
from nocapture_lint.symbols import Symbol

F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_MARKER_NAMES: FrozenSet[str] = frozenset({"NoCapture", "no_capture"})


# ═══════════════════════════════════════════════════════════════════════════
#  RUNTIME MARKERS
# ═══════════════════════════════════════════════════════════════════════════

class NoCapture:
    """
    Tag for ``Annotated[...]`` parameter annotations.

    Usable bare (``Annotated[F, NoCapture]``) or instantiated
    (``Annotated[F, NoCapture()]``); both spellings carry the same meaning.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return "NoCapture()"


def no_capture(func: Optional[F] = None) -> Any:
    """Mark every lambda argument of ``func`` as required to be capture-free.

    Works bare (``@no_capture``) and called (``@no_capture()``).
    """
    if func is None:
        return no_capture
    func.__no_capture__ = True  # type: ignore[attr-defined]
    return func


# ═══════════════════════════════════════════════════════════════════════════
#  LOOKUP
# ═══════════════════════════════════════════════════════════════════════════

def has_marker(
    symbol: Optional[Symbol],
    model: SemanticModel,
    marker_names: Iterable[str] = DEFAULT_MARKER_NAMES,
) -> bool:
    """True iff any tag attached to ``symbol`` is named like the marker."""
    if symbol is None:
        return False
    names = frozenset(marker_names)
    return any(tag in names for tag in model.markers_of(symbol))


def marker_applies(
    binding: CallBinding,
    model: SemanticModel,
    marker_names: Iterable[str] = DEFAULT_MARKER_NAMES,
) -> bool:
    """The method-level or the parameter-level marker gates a binding."""
    names = frozenset(marker_names)
    return has_marker(binding.method, model, names) or has_marker(
        binding.parameter, model, names
    )


__all__ = [
    "DEFAULT_MARKER_NAMES",
    "NoCapture",
    "no_capture",
    "has_marker",
    "marker_applies",
]
