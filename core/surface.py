"""
Automation surface protocol.

The ordering website is UI-only: the pipeline drives it through a small
set of primitive interactions (navigate, click, type, read text, wait).
Anything that implements AutomationSurface can be driven, whether it is
the Playwright-backed browser page or a scripted fake in tests.

Targets:
    Most actions accept either a CSS selector string or an element handle
    previously returned by ``read_all()``. Handles are opaque to the
    pipeline; only the surface that produced them knows what they are.

Errors:
    Implementations raise SurfaceTimeoutError when a wait elapses and
    SurfaceError (or ElementNotFoundError) for any other failed interaction.
    They never raise library-specific exceptions past this boundary.

One surface is one mutable browser session. It is owned by a single run
and must not be shared between concurrently running batches.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, NamedTuple, Optional, Protocol, Union


class Candidate(NamedTuple):
    """An element rendered on the surface, with its visible text."""

    display_text: str
    handle: Any


Target = Union[str, Any]


class AutomationSurface(Protocol):
    """Primitive interactions the order pipeline needs from a browser session."""

    def navigate(self, url: str) -> None:
        """Load ``url`` and wait until the document is ready."""

    def click(self, target: Target) -> None:
        """Click a selector or element handle."""

    def type_text(self, text: str) -> None:
        """Type ``text`` into the focused element, key by key."""

    def fill(self, target: Target, text: str) -> None:
        """Replace the value of an input or textarea."""

    def read_text(self, target: Target) -> str:
        """Return the visible text of a selector or handle, stripped."""

    def read_all(self, selector: str) -> List[Candidate]:
        """Return every element matching ``selector`` with its visible text, in page order."""

    def read_values(self, selector: str) -> List[str]:
        """Return the current value of every input matching ``selector``, in page order."""

    def run_script(self, script: str) -> Any:
        """Evaluate a JavaScript expression in the page and return its result."""

    def select_option(self, selector: str, value: str) -> None:
        """Choose ``value`` in a <select> element."""

    def wait_for(self, selector: str, state: str = "visible", timeout_ms: Optional[float] = None) -> None:
        """Wait until ``selector`` reaches ``state`` ('visible', 'hidden', 'attached')."""

    def wait_for_load(self, timeout_ms: Optional[float] = None) -> None:
        """Wait for the navigation triggered by the previous action to finish."""

    def pause(self, ms: float) -> None:
        """Let the page settle for a fixed time."""

    def is_enabled(self, selector: str) -> bool:
        """True if the element exists and is not disabled."""

    def exists(self, selector: str) -> bool:
        """True if at least one element matches ``selector``."""

    def get_attribute(self, selector: str, name: str) -> Optional[str]:
        """Attribute value of the first matching element, or None."""

    def save_pdf(self, path: Path) -> None:
        """Render the current page to a PDF file."""
