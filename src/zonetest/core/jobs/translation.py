"""Localization hook for stored result payloads.

Result payloads are opaque to the store. Rendering their messages in a
caller's language belongs to the message catalogue of the DNS-testing
engine, which is injected here.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ResultTranslator(Protocol):
    """Renders a stored result payload for a language."""

    def translate(self, result: Any, language: str) -> Any: ...


class PassthroughTranslator:
    """Returns payloads unchanged (payloads already carry rendered text)."""

    def translate(self, result: Any, language: str) -> Any:
        return result
