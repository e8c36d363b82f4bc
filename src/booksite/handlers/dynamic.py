"""
Dynamic handler: resolve and list behavior supplied by closures.

The closures usually belong to a component that owns mutable state
behind a lock (a BookBuilder and its page map). The handler itself holds
no state, so what it resolves changes as that owner makes progress.
"""

from typing import Callable, List, Optional

from .base import Handler, Producer


class DynamicHandler(Handler):
    """
    Args:
        name: Handler name.
        resolve: uri → producer or None.
        list_uris: () → URIs currently owned.
    """

    def __init__(
        self,
        name: str,
        resolve: Callable[[str], Optional[Producer]],
        list_uris: Callable[[], List[str]],
    ):
        super().__init__(name)
        self._resolve = resolve
        self._list_uris = list_uris

    def resolve(self, uri: str) -> Optional[Producer]:
        return self._resolve(uri)

    def list_uris(self) -> List[str]:
        return list(self._list_uris())
