"""
Registre des instances de page en cours
"""

import time
from collections import OrderedDict
from typing import Callable, Optional

from .controller import ConfirmationFlowController


class PageRegistry:
    """Associe un identifiant de page à son contrôleur.

    Local au processus ; les entrées expirent après ``max_age`` secondes et
    les plus anciennes sont évincées au-delà de ``max_size``.
    """

    def __init__(self, max_size: int = 10000, max_age: int = 600):
        self.max_size = max_size
        self.max_age = max_age
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()

    def get_or_create(
        self,
        page_id: str,
        factory: Callable[[], ConfirmationFlowController]
    ) -> ConfirmationFlowController:
        self._prune()
        entry = self._entries.get(page_id)
        if entry is not None:
            return entry[1]

        controller = factory()
        self._entries[page_id] = (time.monotonic(), controller)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
        return controller

    def get(self, page_id: str) -> Optional[ConfirmationFlowController]:
        entry = self._entries.get(page_id)
        return entry[1] if entry else None

    def _prune(self) -> None:
        deadline = time.monotonic() - self.max_age
        while self._entries:
            created_at, _ = next(iter(self._entries.values()))
            if created_at >= deadline:
                break
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)
