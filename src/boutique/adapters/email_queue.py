"""
File d'attente des emails sortants.

Les handlers (producteurs, un par requête) déposent des MessageEmail ;
le worker d'emails (consommateur unique) les retire dans l'ordre FIFO.
La file n'est pas un singleton : elle est créée par le bootstrap et
transmise explicitement aux producteurs et au worker.
"""

from __future__ import annotations

import logging
import queue
from typing import Optional

from boutique.domain.model import MessageEmail

logger = logging.getLogger(__name__)


class EmailQueue:
    """
    File FIFO thread-safe.

    `capacité=0` (défaut) donne une file non bornée : `enqueue` ne
    bloque jamais. Avec une capacité, `enqueue` attend qu'une place
    se libère.
    """

    def __init__(self, capacité: int = 0):
        self.capacité = capacité
        self._file: queue.Queue[MessageEmail] = queue.Queue(maxsize=capacité)

    def enqueue(self, message: MessageEmail) -> None:
        self._file.put(message)
        logger.debug("Email pour %s mis en file d'attente", message.destinataire)

    def dequeue(self, timeout: Optional[float] = None) -> Optional[MessageEmail]:
        """Attend un message au plus `timeout` secondes ; None si la file reste vide."""
        try:
            return self._file.get(timeout=timeout)
        except queue.Empty:
            return None

    def __len__(self) -> int:
        return self._file.qsize()
