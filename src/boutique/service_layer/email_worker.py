"""
Worker d'envoi des emails.

Une boucle de fond, démarrée une fois au lancement du processus,
retire les messages de l'EmailQueue et les transmet à l'adapter
de notifications. Les requêtes HTTP ne font que déposer des messages
et n'attendent jamais le serveur SMTP.

Cycle de vie :
    INACTIF (attente sur la file) -> ENVOI (un envoi en cours) -> INACTIF
    ... -> ARRÊT_EN_COURS (arrêt demandé) -> ARRÊTÉ

Un message dont l'envoi échoue est loggé puis abandonné (pas de nouvel essai).
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Optional

from boutique.adapters.email_queue import EmailQueue
from boutique.adapters.notifications import AbstractNotifications
from boutique.domain.model import MessageEmail

logger = logging.getLogger(__name__)


class ÉtatWorker(enum.Enum):
    INACTIF = "inactif"
    ENVOI = "envoi"
    ARRÊT_EN_COURS = "arret_en_cours"
    ARRÊTÉ = "arrete"


class EmailWorker:
    """
    Consommateur unique de la file d'emails, dans un thread dédié.

    `intervalle` borne l'attente sur une file vide : c'est le délai
    maximal avant que le worker remarque une demande d'arrêt.
    """

    def __init__(
        self,
        email_queue: EmailQueue,
        notifications: AbstractNotifications,
        intervalle: float = 0.5,
    ):
        self.email_queue = email_queue
        self.notifications = notifications
        self.intervalle = intervalle
        self.état = ÉtatWorker.ARRÊTÉ
        self.envoyés = 0
        self.échecs = 0
        self._arrêt = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def en_cours(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def démarrer(self) -> None:
        if self.en_cours:
            return
        self._arrêt.clear()
        self.état = ÉtatWorker.INACTIF
        self._thread = threading.Thread(
            target=self._boucle, name="email-worker", daemon=True
        )
        self._thread.start()
        logger.info("Worker d'emails démarré")

    def arrêter(self, timeout: float = 5.0) -> None:
        """
        Demande l'arrêt et attend la fin de la boucle, au plus `timeout` secondes.

        Un envoi en cours a le temps de se terminer : sa durée est
        bornée par le timeout de l'adapter de notifications.
        """
        if self._thread is None:
            return
        # L'état n'est modifié que par le thread du worker.
        self._arrêt.set()
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Le worker d'emails ne s'est pas arrêté après %ss", timeout)
        else:
            self._thread = None

    def _boucle(self) -> None:
        while not self._arrêt.is_set():
            message = self.email_queue.dequeue(timeout=self.intervalle)
            if message is None:
                # File vide : situation normale, on attend à nouveau.
                continue
            self._envoyer(message)
        self.état = ÉtatWorker.ARRÊTÉ
        logger.info("Worker d'emails arrêté")

    def _envoyer(self, message: MessageEmail) -> None:
        self.état = ÉtatWorker.ENVOI
        try:
            self.notifications.send(message)
            self.envoyés += 1
            logger.info("Email envoyé à %s : %s", message.destinataire, message.sujet)
        except Exception:
            self.échecs += 1
            logger.exception(
                "Échec de l'envoi de l'email à %s, message abandonné",
                message.destinataire,
            )
        finally:
            self.état = (
                ÉtatWorker.ARRÊT_EN_COURS if self._arrêt.is_set() else ÉtatWorker.INACTIF
            )
