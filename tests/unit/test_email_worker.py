"""
Tests de la file d'emails et du worker d'envoi.

Le worker tourne dans un vrai thread ; les fakes signalent
chaque envoi par un threading.Event pour éviter les sleeps.
"""

import threading

from boutique.adapters.email_queue import EmailQueue
from boutique.adapters.notifications import AbstractNotifications
from boutique.domain.model import MessageEmail
from boutique.service_layer.email_worker import EmailWorker, ÉtatWorker


class FakeNotifications(AbstractNotifications):
    def __init__(self, attendus: int = 1):
        self.envoyés: list[MessageEmail] = []
        self.attendus = attendus
        self.terminé = threading.Event()

    def send(self, message: MessageEmail) -> None:
        self.envoyés.append(message)
        if len(self.envoyés) >= self.attendus:
            self.terminé.set()


class FakeNotificationsCapricieuses(FakeNotifications):
    """Échoue pour un destinataire précis."""

    def send(self, message: MessageEmail) -> None:
        if message.destinataire == "panne@example.com":
            raise ConnectionRefusedError("SMTP indisponible")
        super().send(message)


class FakeNotificationsLentes(FakeNotifications):
    """Bloque l'envoi jusqu'à ce que le test le libère."""

    def __init__(self):
        super().__init__()
        self.commencé = threading.Event()
        self.libérer = threading.Event()

    def send(self, message: MessageEmail) -> None:
        self.commencé.set()
        self.libérer.wait(timeout=2)
        super().send(message)


def message(destinataire: str, sujet: str = "Bonjour") -> MessageEmail:
    return MessageEmail(destinataire=destinataire, sujet=sujet, corps="...")


class TestEmailQueue:
    def test_ordre_fifo(self):
        file = EmailQueue()
        file.enqueue(message("a@example.com"))
        file.enqueue(message("b@example.com"))

        assert file.dequeue(timeout=0).destinataire == "a@example.com"
        assert file.dequeue(timeout=0).destinataire == "b@example.com"

    def test_file_vide_retourne_none(self):
        assert EmailQueue().dequeue(timeout=0.01) is None

    def test_enqueue_ne_bloque_pas_sans_capacité(self):
        file = EmailQueue()
        for i in range(1000):
            file.enqueue(message(f"client{i}@example.com"))
        assert len(file) == 1000


class TestEmailWorker:
    def test_envoie_les_messages_dans_l_ordre(self):
        file = EmailQueue()
        notifications = FakeNotifications(attendus=2)
        worker = EmailWorker(file, notifications, intervalle=0.05)
        file.enqueue(message("a@example.com"))
        file.enqueue(message("b@example.com"))

        worker.démarrer()
        try:
            assert notifications.terminé.wait(timeout=2)
        finally:
            worker.arrêter()

        assert [m.destinataire for m in notifications.envoyés] == [
            "a@example.com",
            "b@example.com",
        ]
        assert worker.envoyés == 2

    def test_un_échec_est_loggé_et_le_worker_continue(self, caplog):
        file = EmailQueue()
        notifications = FakeNotificationsCapricieuses(attendus=1)
        worker = EmailWorker(file, notifications, intervalle=0.05)
        file.enqueue(message("panne@example.com"))
        file.enqueue(message("ok@example.com"))

        worker.démarrer()
        try:
            assert notifications.terminé.wait(timeout=2)
        finally:
            worker.arrêter()

        assert [m.destinataire for m in notifications.envoyés] == ["ok@example.com"]
        assert worker.échecs == 1
        assert "panne@example.com" in caplog.text

    def test_arrêter_termine_la_boucle(self):
        worker = EmailWorker(EmailQueue(), FakeNotifications(), intervalle=0.05)
        worker.démarrer()
        assert worker.en_cours
        assert worker.état == ÉtatWorker.INACTIF

        worker.arrêter(timeout=2)

        assert not worker.en_cours
        assert worker.état == ÉtatWorker.ARRÊTÉ

    def test_arrêt_demandé_pendant_un_envoi(self):
        file = EmailQueue()
        notifications = FakeNotificationsLentes()
        worker = EmailWorker(file, notifications, intervalle=0.05)
        file.enqueue(message("lent@example.com"))
        worker.démarrer()
        assert notifications.commencé.wait(timeout=2)

        arrêt = threading.Thread(target=worker.arrêter, kwargs={"timeout": 2})
        arrêt.start()
        assert worker._arrêt.wait(timeout=2)
        notifications.libérer.set()
        arrêt.join(timeout=3)

        assert not worker.en_cours
        assert worker.état == ÉtatWorker.ARRÊTÉ
        assert worker.envoyés == 1

    def test_arrêter_un_worker_jamais_démarré(self):
        worker = EmailWorker(EmailQueue(), FakeNotifications())
        worker.arrêter()
        assert worker.état == ÉtatWorker.ARRÊTÉ
