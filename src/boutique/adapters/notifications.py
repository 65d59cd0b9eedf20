"""
Adapter pour les notifications.

Ce module fournit une abstraction sur l'envoi d'emails,
permettant de découpler le domaine du transport concret.
Seul le worker d'emails appelle `send` : les handlers se
contentent de déposer les messages dans la file d'attente.
"""

from __future__ import annotations

import abc
import smtplib
from email.message import EmailMessage
from typing import Optional

from boutique import config
from boutique.domain.model import MessageEmail


class AbstractNotifications(abc.ABC):
    """Interface abstraite pour les notifications."""

    @abc.abstractmethod
    def send(self, message: MessageEmail) -> None:
        raise NotImplementedError


class EmailNotifications(AbstractNotifications):
    """
    Implémentation concrète envoyant des emails via SMTP.

    Le timeout borne la durée d'un envoi : le worker ne peut pas
    rester bloqué indéfiniment sur un serveur qui ne répond pas.
    """

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        expéditeur: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        défauts = config.get_email_host_and_port()
        self.smtp_host = smtp_host or défauts["host"]
        self.smtp_port = smtp_port or défauts["port"]
        self.expéditeur = expéditeur or config.get_expéditeur_par_défaut()
        self.timeout = timeout if timeout is not None else config.get_email_timeout()

    def send(self, message: MessageEmail) -> None:
        msg = EmailMessage()
        msg["From"] = message.expéditeur or self.expéditeur
        msg["To"] = message.destinataire
        msg["Subject"] = message.sujet
        msg.set_content(message.corps)
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as smtp:
            smtp.send_message(msg)
