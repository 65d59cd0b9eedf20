"""
Message Bus de la boutique.

Une command modifie la base puis rend la main ; les events qu'elle a
fait naître ne sont distribués qu'ensuite. Un abonné (email, reporting)
ne voit donc jamais une commande dont le commit a échoué.

Une command a un seul handler et son erreur remonte jusqu'à l'API.
Un event peut n'avoir aucun abonné ou en avoir plusieurs ; l'échec
de l'un est loggé et n'empêche pas les autres de recevoir l'event.

Rien n'est persisté entre le commit et la distribution : un arrêt
brutal à ce moment-là perd les events en attente.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Union

from boutique.domain import commands, events
from boutique.service_layer import unit_of_work

logger = logging.getLogger(__name__)

Message = Union[commands.Command, events.Event]


class MessageBus:
    """
    Routeur unique partagé par toutes les requêtes.

    Le bus ne garde aucun état entre deux appels à `handle` : les
    collaborateurs (uow, catalogue, entrepôt, email_queue) sont fournis
    au bootstrap et passés à chaque handler selon les noms de ses
    paramètres.
    """

    def __init__(
        self,
        uow: unit_of_work.AbstractUnitOfWork,
        event_handlers: dict[type[events.Event], list[Callable]],
        command_handlers: dict[type[commands.Command], Callable],
        dependencies: dict[str, Any] | None = None,
    ):
        self.uow = uow
        self.event_handlers = event_handlers
        self.command_handlers = command_handlers
        self.dependencies = dependencies or {}

    def handle(self, message: Message) -> list[Any]:
        """
        Traite un message jusqu'à épuisement des events qui en découlent.

        Retourne les valeurs rendues par les handlers de commands, dans
        l'ordre (par exemple l'id d'une commande créée). La file de
        travail est locale à l'appel.
        """
        queue: list[Message] = [message]
        results: list[Any] = []
        while queue:
            message = queue.pop(0)
            if isinstance(message, events.Event):
                queue.extend(self._handle_event(message))
            elif isinstance(message, commands.Command):
                result, nouveaux = self._handle_command(message)
                results.append(result)
                queue.extend(nouveaux)
            else:
                raise ValueError(f"Message de type inconnu : {type(message)}")
        return results

    def _handle_event(self, event: events.Event) -> list[Message]:
        """Distribue l'event à chaque abonné ; renvoie les events qu'ils ont produits."""
        nouveaux: list[Message] = []
        for handler in self.event_handlers.get(type(event), []):
            try:
                logger.debug("Traitement de l'event %s avec %s", event, handler)
                self._call_handler(handler, event)
                nouveaux.extend(self.uow.collect_new_events())
            except Exception:
                logger.exception("Erreur lors du traitement de l'event %s", event)
        return nouveaux

    def _handle_command(self, command: commands.Command) -> tuple[Any, list[Message]]:
        """
        Exécute la command puis relève les events des commandes touchées.

        Le handler a déjà commité quand les events sont relevés. S'il
        lève, l'exception remonte et aucun event n'est relevé.
        """
        logger.debug("Traitement de la command %s", command)
        handler = self.command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"Aucun handler pour la command {type(command)}")
        result = self._call_handler(handler, command)
        return result, list(self.uow.collect_new_events())

    def _call_handler(self, handler: Callable, message: Message) -> Any:
        # Le premier paramètre reçoit le message ; les autres sont résolus par nom.
        params = list(inspect.signature(handler).parameters)
        kwargs: dict[str, Any] = {}
        for name in params[1:]:
            if name == "uow":
                kwargs[name] = self.uow
            elif name in self.dependencies:
                kwargs[name] = self.dependencies[name]

        return handler(message, **kwargs)
