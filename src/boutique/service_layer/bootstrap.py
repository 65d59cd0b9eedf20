"""
Bootstrap : assemblage de l'application (Composition Root).

Ce module construit le message bus avec toutes ses dépendances.
C'est ici que l'injection de dépendances est réalisée :
on assemble les composants concrets (ou les fakes pour les tests).

C'est aussi lui qui crée la file d'emails et qui démarre le worker
associé : aucun autre module n'y accède autrement que par injection.
"""

from __future__ import annotations

from typing import Any, Optional

from boutique.adapters import catalogue as catalogue_adapter
from boutique.adapters import email_queue as email_queue_adapter
from boutique.adapters import entrepot, notifications, orm
from boutique.domain import commands, events
from boutique.service_layer import email_worker, handlers, messagebus, unit_of_work


def bootstrap(
    start_orm: bool = True,
    uow: Optional[unit_of_work.AbstractUnitOfWork] = None,
    catalogue: Optional[catalogue_adapter.AbstractCatalogue] = None,
    entrepôt: Optional[entrepot.AbstractEntrepôt] = None,
    email_queue: Optional[email_queue_adapter.EmailQueue] = None,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """
    Construit et retourne un MessageBus configuré.

    En production, utilise les implémentations concrètes.
    En test, on injecte des fakes via les paramètres.
    """
    if start_orm:
        orm.start_mappers()
        orm.metadata.create_all(unit_of_work.DEFAULT_ENGINE)

    if uow is None:
        uow = unit_of_work.SqlAlchemyUnitOfWork()

    if catalogue is None:
        catalogue = catalogue_adapter.SqlAlchemyCatalogue(
            unit_of_work.DEFAULT_SESSION_FACTORY
        )

    if entrepôt is None:
        entrepôt = entrepot.SqlAlchemyEntrepôt(unit_of_work.DEFAULT_SESSION_FACTORY)

    if email_queue is None:
        email_queue = email_queue_adapter.EmailQueue()

    dependencies: dict[str, Any] = {
        "catalogue": catalogue,
        "entrepôt": entrepôt,
        "email_queue": email_queue,
        **extra_dependencies,
    }

    return messagebus.MessageBus(
        uow=uow,
        event_handlers=EVENT_HANDLERS,
        command_handlers=COMMAND_HANDLERS,
        dependencies=dependencies,
    )


def démarrer_worker_email(
    bus: messagebus.MessageBus,
    notifications_adapter: Optional[notifications.AbstractNotifications] = None,
    intervalle: float = 0.5,
) -> email_worker.EmailWorker:
    """Démarre le worker qui vide la file d'emails du bus."""
    if notifications_adapter is None:
        notifications_adapter = notifications.EmailNotifications()
    worker = email_worker.EmailWorker(
        email_queue=bus.dependencies["email_queue"],
        notifications=notifications_adapter,
        intervalle=intervalle,
    )
    worker.démarrer()
    return worker


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list] = {
    events.CommandeConfirmée: [
        handlers.envoyer_email_confirmation,
        handlers.ingérer_commande_confirmée,
    ],
    events.CommandeAnnulée: [handlers.envoyer_email_annulation],
}

COMMAND_HANDLERS: dict[type[commands.Command], Any] = {
    commands.CréerClient: handlers.ajouter_client,
    commands.CréerProduit: handlers.ajouter_produit,
    commands.CréerCommande: handlers.créer_commande,
    commands.AjouterLigne: handlers.ajouter_ligne,
    commands.RetirerLigne: handlers.retirer_ligne,
    commands.ConfirmerCommande: handlers.confirmer_commande,
    commands.ChangerStatutCommande: handlers.changer_statut_commande,
}
