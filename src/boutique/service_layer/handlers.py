"""
Handlers pour les commands et events.

Les handlers sont les fonctions qui traitent les commands et events
transitant par le message bus.

- Command handlers : exécutent une action (peuvent échouer)
- Event handlers : réagissent à un fait passé (ne doivent pas échouer)

Les commands lèvent des exceptions distinctes selon la nature de
l'erreur (introuvable, état invalide, donnée invalide) : c'est
l'entrypoint qui les traduit en réponse pour l'appelant.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable

from boutique.adapters.catalogue import CatalogueIndisponible, ProduitIntrouvable
from boutique.domain import commands, events, model, reporting

if TYPE_CHECKING:
    from boutique.adapters.catalogue import AbstractCatalogue
    from boutique.adapters.email_queue import EmailQueue
    from boutique.adapters.entrepot import AbstractEntrepôt
    from boutique.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


# --- Exceptions ---


class ClientInconnu(Exception):
    """Levée quand un client référencé n'existe pas dans le système."""
    pass


class ProduitInconnu(Exception):
    """Levée quand le catalogue ne connaît pas un produit demandé."""
    pass


class CommandeIntrouvable(Exception):
    pass


class LigneIntrouvable(Exception):
    """Levée quand la ligne visée n'existe pas dans une commande existante."""
    pass


class StatutInconnu(ValueError):
    pass


class PrixInvalide(ValueError):
    pass


class CatalogueInjoignable(Exception):
    """Levée quand le catalogue ne répond pas : aucune commande n'est modifiée."""
    pass


# --- Command Handlers ---


def ajouter_client(
    cmd: commands.CréerClient,
    uow: AbstractUnitOfWork,
) -> int:
    with uow:
        client = model.Client(nom=cmd.nom, email=cmd.email)
        uow.clients.add(client)
        id_client = client.id
        uow.commit()
    logger.info("Client %s créé (%s)", id_client, cmd.email)
    return id_client


def ajouter_produit(
    cmd: commands.CréerProduit,
    uow: AbstractUnitOfWork,
) -> int:
    prix = Decimal(str(cmd.prix))
    if not prix.is_finite() or prix < 0:
        raise PrixInvalide(f"Prix invalide : {cmd.prix}")
    with uow:
        produit = model.Produit(nom=cmd.nom, prix=prix)
        uow.produits.add(produit)
        id_produit = produit.id
        uow.commit()
    logger.info("Produit %s créé : %s", id_produit, cmd.nom)
    return id_produit


def créer_commande(
    cmd: commands.CréerCommande,
    uow: AbstractUnitOfWork,
    catalogue: AbstractCatalogue,
) -> int:
    """
    Crée une commande en attente avec ses lignes initiales.

    Les prix sont lus dans le catalogue avant d'ouvrir la transaction :
    si un seul produit est inconnu, rien n'est créé.
    Retourne l'identifiant de la commande.
    """
    lignes = _lignes_depuis_catalogue(cmd.lignes, catalogue)
    jour = cmd.date_commande or date.today()
    with uow:
        if uow.clients.get(cmd.id_client) is None:
            raise ClientInconnu(f"Client inconnu : {cmd.id_client}")
        commande = model.Commande(
            id_client=cmd.id_client,
            numéro=model.générer_numéro_commande(jour),
            date_commande=jour,
            lignes=lignes,
        )
        uow.commandes.add(commande)
        id_commande, numéro = commande.id, commande.numéro
        uow.commit()
    logger.info("Commande %s créée (id=%s)", numéro, id_commande)
    return id_commande


def ajouter_ligne(
    cmd: commands.AjouterLigne,
    uow: AbstractUnitOfWork,
    catalogue: AbstractCatalogue,
) -> int:
    """
    Ajoute un produit à une commande en attente.

    Si le produit est déjà présent, sa quantité est augmentée.
    Retourne le numéro de la ligne concernée.

    La commande est chargée avant l'appel au catalogue : une commande
    inconnue ou figée est signalée comme telle, quel que soit le produit.
    """
    with uow:
        commande = _get_commande(uow, cmd.id_commande)
        commande.vérifier_modifiable()
        [ligne] = _lignes_depuis_catalogue([(cmd.id_produit, cmd.quantité)], catalogue)
        id_ligne = commande.ajouter_ligne(ligne).id
        uow.commit()
    return id_ligne


def retirer_ligne(
    cmd: commands.RetirerLigne,
    uow: AbstractUnitOfWork,
) -> None:
    """
    Retire une ligne d'une commande en attente.

    Le modèle tolère le retrait d'une ligne absente ; ici on le signale
    à l'appelant par LigneIntrouvable, distinct de CommandeIntrouvable.
    """
    with uow:
        commande = _get_commande(uow, cmd.id_commande)
        if commande.est_modifiable and commande.ligne(cmd.id_ligne) is None:
            raise LigneIntrouvable(
                f"Ligne {cmd.id_ligne} introuvable dans la commande {cmd.id_commande}"
            )
        commande.retirer_ligne(cmd.id_ligne)
        uow.commit()


def confirmer_commande(
    cmd: commands.ConfirmerCommande,
    uow: AbstractUnitOfWork,
) -> None:
    """
    Confirme une commande en attente.

    Le commit a lieu ici ; l'event CommandeConfirmée n'est publié
    par le message bus qu'une fois ce handler terminé avec succès.
    """
    with uow:
        commande = _get_commande(uow, cmd.id_commande)
        client = uow.clients.get(commande.id_client)
        if client is None:
            raise ClientInconnu(f"Client inconnu : {commande.id_client}")
        commande.confirmer(email_client=client.email)
        numéro = commande.numéro
        uow.commit()
    logger.info("Commande %s confirmée", numéro)


def changer_statut_commande(
    cmd: commands.ChangerStatutCommande,
    uow: AbstractUnitOfWork,
) -> None:
    try:
        statut = model.StatutCommande(cmd.statut)
    except ValueError:
        raise StatutInconnu(f"Statut inconnu : {cmd.statut}") from None
    with uow:
        commande = _get_commande(uow, cmd.id_commande)
        commande.changer_statut(statut)
        uow.commit()
    logger.info("Commande %s passée au statut %s", cmd.id_commande, statut.value)


def _get_commande(uow: AbstractUnitOfWork, id_commande: int) -> model.Commande:
    commande = uow.commandes.get(id_commande)
    if commande is None:
        raise CommandeIntrouvable(f"Commande introuvable : {id_commande}")
    return commande


def _lignes_depuis_catalogue(
    demandes: Iterable[tuple[int, int]],
    catalogue: AbstractCatalogue,
) -> list[model.LigneDeCommande]:
    """Construit les lignes à partir du nom et du prix courant de chaque produit."""
    lignes = []
    for id_produit, quantité in demandes:
        try:
            résultat = catalogue.rechercher(id_produit)
        except OSError as e:
            raise CatalogueInjoignable(
                f"Catalogue injoignable pour le produit {id_produit}"
            ) from e
        if isinstance(résultat, CatalogueIndisponible):
            raise CatalogueInjoignable(
                f"Catalogue injoignable pour le produit {id_produit}"
            )
        if isinstance(résultat, ProduitIntrouvable):
            raise ProduitInconnu(f"Produit inconnu : {id_produit}")
        lignes.append(
            model.LigneDeCommande(
                id_produit=résultat.id_produit,
                nom_produit=résultat.nom,
                quantité=quantité,
                prix_unitaire=résultat.prix,
            )
        )
    return lignes


# --- Event Handlers ---


def envoyer_email_confirmation(
    event: events.CommandeConfirmée,
    email_queue: EmailQueue,
) -> None:
    """
    Dépose l'email de confirmation dans la file d'attente.

    L'envoi réel est fait plus tard par le worker d'emails :
    la requête d'origine n'attend jamais le serveur SMTP.
    """
    détail = "\n".join(
        f"- {l.nom_produit} x{l.quantité} : {l.total_ligne} €" for l in event.lignes
    )
    email_queue.enqueue(
        model.MessageEmail(
            destinataire=event.email_client,
            sujet=f"Confirmation de votre commande {event.numéro_commande}",
            corps=(
                f"Votre commande {event.numéro_commande} du "
                f"{event.date_commande:%d/%m/%Y} est confirmée.\n\n"
                f"{détail}\n\nTotal : {event.montant_total} €\n"
            ),
        )
    )


def ingérer_commande_confirmée(
    event: events.CommandeConfirmée,
    entrepôt: AbstractEntrepôt,
) -> None:
    """
    Alimente le modèle en étoile du reporting.

    Une ligne de fait par ligne de commande, dans une seule transaction.
    Recevoir deux fois le même event ne crée aucun fait supplémentaire.
    """
    faits = reporting.faits_depuis(event)
    insérés = 0
    with entrepôt:
        entrepôt.assurer_date(event.date_commande)
        entrepôt.assurer_client(event.id_client, event.email_client)
        for ligne, fait in zip(event.lignes, faits):
            entrepôt.assurer_produit(ligne.id_produit, ligne.nom_produit)
            if entrepôt.ajouter_fait(fait):
                insérés += 1
        entrepôt.commit()
    if insérés < len(faits):
        logger.info(
            "Commande %s : %d fait(s) déjà présent(s), ignoré(s)",
            event.numéro_commande, len(faits) - insérés,
        )


def envoyer_email_annulation(
    event: events.CommandeAnnulée,
    uow: AbstractUnitOfWork,
    email_queue: EmailQueue,
) -> None:
    with uow:
        client = uow.clients.get(event.id_client)
        email = client.email if client is not None else None
    if email is None:
        logger.warning(
            "Pas d'email d'annulation pour la commande %s : client %s inconnu",
            event.numéro_commande, event.id_client,
        )
        return
    email_queue.enqueue(
        model.MessageEmail(
            destinataire=email,
            sujet=f"Annulation de votre commande {event.numéro_commande}",
            corps=f"Votre commande {event.numéro_commande} a été annulée.\n",
        )
    )
