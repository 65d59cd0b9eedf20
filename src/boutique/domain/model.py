"""
Modèle de domaine pour la prise de commandes.

Ce module contient les entités et value objects du domaine métier.
L'agrégat Commande regroupe ses LigneDeCommande : c'est la seule
porte d'entrée pour ajouter ou retirer des lignes, et c'est lui
qui garantit que le montant total reste cohérent avec ses lignes.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from boutique.domain import events


# --- Exceptions du domaine ---


class ÉtatInvalide(Exception):
    """Levée quand une opération n'est pas permise dans le statut courant de la commande."""
    pass


class CommandeNonModifiable(ÉtatInvalide):
    """Levée quand on tente de modifier les lignes d'une commande qui n'est plus en attente."""
    pass


class TransitionInvalide(ÉtatInvalide):
    """Levée quand un changement de statut ne respecte pas le cycle de vie."""
    pass


class QuantitéInvalide(ValueError):
    pass


# --- Statuts ---


class StatutCommande(str, Enum):
    EN_ATTENTE = "en_attente"
    CONFIRMÉE = "confirmee"
    EN_PRÉPARATION = "en_preparation"
    EXPÉDIÉE = "expediee"
    LIVRÉE = "livree"
    ANNULÉE = "annulee"


TRANSITIONS: dict[StatutCommande, set[StatutCommande]] = {
    StatutCommande.EN_ATTENTE: {StatutCommande.CONFIRMÉE, StatutCommande.ANNULÉE},
    StatutCommande.CONFIRMÉE: {StatutCommande.EN_PRÉPARATION, StatutCommande.ANNULÉE},
    StatutCommande.EN_PRÉPARATION: {StatutCommande.EXPÉDIÉE, StatutCommande.ANNULÉE},
    StatutCommande.EXPÉDIÉE: {StatutCommande.LIVRÉE},
    StatutCommande.LIVRÉE: set(),
    StatutCommande.ANNULÉE: set(),
}


def générer_numéro_commande(jour: date) -> str:
    """Numéro lisible par un humain : CMD-AAAAMMJJ-XXXXXX."""
    suffixe = secrets.token_hex(3).upper()
    return f"CMD-{jour:%Y%m%d}-{suffixe}"


# --- Value Objects ---


@dataclass(frozen=True)
class MessageEmail:
    """
    Value Object représentant un email sortant.

    Il n'a pas d'identité propre : une fois mis en file d'attente,
    seule sa position dans la file le distingue des autres.
    """

    destinataire: str
    sujet: str
    corps: str
    expéditeur: Optional[str] = None


# --- Entités de référence (modules Clients et Produits) ---


class Client:
    def __init__(self, nom: str, email: str, id: Optional[int] = None):
        self.id = id
        self.nom = nom
        self.email = email

    def __repr__(self) -> str:
        return f"<Client {self.id} {self.email}>"


class Produit:
    def __init__(self, nom: str, prix: Decimal, id: Optional[int] = None):
        self.id = id
        self.nom = nom
        self.prix = prix

    def __repr__(self) -> str:
        return f"<Produit {self.id} {self.nom}>"


# --- Agrégat Commande ---


class LigneDeCommande:
    """
    Entité représentant une ligne de commande.

    Le nom et le prix unitaire sont des instantanés pris au moment
    de la commande : ils ne suivent pas les changements du catalogue.
    L'`id` est un numéro de ligne attribué par la Commande.
    """

    def __init__(
        self,
        id_produit: int,
        nom_produit: str,
        quantité: int,
        prix_unitaire: Decimal,
        id: Optional[int] = None,
    ):
        _vérifier_quantité(quantité)
        if prix_unitaire < 0:
            raise QuantitéInvalide(f"Prix unitaire négatif : {prix_unitaire}")
        self.id = id
        self.id_produit = id_produit
        self.nom_produit = nom_produit
        self.quantité = quantité
        self.prix_unitaire = Decimal(prix_unitaire)

    def __repr__(self) -> str:
        return f"<LigneDeCommande {self.id} produit={self.id_produit} x{self.quantité}>"

    @property
    def total_ligne(self) -> Decimal:
        return self.quantité * self.prix_unitaire


def _vérifier_quantité(quantité: int) -> None:
    # bool est une sous-classe d'int
    if isinstance(quantité, bool) or not isinstance(quantité, int) or quantité < 1:
        raise QuantitéInvalide(f"Quantité invalide : {quantité!r}")


class Commande:
    """
    Agrégat racine pour la prise de commandes.

    Tant que la commande est en attente, on peut ajouter et retirer
    des lignes. À partir de la confirmation, les lignes sont figées :
    toute tentative de modification lève CommandeNonModifiable.

    Le montant total n'est jamais stocké, il est recalculé à chaque
    lecture à partir des lignes courantes.
    """

    def __init__(
        self,
        id_client: int,
        numéro: str,
        date_commande: Optional[date] = None,
        lignes: Optional[list[LigneDeCommande]] = None,
        statut: StatutCommande = StatutCommande.EN_ATTENTE,
        id: Optional[int] = None,
    ):
        self.id = id
        self.id_client = id_client
        self.numéro = numéro
        self.date_commande = date_commande or date.today()
        self.statut = StatutCommande.EN_ATTENTE
        self.créée_le = self.modifiée_le = datetime.now(timezone.utc)
        self._lignes: list[LigneDeCommande] = []
        self._dernier_id_ligne = 0
        self.événements: list[events.Event] = []
        for ligne in lignes or []:
            self.ajouter_ligne(ligne)
        self.statut = StatutCommande(statut)

    def __repr__(self) -> str:
        return f"<Commande {self.numéro} ({self.statut.value})>"

    @property
    def lignes(self) -> tuple[LigneDeCommande, ...]:
        """Vue en lecture seule des lignes, dans l'ordre d'ajout."""
        return tuple(self._lignes)

    @property
    def montant_total(self) -> Decimal:
        return sum((ligne.total_ligne for ligne in self._lignes), Decimal("0"))

    @property
    def est_modifiable(self) -> bool:
        return self.statut == StatutCommande.EN_ATTENTE

    @property
    def est_terminale(self) -> bool:
        return not TRANSITIONS[self.statut]

    def ligne(self, id_ligne: int) -> Optional[LigneDeCommande]:
        return next((l for l in self._lignes if l.id == id_ligne), None)

    def ajouter_ligne(self, ligne: LigneDeCommande) -> LigneDeCommande:
        """
        Ajoute une ligne à la commande.

        Si une ligne existe déjà pour le même produit, les quantités
        sont additionnées au lieu de créer un doublon.
        Retourne la ligne effectivement modifiée ou ajoutée.
        """
        self.vérifier_modifiable()
        existante = next(
            (l for l in self._lignes if l.id_produit == ligne.id_produit), None
        )
        if existante is not None:
            existante.quantité += ligne.quantité
            self._toucher()
            return existante

        # Les numéros de ligne ne sont jamais réutilisés, même après un retrait.
        self._dernier_id_ligne += 1
        ligne.id = self._dernier_id_ligne
        self._lignes.append(ligne)
        self._toucher()
        return ligne

    def retirer_ligne(self, id_ligne: int) -> None:
        """Retire une ligne. Retirer une ligne absente n'a aucun effet."""
        self.vérifier_modifiable()
        ligne = self.ligne(id_ligne)
        if ligne is None:
            return
        self._lignes.remove(ligne)
        self._toucher()

    def confirmer(self, email_client: str) -> None:
        """
        Confirme la commande et émet CommandeConfirmée.

        L'event contient une copie de chaque ligne : c'est un fait figé,
        que les abonnés (emails, reporting) consomment indépendamment.
        """
        if self.statut != StatutCommande.EN_ATTENTE:
            raise TransitionInvalide(
                f"La commande {self.numéro} ne peut pas être confirmée "
                f"(statut : {self.statut.value})"
            )
        self.statut = StatutCommande.CONFIRMÉE
        self._toucher()
        self.événements.append(
            events.CommandeConfirmée(
                id_commande=self.id,
                id_client=self.id_client,
                email_client=email_client,
                numéro_commande=self.numéro,
                date_commande=self.date_commande,
                montant_total=self.montant_total,
                lignes=tuple(
                    events.LigneConfirmée(
                        id_ligne=l.id,
                        id_produit=l.id_produit,
                        nom_produit=l.nom_produit,
                        quantité=l.quantité,
                        prix_unitaire=l.prix_unitaire,
                        total_ligne=l.total_ligne,
                    )
                    for l in self._lignes
                ),
            )
        )

    def changer_statut(self, nouveau: StatutCommande) -> None:
        """
        Fait avancer la commande dans son cycle de vie.

        La confirmation passe obligatoirement par `confirmer`, qui est
        la seule transition produisant l'instantané de la commande.
        """
        nouveau = StatutCommande(nouveau)
        if nouveau == StatutCommande.CONFIRMÉE:
            raise TransitionInvalide(
                f"La commande {self.numéro} doit être confirmée via confirmer()"
            )
        if nouveau not in TRANSITIONS[self.statut]:
            raise TransitionInvalide(
                f"Transition interdite pour la commande {self.numéro} : "
                f"{self.statut.value} -> {nouveau.value}"
            )
        self.statut = nouveau
        self._toucher()
        if nouveau == StatutCommande.ANNULÉE:
            self.événements.append(
                events.CommandeAnnulée(
                    id_commande=self.id,
                    id_client=self.id_client,
                    numéro_commande=self.numéro,
                )
            )

    def vérifier_modifiable(self) -> None:
        if not self.est_modifiable:
            raise CommandeNonModifiable(
                f"La commande {self.numéro} n'est pas modifiable "
                f"(statut : {self.statut.value})"
            )

    def _toucher(self) -> None:
        self.modifiée_le = datetime.now(timezone.utc)
