"""
Events du domaine.

Les events représentent des faits qui se sont produits dans le système.
Ils sont immuables et nommés au passé (quelque chose s'est passé).

Un event transporte une copie des données au moment où il a été émis,
jamais une référence vers l'agrégat : les abonnés reçoivent un fait figé.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class LigneConfirmée:
    """Instantané d'une ligne de commande au moment de la confirmation."""

    id_ligne: int
    id_produit: int
    nom_produit: str
    quantité: int
    prix_unitaire: Decimal
    total_ligne: Decimal


@dataclass(frozen=True)
class CommandeConfirmée(Event):
    """Une Commande est passée du statut en attente au statut confirmée."""

    id_commande: int
    id_client: int
    email_client: str
    numéro_commande: str
    date_commande: date
    montant_total: Decimal
    lignes: tuple[LigneConfirmée, ...]


@dataclass(frozen=True)
class CommandeAnnulée(Event):
    """Une Commande a été annulée."""

    id_commande: int
    id_client: int
    numéro_commande: str
