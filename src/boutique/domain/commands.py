"""
Commands du domaine.

Les commands représentent des intentions : quelque chose que
le système doit faire. Contrairement aux events (faits passés),
les commands sont des demandes qui peuvent échouer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional


class Command:
    """Classe de base pour toutes les commands."""
    pass


@dataclass(frozen=True)
class CréerClient(Command):
    """Demande d'enregistrement d'un nouveau client."""

    nom: str
    email: str


@dataclass(frozen=True)
class CréerProduit(Command):
    """Demande d'ajout d'un produit au catalogue."""

    nom: str
    prix: Decimal


@dataclass(frozen=True)
class CréerCommande(Command):
    """
    Demande de création d'une commande.

    `lignes` contient des couples (id_produit, quantité) : le nom et
    le prix sont toujours relus dans le catalogue, jamais fournis
    par l'appelant.
    """

    id_client: int
    lignes: tuple[tuple[int, int], ...] = ()
    date_commande: Optional[date] = None


@dataclass(frozen=True)
class AjouterLigne(Command):
    """Demande d'ajout d'un produit à une commande en attente."""

    id_commande: int
    id_produit: int
    quantité: int


@dataclass(frozen=True)
class RetirerLigne(Command):
    """Demande de retrait d'une ligne d'une commande en attente."""

    id_commande: int
    id_ligne: int


@dataclass(frozen=True)
class ConfirmerCommande(Command):
    """Demande de confirmation d'une commande en attente."""

    id_commande: int


@dataclass(frozen=True)
class ChangerStatutCommande(Command):
    """Demande de passage d'une commande à un autre statut de son cycle de vie."""

    id_commande: int
    statut: str
