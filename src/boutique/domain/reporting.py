"""
Modèle en étoile du reporting des ventes.

Une ligne de fait par ligne de commande confirmée, reliée aux
dimensions date, client et produit par leurs clés naturelles
(les identifiants du système source, jamais générés ici).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from boutique.domain import events


def clé_date(jour: date) -> int:
    """Encode une date en entier AAAAMMJJ (clé de la dimension date)."""
    return jour.year * 10000 + jour.month * 100 + jour.day


@dataclass(frozen=True)
class FaitVente:
    clé_date: int
    id_client: int
    id_produit: int
    quantité: int
    prix_unitaire: Decimal
    total_ligne: Decimal
    montant_commande: Decimal
    # Dimensions dégénérées
    numéro_commande: str
    id_commande_source: int
    id_ligne_source: int


def faits_depuis(event: events.CommandeConfirmée) -> list[FaitVente]:
    clé = clé_date(event.date_commande)
    return [
        FaitVente(
            clé_date=clé,
            id_client=event.id_client,
            id_produit=ligne.id_produit,
            quantité=ligne.quantité,
            prix_unitaire=ligne.prix_unitaire,
            total_ligne=ligne.total_ligne,
            montant_commande=event.montant_total,
            numéro_commande=event.numéro_commande,
            id_commande_source=event.id_commande,
            id_ligne_source=ligne.id_ligne,
        )
        for ligne in event.lignes
    ]
