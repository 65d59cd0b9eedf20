"""
Views (lecture) pour le pattern CQRS.

Les views sont des fonctions de lecture pure qui interrogent
directement la base de données, sans passer par le modèle de domaine.

C'est le côté Query de CQRS : on sépare les chemins d'écriture
(qui passent par le domaine et le message bus) des chemins de
lecture (qui interrogent directement la BDD pour la performance).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import text

from boutique.service_layer import unit_of_work


def commande(id_commande: int, uow: unit_of_work.AbstractUnitOfWork) -> Optional[dict]:
    """
    Retourne une commande et ses lignes, ou None si elle n'existe pas.

    Le montant total est recalculé à la lecture à partir des lignes :
    il n'est stocké nulle part.
    """
    with uow:
        entête = uow.session.execute(
            text(
                "SELECT id, id_client, numero, date_commande, statut"
                " FROM commandes WHERE id = :id_commande"
            ),
            dict(id_commande=id_commande),
        ).first()
        if entête is None:
            return None
        lignes = uow.session.execute(
            text(
                "SELECT id, id_produit, nom_produit, quantite, prix_unitaire"
                " FROM lignes_commande WHERE id_commande = :id_commande ORDER BY id"
            ),
            dict(id_commande=id_commande),
        ).all()

    lignes_dict = []
    montant_total = Decimal("0")
    for l in lignes:
        prix = Decimal(str(l.prix_unitaire))
        montant_total += l.quantite * prix
        lignes_dict.append(
            dict(
                id=l.id,
                id_produit=l.id_produit,
                nom_produit=l.nom_produit,
                quantité=l.quantite,
                prix_unitaire=str(prix),
                total_ligne=str(l.quantite * prix),
            )
        )
    return dict(
        id=entête.id,
        id_client=entête.id_client,
        numéro=entête.numero,
        date_commande=str(entête.date_commande),
        statut=entête.statut,
        lignes=lignes_dict,
        montant_total=str(montant_total),
    )
