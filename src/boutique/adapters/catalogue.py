"""
Adapter pour la recherche de prix dans le catalogue.

Le catalogue est un collaborateur externe : il peut échouer
indépendamment des règles de la commande. Il renvoie un résultat
explicite (DétailsProduit ou ProduitIntrouvable) plutôt que de
lever une exception, et c'est le handler qui décide quoi en faire.
Une panne du catalogue (base injoignable, timeout) devient elle aussi
un résultat : CatalogueIndisponible.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DétailsProduit:
    id_produit: int
    nom: str
    prix: Decimal


@dataclass(frozen=True)
class ProduitIntrouvable:
    id_produit: int


@dataclass(frozen=True)
class CatalogueIndisponible:
    id_produit: int
    raison: str


RésultatCatalogue = Union[DétailsProduit, ProduitIntrouvable, CatalogueIndisponible]


class AbstractCatalogue(abc.ABC):
    """Interface abstraite du catalogue de prix."""

    @abc.abstractmethod
    def rechercher(self, id_produit: int) -> RésultatCatalogue:
        raise NotImplementedError


class SqlAlchemyCatalogue(AbstractCatalogue):
    """
    Lit le nom et le prix courant dans la table des produits.

    Utilise sa propre session : la lecture du catalogue ne participe
    pas à la transaction de la commande.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def rechercher(self, id_produit: int) -> RésultatCatalogue:
        try:
            with self.session_factory() as session:
                row = session.execute(
                    text("SELECT id, nom, prix FROM produits WHERE id = :id"),
                    dict(id=id_produit),
                ).first()
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Catalogue indisponible pour le produit %s : %s", id_produit, e)
            return CatalogueIndisponible(id_produit=id_produit, raison=str(e))
        if row is None:
            logger.info("Produit %s absent du catalogue", id_produit)
            return ProduitIntrouvable(id_produit=id_produit)
        return DétailsProduit(
            id_produit=row.id, nom=row.nom, prix=Decimal(str(row.prix))
        )
