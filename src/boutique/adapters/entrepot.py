"""
Entrepôt de reporting (modèle en étoile).

L'entrepôt agit comme un Unit of Work dédié au reporting :
    with entrepôt:
        entrepôt.assurer_date(...)
        entrepôt.ajouter_fait(...)
        entrepôt.commit()

Toutes les insertions utilisent INSERT ... ON CONFLICT DO NOTHING
sur les clés naturelles : deux livraisons concurrentes du même event
ne peuvent créer ni dimension ni fait en double.
"""

from __future__ import annotations

import abc
import threading
from datetime import date
from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from boutique.domain import reporting


class AbstractEntrepôt(abc.ABC):
    """
    Interface abstraite de l'entrepôt de reporting.

    Comme pour le Unit of Work, le rollback est automatique
    si commit() n'est pas appelé.
    """

    def __enter__(self) -> AbstractEntrepôt:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        self._commit()

    @abc.abstractmethod
    def assurer_date(self, jour: date) -> int:
        """Crée la ligne de dimension date si besoin ; retourne sa clé."""
        raise NotImplementedError

    @abc.abstractmethod
    def assurer_client(self, id_client: int, email: Optional[str]) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def assurer_produit(self, id_produit: int, nom_produit: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def ajouter_fait(self, fait: reporting.FaitVente) -> bool:
        """Insère le fait ; retourne False s'il existait déjà pour (commande, ligne)."""
        raise NotImplementedError

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyEntrepôt(AbstractEntrepôt):
    """Implémentation SQL de l'entrepôt, une session par thread."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self._local = threading.local()

    @property
    def session(self) -> Session:
        return self._local.session

    def __enter__(self) -> SqlAlchemyEntrepôt:
        self._local.session = self.session_factory()
        return super().__enter__()

    def __exit__(self, *args: object) -> None:
        super().__exit__(*args)
        self.session.close()

    def assurer_date(self, jour: date) -> int:
        clé = reporting.clé_date(jour)
        self.session.execute(
            text(
                "INSERT INTO dim_date"
                " (cle_date, date, annee, trimestre, mois, jour, jour_semaine)"
                " VALUES (:cle, :date, :annee, :trimestre, :mois, :jour, :jour_semaine)"
                " ON CONFLICT (cle_date) DO NOTHING"
            ),
            dict(
                cle=clé,
                date=jour.isoformat(),
                annee=jour.year,
                trimestre=(jour.month - 1) // 3 + 1,
                mois=jour.month,
                jour=jour.day,
                jour_semaine=jour.isoweekday(),
            ),
        )
        return clé

    def assurer_client(self, id_client: int, email: Optional[str]) -> None:
        self.session.execute(
            text(
                "INSERT INTO dim_client (id_client, email) VALUES (:id_client, :email)"
                " ON CONFLICT (id_client) DO NOTHING"
            ),
            dict(id_client=id_client, email=email),
        )

    def assurer_produit(self, id_produit: int, nom_produit: str) -> None:
        self.session.execute(
            text(
                "INSERT INTO dim_produit (id_produit, nom_produit) VALUES (:id_produit, :nom)"
                " ON CONFLICT (id_produit) DO NOTHING"
            ),
            dict(id_produit=id_produit, nom=nom_produit),
        )

    def ajouter_fait(self, fait: reporting.FaitVente) -> bool:
        résultat = self.session.execute(
            text(
                "INSERT INTO faits_ventes"
                " (cle_date, id_client, id_produit, quantite, prix_unitaire,"
                "  total_ligne, montant_commande, numero_commande,"
                "  id_commande_source, id_ligne_source)"
                " VALUES (:cle_date, :id_client, :id_produit, :quantite, :prix_unitaire,"
                "  :total_ligne, :montant_commande, :numero_commande,"
                "  :id_commande_source, :id_ligne_source)"
                " ON CONFLICT (id_commande_source, id_ligne_source) DO NOTHING"
            ),
            dict(
                cle_date=fait.clé_date,
                id_client=fait.id_client,
                id_produit=fait.id_produit,
                quantite=fait.quantité,
                # Les pilotes SQL ne savent pas tous lier un Decimal.
                prix_unitaire=str(fait.prix_unitaire),
                total_ligne=str(fait.total_ligne),
                montant_commande=str(fait.montant_commande),
                numero_commande=fait.numéro_commande,
                id_commande_source=fait.id_commande_source,
                id_ligne_source=fait.id_ligne_source,
            ),
        )
        return résultat.rowcount == 1

    def _commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
