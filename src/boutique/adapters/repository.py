"""
Pattern Repository.

Le repository fournit une abstraction sur la couche de persistance.
Il expose une interface de type collection (add, get) qui masque
les détails de l'accès aux données.

Les noms de méthodes du pattern (add, get) restent en anglais
car ce sont des conventions reconnues. Les méthodes spécifiques
au domaine (get_par_numéro) sont en français.
"""

from __future__ import annotations

import abc
from typing import Generic, Optional, TypeVar

from sqlalchemy.orm import Session

from boutique.domain import model


class AbstractRepository(abc.ABC):
    """
    Interface abstraite du repository des commandes.

    Le pattern Template Method est utilisé : les méthodes publiques
    (add, get) gèrent le tracking via `seen`, puis délèguent
    aux méthodes abstraites préfixées _ que les sous-classes implémentent.
    """

    seen: set[model.Commande]

    def __init__(self) -> None:
        # `seen` trace tous les agrégats consultés pendant la transaction,
        # ce qui permet au Unit of Work de collecter leurs événements.
        self.seen: set[model.Commande] = set()

    def add(self, commande: model.Commande) -> None:
        """
        Ajoute une commande et la marque comme vue.

        L'identifiant de la commande est attribué à l'ajout.
        """
        self._add(commande)
        self.seen.add(commande)

    def get(self, id_commande: int) -> Optional[model.Commande]:
        commande = self._get(id_commande)
        if commande:
            self.seen.add(commande)
        return commande

    def get_par_numéro(self, numéro: str) -> Optional[model.Commande]:
        commande = self._get_par_numéro(numéro)
        if commande:
            self.seen.add(commande)
        return commande

    @abc.abstractmethod
    def _add(self, commande: model.Commande) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, id_commande: int) -> Optional[model.Commande]:
        raise NotImplementedError

    @abc.abstractmethod
    def _get_par_numéro(self, numéro: str) -> Optional[model.Commande]:
        raise NotImplementedError


class SqlAlchemyRepository(AbstractRepository):
    """Implémentation concrète du repository avec SQLAlchemy."""

    def __init__(self, session: Session):
        super().__init__()
        self.session = session

    def _add(self, commande: model.Commande) -> None:
        self.session.add(commande)
        # Le flush attribue l'id (autoincrement) sans valider la transaction.
        self.session.flush()

    def _get(self, id_commande: int) -> Optional[model.Commande]:
        return self.session.get(model.Commande, id_commande)

    def _get_par_numéro(self, numéro: str) -> Optional[model.Commande]:
        return (
            self.session.query(model.Commande)
            .filter_by(numéro=numéro)
            .first()
        )


# --- Données de référence (clients, produits) ---

T = TypeVar("T", model.Client, model.Produit)


class AbstractRéférentiel(abc.ABC, Generic[T]):
    """
    Repository minimal pour les entités de référence.

    Ces entités n'émettent pas d'événements : pas besoin de `seen`.
    """

    @abc.abstractmethod
    def add(self, entité: T) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, id: int) -> Optional[T]:
        raise NotImplementedError


class SqlAlchemyRéférentiel(AbstractRéférentiel[T]):
    def __init__(self, session: Session, classe: type[T]):
        self.session = session
        self.classe = classe

    def add(self, entité: T) -> None:
        self.session.add(entité)
        self.session.flush()

    def get(self, id: int) -> Optional[T]:
        return self.session.get(self.classe, id)
