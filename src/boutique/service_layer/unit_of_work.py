"""
Pattern Unit of Work.

Le Unit of Work (UoW) gère la notion de transaction atomique.
Il coordonne l'écriture en base de données et la collecte
des événements émis par les agrégats au cours de la transaction.

Le UoW agit comme un context manager :
    with uow:
        # ... opérations sur les repositories ...
        uow.commit()
"""

from __future__ import annotations

import abc
import threading

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from boutique import config
from boutique.adapters import repository
from boutique.domain import model

DEFAULT_ENGINE = create_engine(config.get_database_uri())
DEFAULT_SESSION_FACTORY = sessionmaker(bind=DEFAULT_ENGINE)


class AbstractUnitOfWork(abc.ABC):
    """
    Interface abstraite du Unit of Work.

    Fournit les repositories `commandes`, `clients` et `produits`
    et gère commit/rollback. Le rollback est automatique si commit()
    n'est pas appelé (grâce au __exit__ du context manager).
    """

    commandes: repository.AbstractRepository
    clients: repository.AbstractRéférentiel[model.Client]
    produits: repository.AbstractRéférentiel[model.Produit]

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        self._commit()

    def collect_new_events(self):
        """
        Collecte tous les événements émis par les commandes vues
        pendant cette transaction.

        Appelé par le message bus une fois le handler terminé,
        donc après le commit : un abonné n'est jamais prévenu
        d'un changement qui n'a pas été persisté.
        """
        for commande in self.commandes.seen:
            while commande.événements:
                yield commande.événements.pop(0)

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Implémentation concrète du UoW avec SQLAlchemy.

    Crée une session à l'entrée du context manager,
    la ferme à la sortie. Rollback automatique si pas de commit.

    Le UoW est partagé par toutes les requêtes via le message bus :
    la session et les repositories sont donc propres à chaque thread.
    """

    def __init__(self, session_factory: sessionmaker = DEFAULT_SESSION_FACTORY):
        self.session_factory = session_factory
        self._local = threading.local()

    @property
    def session(self) -> Session:
        return self._local.session

    @property
    def commandes(self) -> repository.AbstractRepository:
        return self._local.commandes

    @property
    def clients(self) -> repository.AbstractRéférentiel[model.Client]:
        return self._local.clients

    @property
    def produits(self) -> repository.AbstractRéférentiel[model.Produit]:
        return self._local.produits

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        session = self.session_factory()
        self._local.session = session
        self._local.commandes = repository.SqlAlchemyRepository(session)
        self._local.clients = repository.SqlAlchemyRéférentiel(session, model.Client)
        self._local.produits = repository.SqlAlchemyRéférentiel(session, model.Produit)
        return super().__enter__()

    def __exit__(self, *args: object) -> None:
        super().__exit__(*args)
        self.session.close()

    def collect_new_events(self):
        # Un thread qui n'a encore ouvert aucune transaction n'a rien à collecter.
        if hasattr(self._local, "commandes"):
            yield from super().collect_new_events()

    def _commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
