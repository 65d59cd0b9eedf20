"""
Configuration partagée pour les tests.

Le mapping ORM est démarré une seule fois pour toute la session de tests.
Cela permet aux tests d'intégration et e2e d'utiliser SQLAlchemy
sans interférer avec les tests unitaires.

La base par défaut est une SQLite en mémoire : importer l'application
Flask ne crée aucun fichier sur le disque.
"""

import os

os.environ.setdefault("BOUTIQUE_DATABASE_URI", "sqlite://")

import pytest

from boutique.adapters import orm


@pytest.fixture(scope="session", autouse=True)
def mappers():
    """Démarre le mapping ORM une fois pour toute la session."""
    orm.start_mappers()
