"""
Tests end-to-end de l'API Flask.

Ces tests vérifient le flux complet :
HTTP request → Flask → Message Bus → Handlers → Repository → SQLite

On utilise le test client Flask avec une base SQLite en mémoire,
ce qui donne des tests rapides tout en couvrant toute la chaîne.
"""

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from boutique.adapters import orm
from boutique.adapters.catalogue import SqlAlchemyCatalogue
from boutique.adapters.email_queue import EmailQueue
from boutique.adapters.entrepot import SqlAlchemyEntrepôt
from boutique.entrypoints.flask_app import app
from boutique.service_layer import bootstrap, unit_of_work


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    orm.metadata.create_all(engine)
    return engine


@pytest.fixture
def email_queue():
    return EmailQueue()


@pytest.fixture
def sqlite_bus(engine, email_queue):
    """Crée un message bus configuré avec SQLite en mémoire."""
    session_factory = sessionmaker(bind=engine)
    return bootstrap.bootstrap(
        start_orm=False,
        uow=unit_of_work.SqlAlchemyUnitOfWork(session_factory=session_factory),
        catalogue=SqlAlchemyCatalogue(session_factory),
        entrepôt=SqlAlchemyEntrepôt(session_factory),
        email_queue=email_queue,
    )


@pytest.fixture
def client(sqlite_bus):
    """Client de test Flask avec le bus injecté."""
    import boutique.entrypoints.flask_app as flask_module

    original_bus = flask_module.bus
    flask_module.bus = sqlite_bus
    app.config["TESTING"] = True

    with app.test_client() as client:
        yield client

    flask_module.bus = original_bus


def créer_client(client, email="camille@example.com") -> int:
    response = client.post("/clients", json={"nom": "Camille", "email": email})
    assert response.status_code == 201
    return response.get_json()["id"]


def créer_produit(client, nom: str, prix: str) -> int:
    response = client.post("/produits", json={"nom": nom, "prix": prix})
    assert response.status_code == 201
    return response.get_json()["id"]


@pytest.fixture
def catalogue(client):
    return {
        "tasse": créer_produit(client, "Tasse bleue", "19.99"),
        "théière": créer_produit(client, "Théière", "29.99"),
        "sous-verre": créer_produit(client, "Sous-verre", "4.50"),
    }


def créer_commande(client, id_client: int, *lignes) -> int:
    response = client.post("/commandes", json={
        "id_client": id_client,
        "date_commande": "2025-01-15",
        "lignes": [{"id_produit": p, "quantite": q} for p, q in lignes],
    })
    assert response.status_code == 201
    return response.get_json()["id"]


class TestCréation:
    def test_créer_et_lire_une_commande(self, client, catalogue):
        id_client = créer_client(client)
        id_commande = créer_commande(
            client, id_client, (catalogue["tasse"], 2), (catalogue["théière"], 1)
        )

        response = client.get(f"/commandes/{id_commande}")

        assert response.status_code == 200
        data = response.get_json()
        assert data["statut"] == "en_attente"
        assert data["numéro"].startswith("CMD-20250115-")
        assert data["montant_total"] == "69.97"
        assert [l["nom_produit"] for l in data["lignes"]] == ["Tasse bleue", "Théière"]

    def test_client_inconnu_retourne_404(self, client, catalogue):
        response = client.post("/commandes", json={
            "id_client": 999,
            "lignes": [{"id_produit": catalogue["tasse"], "quantite": 1}],
        })
        assert response.status_code == 404

    def test_produit_inconnu_retourne_404(self, client):
        id_client = créer_client(client)
        response = client.post("/commandes", json={
            "id_client": id_client,
            "lignes": [{"id_produit": 999, "quantite": 1}],
        })
        assert response.status_code == 404
        assert "999" in response.get_json()["message"]

    def test_quantité_invalide_retourne_400(self, client, catalogue):
        id_client = créer_client(client)
        response = client.post("/commandes", json={
            "id_client": id_client,
            "lignes": [{"id_produit": catalogue["tasse"], "quantite": 0}],
        })
        assert response.status_code == 400

    def test_prix_invalide_retourne_400(self, client):
        response = client.post("/produits", json={"nom": "Bol", "prix": "gratuit"})
        assert response.status_code == 400

    def test_commande_inconnue_retourne_404(self, client):
        assert client.get("/commandes/999").status_code == 404


class TestScénarioComplet:
    def test_fusion_confirmation_email_et_reporting(
        self, client, catalogue, engine, email_queue
    ):
        id_client = créer_client(client)
        id_commande = créer_commande(
            client, id_client, (catalogue["tasse"], 2), (catalogue["théière"], 1)
        )

        response = client.post(
            f"/commandes/{id_commande}/lignes",
            json={"id_produit": catalogue["tasse"], "quantite": 1},
        )
        assert response.status_code == 201
        assert response.get_json()["id_ligne"] == 1

        assert client.post(f"/commandes/{id_commande}/confirmation").status_code == 200

        data = client.get(f"/commandes/{id_commande}").get_json()
        assert data["statut"] == "confirmee"
        assert data["montant_total"] == "89.96"
        assert [l["quantité"] for l in data["lignes"]] == [3, 1]

        response = client.post(
            f"/commandes/{id_commande}/lignes",
            json={"id_produit": catalogue["sous-verre"], "quantite": 1},
        )
        assert response.status_code == 409

        message = email_queue.dequeue(timeout=0)
        assert message.destinataire == "camille@example.com"
        assert data["numéro"] in message.sujet

        with engine.connect() as conn:
            nb_faits = conn.execute(text("SELECT COUNT(*) FROM faits_ventes")).scalar_one()
        assert nb_faits == 2

    def test_confirmer_deux_fois_retourne_409(self, client, catalogue):
        id_commande = créer_commande(client, créer_client(client), (catalogue["tasse"], 1))

        assert client.post(f"/commandes/{id_commande}/confirmation").status_code == 200
        assert client.post(f"/commandes/{id_commande}/confirmation").status_code == 409


class TestLignes:
    def test_retirer_une_ligne(self, client, catalogue):
        id_commande = créer_commande(
            client, créer_client(client), (catalogue["tasse"], 2), (catalogue["théière"], 1)
        )

        response = client.delete(f"/commandes/{id_commande}/lignes/1")

        assert response.status_code == 204
        data = client.get(f"/commandes/{id_commande}").get_json()
        assert [l["id"] for l in data["lignes"]] == [2]
        assert data["montant_total"] == "29.99"

    def test_retirer_une_ligne_inconnue_retourne_404(self, client, catalogue):
        id_commande = créer_commande(client, créer_client(client), (catalogue["tasse"], 2))

        assert client.delete(f"/commandes/{id_commande}/lignes/42").status_code == 404


class TestStatut:
    def test_annuler_une_commande(self, client, catalogue, email_queue):
        id_commande = créer_commande(client, créer_client(client), (catalogue["tasse"], 1))

        response = client.post(
            f"/commandes/{id_commande}/statut", json={"statut": "annulee"}
        )

        assert response.status_code == 200
        assert client.get(f"/commandes/{id_commande}").get_json()["statut"] == "annulee"
        assert "Annulation" in email_queue.dequeue(timeout=0).sujet

    def test_statut_inconnu_retourne_400(self, client, catalogue):
        id_commande = créer_commande(client, créer_client(client), (catalogue["tasse"], 1))

        response = client.post(
            f"/commandes/{id_commande}/statut", json={"statut": "perdue"}
        )

        assert response.status_code == 400

    def test_transition_interdite_retourne_409(self, client, catalogue):
        id_commande = créer_commande(client, créer_client(client), (catalogue["tasse"], 1))

        response = client.post(
            f"/commandes/{id_commande}/statut", json={"statut": "livree"}
        )

        assert response.status_code == 409


class TestRequêtesInvalides:
    @pytest.mark.parametrize(
        "url, corps",
        [
            ("/produits", {"nom": "Bol"}),
            ("/produits", {"nom": "Bol", "prix": "gratuit"}),
            ("/produits", {"nom": "Bol", "prix": "-3.00"}),
            ("/clients", {"nom": "Camille"}),
            ("/commandes", {"lignes": []}),
            ("/commandes", {"id_client": "un", "lignes": []}),
            ("/commandes", {"id_client": 1, "lignes": "tasse"}),
            ("/commandes", {"id_client": 1, "lignes": [{"quantite": 1}]}),
            ("/commandes", {"id_client": 1, "date_commande": "15/01/2025"}),
        ],
    )
    def test_corps_mal_formé_retourne_400(self, client, url, corps):
        response = client.post(url, json=corps)

        assert response.status_code == 400
        assert response.get_json()["message"]

    def test_corps_absent_retourne_400(self, client):
        response = client.post("/clients", data="pas du json", content_type="text/plain")

        assert response.status_code == 400
        assert response.get_json()["message"]

    def test_statut_absent_retourne_400(self, client, catalogue):
        id_commande = créer_commande(client, créer_client(client), (catalogue["tasse"], 1))

        response = client.post(f"/commandes/{id_commande}/statut", json={})

        assert response.status_code == 400


@pytest.fixture
def client_catalogue_en_panne(engine, email_queue):
    """Le catalogue pointe vers une base sans table produits."""
    import boutique.entrypoints.flask_app as flask_module

    session_factory = sessionmaker(bind=engine)
    bus = bootstrap.bootstrap(
        start_orm=False,
        uow=unit_of_work.SqlAlchemyUnitOfWork(session_factory=session_factory),
        catalogue=SqlAlchemyCatalogue(sessionmaker(bind=create_engine("sqlite://"))),
        entrepôt=SqlAlchemyEntrepôt(session_factory),
        email_queue=email_queue,
    )
    original_bus = flask_module.bus
    flask_module.bus = bus
    app.config["TESTING"] = True

    with app.test_client() as client:
        yield client

    flask_module.bus = original_bus


class TestCatalogueEnPanne:
    def test_créer_une_commande_retourne_503(self, client_catalogue_en_panne, engine):
        id_client = créer_client(client_catalogue_en_panne)

        response = client_catalogue_en_panne.post("/commandes", json={
            "id_client": id_client,
            "lignes": [{"id_produit": 1, "quantite": 1}],
        })

        assert response.status_code == 503
        assert "Catalogue" in response.get_json()["message"]
        with engine.connect() as conn:
            assert conn.execute(text("SELECT COUNT(*) FROM commandes")).scalar_one() == 0


class UnitOfWorkAvecÉcritureConcurrente(unit_of_work.SqlAlchemyUnitOfWork):
    """Simule une autre transaction qui modifie chaque commande juste avant notre commit."""

    def __init__(self, session_factory, engine):
        super().__init__(session_factory=session_factory)
        self.engine = engine

    def _commit(self) -> None:
        for commande in self.commandes.seen:
            with self.engine.begin() as conn:
                conn.execute(
                    text(
                        "UPDATE commandes SET numero_version = numero_version + 1"
                        " WHERE id = :id"
                    ),
                    dict(id=commande.id),
                )
        super()._commit()


class TestConcurrence:
    def test_modification_concurrente_retourne_409(self, client, catalogue, engine, email_queue):
        import boutique.entrypoints.flask_app as flask_module

        id_commande = créer_commande(client, créer_client(client), (catalogue["tasse"], 1))
        session_factory = sessionmaker(bind=engine)
        flask_module.bus = bootstrap.bootstrap(
            start_orm=False,
            uow=UnitOfWorkAvecÉcritureConcurrente(session_factory, engine),
            catalogue=SqlAlchemyCatalogue(session_factory),
            entrepôt=SqlAlchemyEntrepôt(session_factory),
            email_queue=email_queue,
        )

        response = client.post(f"/commandes/{id_commande}/confirmation")

        assert response.status_code == 409
        assert "modifiée" in response.get_json()["message"]
        assert client.get(f"/commandes/{id_commande}").get_json()["statut"] == "en_attente"
        assert email_queue.dequeue(timeout=0) is None
