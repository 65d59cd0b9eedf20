"""
Mapping ORM avec SQLAlchemy (classical mapping).

On définit les tables séparément, puis on mappe les classes
du domaine sur ces tables. Cela permet au modèle de domaine
de rester ignorant de la persistance (persistence ignorance).

Les noms de colonnes SQL restent en ASCII pour la compatibilité,
le mapping traduit vers les attributs français du domaine.

Les tables du modèle en étoile (dim_*, faits_ventes) partagent les
mêmes métadonnées mais ne sont mappées sur aucune classe : elles
sont alimentées en SQL par l'entrepôt de reporting.
"""

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    UniqueConstraint,
    event,
    inspect,
)
from sqlalchemy.orm import registry, relationship

from boutique.domain import model

metadata = MetaData()
mapper_registry = registry(metadata=metadata)

# --- Tables transactionnelles ---

clients = Table(
    "clients",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("nom", String(255), nullable=False),
    Column("email", String(255), nullable=False),
)

produits = Table(
    "produits",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("nom", String(255), nullable=False),
    Column("prix", Numeric(10, 2), nullable=False),
)

commandes = Table(
    "commandes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("id_client", Integer, ForeignKey("clients.id"), nullable=False),
    Column("numero", String(32), nullable=False, unique=True),
    Column("date_commande", Date, nullable=False),
    Column(
        "statut",
        Enum(
            model.StatutCommande,
            native_enum=False,
            length=20,
            values_callable=lambda statuts: [s.value for s in statuts],
        ),
        nullable=False,
    ),
    Column("cree_le", DateTime(timezone=True)),
    Column("modifie_le", DateTime(timezone=True)),
    Column("dernier_id_ligne", Integer, nullable=False, server_default="0"),
    Column("numero_version", Integer, nullable=False),
)

lignes_commande = Table(
    "lignes_commande",
    metadata,
    Column(
        "id_commande",
        Integer,
        ForeignKey("commandes.id"),
        primary_key=True,
        autoincrement=False,
    ),
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("id_produit", Integer, nullable=False),
    Column("nom_produit", String(255), nullable=False),
    Column("quantite", Integer, nullable=False),
    Column("prix_unitaire", Numeric(10, 2), nullable=False),
)

# --- Modèle en étoile (reporting) ---

dim_date = Table(
    "dim_date",
    metadata,
    Column("cle_date", Integer, primary_key=True, autoincrement=False),
    Column("date", Date, nullable=False),
    Column("annee", Integer, nullable=False),
    Column("trimestre", Integer, nullable=False),
    Column("mois", Integer, nullable=False),
    Column("jour", Integer, nullable=False),
    Column("jour_semaine", Integer, nullable=False),
)

dim_client = Table(
    "dim_client",
    metadata,
    Column("id_client", Integer, primary_key=True, autoincrement=False),
    Column("email", String(255)),
)

dim_produit = Table(
    "dim_produit",
    metadata,
    Column("id_produit", Integer, primary_key=True, autoincrement=False),
    Column("nom_produit", String(255)),
)

faits_ventes = Table(
    "faits_ventes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("cle_date", Integer, ForeignKey("dim_date.cle_date"), nullable=False),
    Column("id_client", Integer, ForeignKey("dim_client.id_client"), nullable=False),
    Column("id_produit", Integer, ForeignKey("dim_produit.id_produit"), nullable=False),
    Column("quantite", Integer, nullable=False),
    Column("prix_unitaire", Numeric(10, 2), nullable=False),
    Column("total_ligne", Numeric(12, 2), nullable=False),
    Column("montant_commande", Numeric(12, 2), nullable=False),
    Column("numero_commande", String(32), nullable=False),
    Column("id_commande_source", Integer, nullable=False),
    Column("id_ligne_source", Integer, nullable=False),
    UniqueConstraint(
        "id_commande_source", "id_ligne_source", name="uq_faits_ventes_source"
    ),
)


def start_mappers() -> None:
    """
    Configure le mapping entre les classes du domaine et les tables SQL.

    Utilise le classical mapping : les classes du domaine ne connaissent
    pas SQLAlchemy. Un second appel n'a aucun effet.

    `numero_version` sert de jeton de concurrence optimiste : deux
    transactions qui modifient la même commande ne peuvent pas
    toutes les deux valider.
    """
    if inspect(model.Commande, raiseerr=False) is not None:
        return

    mapper_registry.map_imperatively(model.Client, clients)
    mapper_registry.map_imperatively(model.Produit, produits)
    lignes_mapper = mapper_registry.map_imperatively(
        model.LigneDeCommande,
        lignes_commande,
        properties={
            "quantité": lignes_commande.c.quantite,
        },
    )
    mapper_registry.map_imperatively(
        model.Commande,
        commandes,
        properties={
            "numéro": commandes.c.numero,
            "créée_le": commandes.c.cree_le,
            "modifiée_le": commandes.c.modifie_le,
            "_dernier_id_ligne": commandes.c.dernier_id_ligne,
            "_lignes": relationship(
                lignes_mapper,
                cascade="all, delete-orphan",
                order_by=lignes_commande.c.id,
            ),
        },
        version_id_col=commandes.c.numero_version,
    )


@event.listens_for(model.Commande, "load")
def receive_load(commande: model.Commande, _: object) -> None:
    """Initialise la liste d'événements quand une Commande est chargée depuis la BDD."""
    commande.événements = []
