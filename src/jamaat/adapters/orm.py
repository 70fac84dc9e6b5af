"""
Mapping ORM avec SQLAlchemy (classical mapping).

On définit les tables séparément, puis on mappe les classes
du domaine sur ces tables. Le modèle de domaine reste ainsi
ignorant de la persistance.

Les noms de colonnes SQL restent en ASCII, le mapping traduit
vers les attributs français du domaine.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    event,
    inspect,
)
from sqlalchemy.orm import registry, relationship
from sqlalchemy.types import TypeDecorator

from jamaat.domain import model
from jamaat.domain.inventaire import ActionInventaire, ÉcritureInventaire
from jamaat.domain.value_objects import StatutÉvénement

metadata = MetaData()
mapper_registry = registry(metadata=metadata)


class EnsembleDeSalles(TypeDecorator):
    """Stocke un ensemble de salles sous forme de liste JSON triée."""

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return []
        return sorted(value)

    def process_result_value(self, value, dialect):
        return frozenset(value or [])


def _valeurs(enum_cls) -> list[str]:
    # On stocke les codes externes ("ISSUE"), pas les noms des membres
    return [membre.value for membre in enum_cls]


# --- Définition des tables ---

evenements = Table(
    "evenements",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("reference", String(255), unique=True, nullable=False),
    Column("nom", String(255)),
    Column("date_occasion", Date, nullable=False, index=True),
    Column("heure_occasion", String(8), nullable=False),
    Column("salles", EnsembleDeSalles, nullable=False),
    Column("nombre_thaals", Integer, nullable=False, server_default="0"),
    Column(
        "statut",
        Enum(StatutÉvénement, values_callable=_valeurs, name="statut_evenement"),
        nullable=False,
    ),
    Column("numero_version", Integer, nullable=False, server_default="0"),
)

ecritures_inventaire = Table(
    "ecritures_inventaire",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("reference_evenement", String(255), ForeignKey("evenements.reference"), index=True),
    Column("article", String(255), nullable=False),
    Column(
        "action",
        Enum(ActionInventaire, values_callable=_valeurs, name="action_inventaire"),
        nullable=False,
    ),
    Column("quantite", Integer, nullable=False),
    Column("horodatage", DateTime, nullable=True),
)


def start_mappers() -> None:
    """
    Configure le mapping entre les classes du domaine et les tables SQL.

    Idempotent : un second appel (import de l'API puis fixture de test)
    ne remappe pas les classes.
    """
    if inspect(model.Événement, raiseerr=False) is not None:
        return

    écritures_mapper = mapper_registry.map_imperatively(
        ÉcritureInventaire,
        ecritures_inventaire,
        properties={
            "id_événement": ecritures_inventaire.c.reference_evenement,
            "quantité": ecritures_inventaire.c.quantite,
        },
    )
    mapper_registry.map_imperatively(
        model.Événement,
        evenements,
        properties={
            "référence": evenements.c.reference,
            "numéro_version": evenements.c.numero_version,
            "écritures": relationship(
                écritures_mapper,
                primaryjoin=(evenements.c.reference == ecritures_inventaire.c.reference_evenement),
                order_by=ecritures_inventaire.c.id,
            ),
        },
    )


@event.listens_for(model.Événement, "load")
def receive_load(événement: model.Événement, _: object) -> None:
    """Initialise la liste d'événements quand un Événement est chargé depuis la BDD."""
    événement.événements = []
