"""
Commands du domaine.

Les commands représentent des intentions : quelque chose que
le système doit faire. Contrairement aux events (faits passés),
les commands sont des demandes qui peuvent échouer.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from jamaat.domain.inventaire import ActionInventaire


class Command:
    """Classe de base pour toutes les commands."""
    pass


@dataclass(frozen=True)
class CréerRéservation(Command):
    """
    Demande de réservation de salles pour une occasion.

    `forcer` confirme que l'utilisateur accepte un conflit de tampon.
    """

    référence: str
    nom: str
    date_occasion: date
    heure_occasion: str
    salles: frozenset[str] = field(default_factory=frozenset)
    nombre_thaals: int = 0
    forcer: bool = False


@dataclass(frozen=True)
class ReplanifierRéservation(Command):
    """Demande de modification de la date, de l'heure ou des salles d'une réservation."""

    référence: str
    date_occasion: date
    heure_occasion: str
    salles: frozenset[str] = field(default_factory=frozenset)
    forcer: bool = False


@dataclass(frozen=True)
class AnnulerRéservation(Command):
    référence: str


@dataclass(frozen=True)
class TerminerÉvénement(Command):
    référence: str


@dataclass(frozen=True)
class EnregistrerMouvement(Command):
    """Sortie, retour ou perte d'un article pour un événement."""

    référence: str
    article: str
    action: ActionInventaire
    quantité: int
    horodatage: Optional[datetime] = None


@dataclass(frozen=True)
class RécupérerPerte(Command):
    """Récupération d'articles déclarés perdus pour un événement."""

    référence: str
    article: str
    quantité: int
    horodatage: Optional[datetime] = None
