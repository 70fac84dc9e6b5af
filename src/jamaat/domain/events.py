"""
Events du domaine.

Les events représentent des faits qui se sont produits dans le système.
Ils sont immuables et nommés au passé (quelque chose s'est passé).
"""

from dataclasses import dataclass
from datetime import date


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class RéservationCréée(Event):
    référence: str
    nom: str
    date_occasion: date
    heure_occasion: str
    salles: frozenset[str]


@dataclass(frozen=True)
class ConflitTamponAccepté(Event):
    """Une réservation a été enregistrée malgré un conflit de tampon."""

    référence: str
    message: str


@dataclass(frozen=True)
class ÉvénementAnnulé(Event):
    référence: str


@dataclass(frozen=True)
class MouvementEnregistré(Event):
    référence: str
    article: str
    action: str
    quantité: int


@dataclass(frozen=True)
class PerteDéclarée(Event):
    référence: str
    article: str
    quantité: int


@dataclass(frozen=True)
class IncohérenceDétectée(Event):
    """Le bilan d'un article présente un sur-retour ou une sur-perte."""

    référence: str
    article: str
    incohérences: frozenset[str]
