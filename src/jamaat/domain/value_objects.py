"""
Value objects partagés par les règles de réservation et de progression.

Ils décrivent ce que les règles lisent d'une réservation, sans
rien savoir de la persistance.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from jamaat.domain.exceptions import EntréeInvalide


class StatutÉvénement(str, enum.Enum):
    """Statut d'une réservation. Les valeurs sont les codes échangés avec l'extérieur."""

    PRÉVU = "SCHEDULED"
    ANNULÉ = "CANCELLED"
    TERMINÉ = "COMPLETED"


FORMATS_HEURE = ("%H:%M", "%H:%M:%S")


def minutes_depuis_minuit(heure: Optional[str]) -> int:
    """
    Convertit une heure murale ("19:30" ou "19:30:00") en minutes depuis minuit.

    Lève EntréeInvalide si l'heure est absente ou illisible.
    """
    if not heure or not isinstance(heure, str):
        raise EntréeInvalide(f"Heure manquante : {heure!r}")
    for fmt in FORMATS_HEURE:
        try:
            lue = datetime.strptime(heure.strip(), fmt)
        except ValueError:
            continue
        return lue.hour * 60 + lue.minute
    raise EntréeInvalide(f"Heure illisible : {heure!r}")


@dataclass(frozen=True)
class Créneau:
    """
    Value Object : l'occupation d'une ou plusieurs salles à une date et une heure.

    C'est la forme minimale d'une réservation consommée par le
    contrôle de conflits. `référence` vaut None pour une réservation
    pas encore enregistrée.
    """

    date_occasion: date
    heure_occasion: str
    salles: frozenset[str] = field(default_factory=frozenset)
    référence: Optional[str] = None
    nom: str = ""
    statut: StatutÉvénement = StatutÉvénement.PRÉVU
