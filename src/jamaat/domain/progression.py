"""
Progression d'un événement (l'étape affichée dans le stepper).

L'étape dépend du statut, de la position de l'horloge par rapport
à la date de l'occasion et de l'état de l'inventaire. L'horloge est
toujours passée en paramètre : rien ici ne lit l'heure système.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from jamaat.domain.exceptions import EntréeInvalide
from jamaat.domain.value_objects import StatutÉvénement

DÉLAI_RÈGLEMENT_HEURES = 48


class Étape(enum.IntEnum):
    RÉSERVÉ = 1
    EXPÉDIÉ = 2
    EN_COURS = 3
    EN_RETOUR = 4
    RÉGLÉ = 5


@dataclass(frozen=True)
class Progression:
    """
    Étape dérivée d'un événement.

    `échéance_règlement` est l'instant du règlement automatique
    (occasion + 48h). `émission_anticipée` signale du matériel sorti
    avant le jour de l'occasion.
    """

    étape: Étape
    info_règlement: Optional[str]
    échéance_règlement: datetime
    émission_anticipée: bool = False


def _début(date_occasion: date | datetime) -> datetime:
    if isinstance(date_occasion, datetime):
        return date_occasion
    return datetime.combine(date_occasion, time.min)


def _avec_fuseau(instant: date | datetime) -> bool:
    return isinstance(instant, datetime) and instant.utcoffset() is not None


def _jour(instant: date | datetime) -> date:
    return instant.date() if isinstance(instant, datetime) else instant


def dériver_progression(
    date_occasion: Optional[date | datetime],
    statut: StatutÉvénement,
    émis_total: int,
    déficit_total: int,
    maintenant: Optional[datetime],
    délai_heures: int = DÉLAI_RÈGLEMENT_HEURES,
) -> Progression:
    """
    Dérive l'étape d'un événement. Les règles sont évaluées dans l'ordre :

    1. événement terminé : réglé ;
    2. plus de 48h après l'occasion : réglé automatiquement ;
    3. rien n'est sorti : réservé ;
    4. sinon, le jour de l'occasion : en cours ; après : en retour ;
       avant : expédié (sortie anticipée, signalée) ;
       et si tout est rentré à partir de l'étape en retour : réglé.
    """
    if date_occasion is None:
        raise EntréeInvalide("Date d'occasion manquante")
    if maintenant is None:
        raise EntréeInvalide("Horloge manquante")
    # Heure locale de la jamaat, sans fuseau
    if _avec_fuseau(maintenant) or _avec_fuseau(date_occasion):
        raise EntréeInvalide(f"Horodatage avec fuseau non accepté : {maintenant!r}")

    début = _début(date_occasion)
    échéance = début + timedelta(hours=délai_heures)

    if statut == StatutÉvénement.TERMINÉ:
        return Progression(Étape.RÉGLÉ, "Réglé : événement terminé", échéance)

    heures_écoulées = (maintenant - début).total_seconds() / 3600
    if heures_écoulées > délai_heures:
        return Progression(
            Étape.RÉGLÉ,
            f"Réglé automatiquement le {échéance:%d/%m/%Y %H:%M}",
            échéance,
        )

    if émis_total == 0:
        return Progression(Étape.RÉSERVÉ, None, échéance)

    jour_occasion = _jour(date_occasion)
    aujourd_hui = maintenant.date()
    if aujourd_hui == jour_occasion:
        étape = Étape.EN_COURS
    elif aujourd_hui > jour_occasion:
        étape = Étape.EN_RETOUR
    else:
        return Progression(Étape.EXPÉDIÉ, None, échéance, émission_anticipée=True)

    if déficit_total <= 0 and étape >= Étape.EN_RETOUR:
        return Progression(Étape.RÉGLÉ, "Réglé : inventaire conforme", échéance)

    restant = max(0.0, délai_heures - heures_écoulées)
    if restant <= 0:
        info = "Règlement imminent"
    else:
        info = f"Règlement automatique dans {math.ceil(restant)} h"
    return Progression(étape, info, échéance)
