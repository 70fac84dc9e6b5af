"""
Contrôle des conflits de réservation de salles.

Une salle est occupée par une réservation à son heure de début,
et chaque réservation exige un tampon de préparation (2 heures par
défaut) avant et après elle sur la même salle :
- même salle, même date, même heure : conflit bloquant ;
- même salle, même date, écart inférieur au tampon : conflit de tampon,
  que l'utilisateur peut accepter explicitement ;
- sinon aucun conflit.

La fonction est pure : elle ne lit ni la base ni l'horloge,
l'appelant décide de bloquer, d'avertir ou de poursuivre.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable, Optional

from jamaat.domain.exceptions import EntréeInvalide
from jamaat.domain.value_objects import Créneau, StatutÉvénement, minutes_depuis_minuit

TAMPON_MINUTES = 120


class TypeConflit(str, enum.Enum):
    AUCUN = "none"
    TAMPON = "soft"
    BLOQUANT = "hard"


@dataclass(frozen=True)
class RésultatConflit:
    """
    Résultat étiqueté d'un contrôle de conflit.

    En cas de conflit, `salles_occupées` et `salles_disponibles`
    partitionnent les salles demandées.
    """

    type: TypeConflit
    message: str = ""
    salles_occupées: frozenset[str] = field(default_factory=frozenset)
    salles_disponibles: frozenset[str] = field(default_factory=frozenset)

    @property
    def bloquant(self) -> bool:
        return self.type is TypeConflit.BLOQUANT

    @property
    def en_conflit(self) -> bool:
        return self.type is not TypeConflit.AUCUN


AUCUN_CONFLIT = RésultatConflit(type=TypeConflit.AUCUN)


def _valider_candidat(candidat: Créneau, tampon_minutes: int) -> int:
    if candidat.date_occasion is None:
        raise EntréeInvalide("Date d'occasion manquante")
    if not candidat.salles:
        raise EntréeInvalide("Au moins une salle doit être demandée")
    if tampon_minutes is None or tampon_minutes <= 0:
        raise EntréeInvalide(f"Tampon invalide : {tampon_minutes!r}")
    return minutes_depuis_minuit(candidat.heure_occasion)


def _libellé(salles: Iterable[str]) -> str:
    return ", ".join(sorted(salles))


def vérifier_conflit(
    candidat: Créneau,
    existantes: Iterable[Créneau],
    tampon_minutes: int = TAMPON_MINUTES,
    *,
    exclure: Optional[str],
) -> RésultatConflit:
    """
    Classe la réservation candidate : aucun conflit, conflit de tampon
    ou conflit bloquant.

    `exclure` est obligatoire : c'est la référence de la réservation en
    cours de modification (None pour une nouvelle réservation). Elle est
    ignorée même si l'appelant a oublié de la filtrer.

    Un conflit bloquant l'emporte sur les conflits de tampon ; les salles
    occupées sont cumulées sur toutes les réservations en conflit.
    """
    minutes_candidat = _valider_candidat(candidat, tampon_minutes)
    salles_demandées = frozenset(candidat.salles)

    occupées: set[str] = set()
    message_bloquant = ""
    message_tampon = ""

    for autre in existantes:
        if exclure is not None and autre.référence == exclure:
            continue
        if autre.statut == StatutÉvénement.ANNULÉ:
            continue
        if autre.date_occasion != candidat.date_occasion:
            continue
        communes = salles_demandées & frozenset(autre.salles)
        if not communes:
            continue

        écart = abs(minutes_depuis_minuit(autre.heure_occasion) - minutes_candidat)
        if écart == 0:
            occupées |= communes
            if not message_bloquant:
                message_bloquant = (
                    f"Conflit bloquant : {_libellé(communes)} déjà réservée par "
                    f"« {autre.nom} » ({autre.heure_occasion})."
                )
        elif écart < tampon_minutes:
            occupées |= communes
            if not message_tampon:
                message_tampon = (
                    f"Alerte tampon : « {autre.nom} » est prévu à {autre.heure_occasion} "
                    f"dans {_libellé(communes)}, {tampon_minutes} minutes d'écart requises."
                )

    if message_bloquant:
        type_conflit, message = TypeConflit.BLOQUANT, message_bloquant
    elif message_tampon:
        type_conflit, message = TypeConflit.TAMPON, message_tampon
    else:
        return AUCUN_CONFLIT

    return RésultatConflit(
        type=type_conflit,
        message=message,
        salles_occupées=frozenset(occupées),
        salles_disponibles=salles_demandées - occupées,
    )
