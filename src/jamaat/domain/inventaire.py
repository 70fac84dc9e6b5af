"""
Registre d'inventaire d'un événement.

Chaque mouvement (sortie, retour, perte, récupération) est une
écriture immuable ajoutée au registre ; une perte n'est jamais
corrigée en modifiant l'écriture, mais en ajoutant une récupération.

La réconciliation réduit les écritures d'un article pour un événement
à un bilan : quantités émises, retournées, perdues et déficit.
"""

from __future__ import annotations

import enum
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from jamaat.domain.exceptions import EntréeInvalide, ÉcritureInvalide


class ActionInventaire(str, enum.Enum):
    SORTIE = "ISSUE"
    RETOUR = "RETURN"
    PERTE = "LOSS"
    RÉCUPÉRATION = "RECOVERY"


class Incohérence(str, enum.Enum):
    """Signal de données incohérentes, affiché plutôt que masqué."""

    SUR_RETOUR = "OVER_RETURN"
    SUR_PERTE = "OVER_LOSS"
    RÉCUPÉRATION_EXCÉDENTAIRE = "OVER_RECOVERY"


@dataclass(unsafe_hash=True)
class ÉcritureInventaire:
    """
    Value Object représentant un mouvement d'inventaire.

    Non gelé : le mapping SQLAlchemy pose son état sur l'instance.
    Une écriture n'est jamais modifiée après son ajout au registre.

    L'horodatage sert uniquement au tri et à l'affichage,
    jamais au calcul du bilan.
    """

    id_événement: str
    article: str
    action: ActionInventaire
    quantité: int
    horodatage: Optional[datetime] = None


@dataclass(frozen=True)
class BilanRéconciliation:
    """
    Bilan calculé d'un article pour un événement. Jamais persisté.

    Toutes les quantités sont positives ou nulles par construction.
    """

    émis: int = 0
    retourné: int = 0
    perdu: int = 0
    déficit: int = 0
    retourné_brut: int = 0
    perdu_brut: int = 0
    récupéré: int = 0
    incohérences: frozenset[Incohérence] = field(default_factory=frozenset)

    @property
    def incohérent(self) -> bool:
        return bool(self.incohérences)

    @property
    def réglé(self) -> bool:
        """Vrai quand tout ce qui est sorti est rentré ou déclaré perdu."""
        return self.déficit == 0


def valider(écriture: ÉcritureInventaire) -> None:
    """Lève ÉcritureInvalide si l'écriture est mal formée."""
    if not isinstance(écriture.action, ActionInventaire):
        raise ÉcritureInvalide(écriture, "action inconnue")
    quantité = écriture.quantité
    if isinstance(quantité, bool) or not isinstance(quantité, int):
        raise ÉcritureInvalide(écriture, "quantité non entière")
    if quantité < 0:
        raise ÉcritureInvalide(écriture, "quantité négative")


def réconcilier(écritures: Iterable[ÉcritureInventaire]) -> BilanRéconciliation:
    """
    Calcule le bilan d'un article pour un événement.

    - retourné = retours + récupérations (un objet récupéré compte comme rendu)
    - perdu = max(0, pertes - récupérations) (la récupération compense d'abord la perte)
    - déficit = max(0, émis - retourné - perdu)

    L'ordre des écritures est sans effet. Les écritures doivent toutes
    concerner le même couple (événement, article).
    """
    sommes = {action: 0 for action in ActionInventaire}
    couple: Optional[tuple[str, str]] = None

    for écriture in écritures:
        valider(écriture)
        clé = (écriture.id_événement, écriture.article)
        if couple is None:
            couple = clé
        elif clé != couple:
            raise EntréeInvalide(
                f"Écritures de plusieurs articles ou événements : {couple} et {clé}"
            )
        sommes[écriture.action] += écriture.quantité

    émis = sommes[ActionInventaire.SORTIE]
    retourné_brut = sommes[ActionInventaire.RETOUR]
    perdu_brut = sommes[ActionInventaire.PERTE]
    récupéré = sommes[ActionInventaire.RÉCUPÉRATION]

    retourné = retourné_brut + récupéré
    perdu = max(0, perdu_brut - récupéré)
    déficit = max(0, émis - retourné - perdu)

    incohérences = set()
    if retourné > émis:
        incohérences.add(Incohérence.SUR_RETOUR)
    elif retourné + perdu > émis:
        incohérences.add(Incohérence.SUR_PERTE)
    if récupéré > perdu_brut:
        incohérences.add(Incohérence.RÉCUPÉRATION_EXCÉDENTAIRE)

    return BilanRéconciliation(
        émis=émis,
        retourné=retourné,
        perdu=perdu,
        déficit=déficit,
        retourné_brut=retourné_brut,
        perdu_brut=perdu_brut,
        récupéré=récupéré,
        incohérences=frozenset(incohérences),
    )


def réconcilier_par_article(
    écritures: Iterable[ÉcritureInventaire],
) -> dict[str, BilanRéconciliation]:
    """Regroupe les écritures d'un événement par article et réconcilie chacun."""
    par_article: dict[str, list[ÉcritureInventaire]] = defaultdict(list)
    for écriture in écritures:
        par_article[écriture.article].append(écriture)
    return {
        article: réconcilier(lignes)
        for article, lignes in sorted(par_article.items())
    }


def totaux(bilans: Iterable[BilanRéconciliation]) -> tuple[int, int]:
    """Retourne (quantité émise totale, déficit total) pour un événement."""
    émis_total = 0
    déficit_total = 0
    for bilan in bilans:
        émis_total += bilan.émis
        déficit_total += bilan.déficit
    return émis_total, déficit_total
