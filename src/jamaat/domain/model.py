"""
Modèle de domaine des réservations de la jamaat.

L'agrégat Événement regroupe une réservation de salles pour une
occasion et le registre des mouvements d'inventaire qui lui sont
rattachés. Les règles elles-mêmes (conflits, réconciliation,
progression) sont des fonctions pures des modules voisins ;
l'agrégat leur fournit ses données et émet les événements du domaine.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

from jamaat.domain import events
from jamaat.domain.exceptions import EntréeInvalide, ÉcritureInvalide, ÉvénementVerrouillé
from jamaat.domain.inventaire import (
    ActionInventaire,
    BilanRéconciliation,
    ÉcritureInventaire,
    réconcilier,
    réconcilier_par_article,
    totaux,
    valider,
)
from jamaat.domain.progression import Progression, dériver_progression
from jamaat.domain.value_objects import Créneau, StatutÉvénement, minutes_depuis_minuit


def normaliser_salles(salles: Iterable[str] | str | None) -> frozenset[str]:
    """
    Accepte une salle seule ou une collection ; ignore les noms vides.

    Lève EntréeInvalide pour tout autre type (nombre, dictionnaire,
    collection contenant autre chose que des chaînes).
    """
    if salles is None:
        return frozenset()
    if isinstance(salles, str):
        salles = [salles]
    if isinstance(salles, (dict, bytes)) or not isinstance(salles, Iterable):
        raise EntréeInvalide(f"Salles illisibles : {salles!r}")
    salles = list(salles)
    if not all(isinstance(s, str) for s in salles if s is not None):
        raise EntréeInvalide(f"Salles illisibles : {salles!r}")
    return frozenset(s.strip() for s in salles if s and s.strip())


class Événement:
    """
    Agrégat racine : une réservation et son inventaire.

    L'identité est la référence de la réservation. Les écritures
    d'inventaire ne sont jamais modifiées, seulement ajoutées.
    """

    def __init__(
        self,
        référence: str,
        nom: str,
        date_occasion: date,
        heure_occasion: str,
        salles: Iterable[str],
        nombre_thaals: int = 0,
        statut: StatutÉvénement = StatutÉvénement.PRÉVU,
        écritures: Optional[list[ÉcritureInventaire]] = None,
        numéro_version: int = 0,
    ):
        self.référence = référence
        self.nom = nom
        self.date_occasion = date_occasion
        self.heure_occasion = heure_occasion
        self.salles = normaliser_salles(salles)
        self.nombre_thaals = nombre_thaals
        self.statut = statut
        self.écritures = écritures or []
        self.numéro_version = numéro_version
        self.événements: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Événement {self.référence}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Événement):
            return NotImplemented
        return self.référence == other.référence

    def __hash__(self) -> int:
        return hash(self.référence)

    @property
    def créneau(self) -> Créneau:
        return Créneau(
            date_occasion=self.date_occasion,
            heure_occasion=self.heure_occasion,
            salles=frozenset(self.salles),
            référence=self.référence,
            nom=self.nom,
            statut=self.statut,
        )

    # --- Cycle de vie de la réservation ---

    def contrôler_replanifiable(self) -> None:
        if self.statut != StatutÉvénement.PRÉVU:
            raise ÉvénementVerrouillé(
                f"Impossible de replanifier {self.référence} ({self.statut.value})"
            )

    def replanifier(self, date_occasion: date, heure_occasion: str, salles: Iterable[str]) -> None:
        """Change la date, l'heure ou les salles. Interdit sur un événement annulé ou terminé."""
        self.contrôler_replanifiable()
        salles = normaliser_salles(salles)
        if date_occasion is None or not salles:
            raise EntréeInvalide("Date et salles obligatoires")
        minutes_depuis_minuit(heure_occasion)
        self.date_occasion = date_occasion
        self.heure_occasion = heure_occasion
        self.salles = salles
        self.numéro_version += 1

    def annuler(self) -> None:
        """Libère les salles. Un événement terminé ne peut plus être annulé."""
        if self.statut == StatutÉvénement.ANNULÉ:
            return
        if self.statut == StatutÉvénement.TERMINÉ:
            raise ÉvénementVerrouillé(f"L'événement {self.référence} est déjà terminé")
        self.statut = StatutÉvénement.ANNULÉ
        self.numéro_version += 1
        self.événements.append(events.ÉvénementAnnulé(référence=self.référence))

    def terminer(self) -> None:
        if self.statut == StatutÉvénement.ANNULÉ:
            raise ÉvénementVerrouillé(f"L'événement {self.référence} est annulé")
        if self.statut == StatutÉvénement.TERMINÉ:
            return
        self.statut = StatutÉvénement.TERMINÉ
        self.numéro_version += 1

    # --- Inventaire ---

    def enregistrer(
        self,
        article: str,
        action: ActionInventaire,
        quantité: int,
        horodatage: Optional[datetime] = None,
    ) -> ÉcritureInventaire:
        """
        Ajoute un mouvement d'inventaire au registre.

        Un événement annulé refuse tout mouvement ; un événement terminé
        refuse les sorties mais accepte encore retours, pertes et récupérations.
        Émet MouvementEnregistré, plus PerteDéclarée pour une perte et
        IncohérenceDétectée si le bilan de l'article devient incohérent.
        """
        if self.statut == StatutÉvénement.ANNULÉ:
            raise ÉvénementVerrouillé(f"L'inventaire de {self.référence} est verrouillé (annulé)")
        if self.statut == StatutÉvénement.TERMINÉ and action == ActionInventaire.SORTIE:
            raise ÉvénementVerrouillé(f"L'événement {self.référence} est terminé")
        if not article:
            raise EntréeInvalide("Article manquant")

        écriture = ÉcritureInventaire(
            id_événement=self.référence,
            article=article,
            action=action,
            quantité=quantité,
            horodatage=horodatage,
        )
        valider(écriture)
        if quantité == 0:
            raise ÉcritureInvalide(écriture, "quantité nulle")

        self.écritures.append(écriture)
        self.numéro_version += 1
        self.événements.append(
            events.MouvementEnregistré(
                référence=self.référence,
                article=article,
                action=action.value,
                quantité=quantité,
            )
        )
        if action == ActionInventaire.PERTE:
            self.événements.append(
                events.PerteDéclarée(référence=self.référence, article=article, quantité=quantité)
            )

        bilan = self.bilan(article)
        if bilan.incohérent:
            self.événements.append(
                events.IncohérenceDétectée(
                    référence=self.référence,
                    article=article,
                    incohérences=frozenset(i.value for i in bilan.incohérences),
                )
            )
        return écriture

    def bilan(self, article: str) -> BilanRéconciliation:
        return réconcilier(e for e in self.écritures if e.article == article)

    def bilans(self) -> dict[str, BilanRéconciliation]:
        return réconcilier_par_article(self.écritures)

    def progression(self, maintenant: datetime) -> Progression:
        émis_total, déficit_total = totaux(self.bilans().values())
        return dériver_progression(
            self.date_occasion, self.statut, émis_total, déficit_total, maintenant
        )
