"""
Views (lecture) pour le pattern CQRS.

Fonctions de lecture qui interrogent directement les tables,
sans charger d'agrégat. Les bilans et la progression sont
recalculés à chaque lecture par les règles pures du domaine.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import select, text

from jamaat.adapters import orm
from jamaat.domain import conflits, inventaire, progression as règles_progression
from jamaat.domain.inventaire import ActionInventaire, ÉcritureInventaire
from jamaat.domain.value_objects import Créneau, StatutÉvénement
from jamaat.service_layer import unit_of_work


def _réservation_en_dict(row) -> dict:
    return {
        "ref": row.reference,
        "name": row.nom,
        "occasion_date": row.date_occasion.isoformat(),
        "occasion_time": row.heure_occasion,
        "halls": sorted(row.salles),
        "thaal_count": row.nombre_thaals,
        "status": row.statut.value,
    }


def _bilan_en_dict(article: str, bilan: inventaire.BilanRéconciliation) -> dict:
    return {
        "item": article,
        "issued": bilan.émis,
        "returned": bilan.retourné,
        "lost": bilan.perdu,
        "deficit": bilan.déficit,
        "settled": bilan.réglé,
        "inconsistencies": sorted(i.value for i in bilan.incohérences),
    }


def _écritures(référence: str, uow: unit_of_work.AbstractUnitOfWork) -> list[ÉcritureInventaire]:
    results = uow.session.execute(
        text(
            "SELECT article, action, quantite FROM ecritures_inventaire"
            " WHERE reference_evenement = :ref"
        ),
        dict(ref=référence),
    )
    return [
        ÉcritureInventaire(
            id_événement=référence,
            article=r.article,
            action=ActionInventaire(r.action),
            quantité=r.quantite,
        )
        for r in results
    ]


def réservation(référence: str, uow: unit_of_work.AbstractUnitOfWork) -> Optional[dict]:
    with uow:
        row = uow.session.execute(
            select(orm.evenements).where(orm.evenements.c.reference == référence)
        ).first()
        return _réservation_en_dict(row) if row else None


def réservations_du_jour(
    date_occasion: date, uow: unit_of_work.AbstractUnitOfWork
) -> list[dict]:
    """Toutes les réservations d'une date, annulées comprises, par heure."""
    with uow:
        rows = uow.session.execute(
            select(orm.evenements)
            .where(orm.evenements.c.date_occasion == date_occasion)
            .order_by(orm.evenements.c.heure_occasion)
        )
        return [_réservation_en_dict(r) for r in rows]


def vérifier_conflit(
    candidat: Créneau,
    uow: unit_of_work.AbstractUnitOfWork,
    tampon_minutes: int,
    exclure: Optional[str] = None,
) -> conflits.RésultatConflit:
    """
    Contrôle à blanc utilisé par le formulaire de réservation.

    Lève EntréeInvalide si le candidat est mal formé.
    """
    with uow:
        rows = uow.session.execute(
            select(orm.evenements).where(
                orm.evenements.c.date_occasion == candidat.date_occasion,
                orm.evenements.c.statut != StatutÉvénement.ANNULÉ,
            )
        )
        existantes = [
            Créneau(
                date_occasion=r.date_occasion,
                heure_occasion=r.heure_occasion,
                salles=r.salles,
                référence=r.reference,
                nom=r.nom,
                statut=r.statut,
            )
            for r in rows
            if r.reference != exclure
        ]
    return conflits.vérifier_conflit(candidat, existantes, tampon_minutes, exclure=exclure)


def bilan_inventaire(référence: str, uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    """Bilan par article d'un événement, trié par article."""
    with uow:
        écritures = _écritures(référence, uow)
    return [
        _bilan_en_dict(article, bilan)
        for article, bilan in inventaire.réconcilier_par_article(écritures).items()
    ]


def progression(
    référence: str,
    maintenant: datetime,
    uow: unit_of_work.AbstractUnitOfWork,
) -> Optional[dict]:
    with uow:
        row = uow.session.execute(
            select(orm.evenements.c.date_occasion, orm.evenements.c.statut)
            .where(orm.evenements.c.reference == référence)
        ).first()
        if row is None:
            return None
        écritures = _écritures(référence, uow)

    émis_total, déficit_total = inventaire.totaux(
        inventaire.réconcilier_par_article(écritures).values()
    )
    résultat = règles_progression.dériver_progression(
        row.date_occasion, row.statut, émis_total, déficit_total, maintenant
    )
    return {
        "stage": résultat.étape.name,
        "step": int(résultat.étape),
        "settlement_info": résultat.info_règlement,
        "auto_settle_at": résultat.échéance_règlement.isoformat(),
        "early_dispatch": résultat.émission_anticipée,
    }


def objets_perdus(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    """
    Articles encore perdus (pertes non compensées par une récupération),
    avec le nom de l'événement, du plus récent au plus ancien.
    """
    with uow:
        rows = uow.session.execute(
            text(
                "SELECT e.reference, e.nom, e.date_occasion, c.article, c.action, c.quantite"
                " FROM ecritures_inventaire c"
                " JOIN evenements e ON e.reference = c.reference_evenement"
                " WHERE c.action IN ('LOSS', 'RECOVERY')"
            )
        ).all()

    par_couple: dict[tuple[str, str], list[ÉcritureInventaire]] = {}
    noms: dict[str, tuple[str, str]] = {}
    for r in rows:
        noms[r.reference] = (r.nom, str(r.date_occasion))
        par_couple.setdefault((r.reference, r.article), []).append(
            ÉcritureInventaire(
                id_événement=r.reference,
                article=r.article,
                action=ActionInventaire(r.action),
                quantité=r.quantite,
            )
        )

    perdus = []
    for (référence, article), écritures in par_couple.items():
        bilan = inventaire.réconcilier(écritures)
        if bilan.perdu > 0:
            nom, date_occasion = noms[référence]
            perdus.append({
                "ref": référence,
                "event_name": nom,
                "occasion_date": date_occasion,
                "item": article,
                "lost": bilan.perdu_brut,
                "recovered": bilan.récupéré,
                "remaining": bilan.perdu,
            })
    perdus.sort(key=lambda p: (p["occasion_date"], p["ref"], p["item"]), reverse=True)
    return perdus
