"""
Handlers pour les commands et events.

- Command handlers : exécutent une action (peuvent échouer)
- Event handlers : réagissent à un fait passé (ne doivent pas bloquer la command)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from jamaat.domain import commands, events, model
from jamaat.domain.conflits import RésultatConflit, TypeConflit, vérifier_conflit
from jamaat.domain.inventaire import ActionInventaire
from jamaat.domain.value_objects import Créneau

if TYPE_CHECKING:
    from jamaat.adapters.notifications import AbstractNotifications
    from jamaat.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


# --- Exceptions ---


class RéférenceInconnue(Exception):
    """Levée quand une réservation référencée n'existe pas."""
    pass


class RéférenceDupliquée(Exception):
    """Levée quand on crée une réservation avec une référence déjà prise."""
    pass


class ConflitDeRéservation(Exception):
    """Classe de base des conflits de salles ; porte le résultat du contrôle."""

    def __init__(self, résultat: RésultatConflit):
        super().__init__(résultat.message)
        self.résultat = résultat


class ConflitBloquant(ConflitDeRéservation):
    """Même salle, même heure : la réservation est refusée."""
    pass


class ConflitTampon(ConflitDeRéservation):
    """Écart insuffisant avec une autre réservation : confirmation requise (forcer)."""
    pass


# --- Helpers ---


def _contrôler_créneau(
    uow: AbstractUnitOfWork,
    candidat: Créneau,
    forcer: bool,
    tampon_minutes: int,
) -> RésultatConflit:
    existantes = [
        e.créneau
        for e in uow.événements.lister_par_date(candidat.date_occasion)
        if e.référence != candidat.référence
    ]
    résultat = vérifier_conflit(
        candidat, existantes, tampon_minutes, exclure=candidat.référence
    )
    if résultat.type is TypeConflit.BLOQUANT:
        raise ConflitBloquant(résultat)
    if résultat.type is TypeConflit.TAMPON and not forcer:
        raise ConflitTampon(résultat)
    return résultat


def _charger(uow: AbstractUnitOfWork, référence: str) -> model.Événement:
    événement = uow.événements.get(référence=référence)
    if événement is None:
        raise RéférenceInconnue(f"Réservation inconnue : {référence}")
    return événement


# --- Command Handlers ---


def créer_réservation(
    cmd: commands.CréerRéservation,
    uow: AbstractUnitOfWork,
    tampon_minutes: int,
) -> str:
    """
    Enregistre une nouvelle réservation après contrôle des conflits.

    Lève ConflitBloquant, ou ConflitTampon si le conflit de tampon
    n'a pas été confirmé. Retourne la référence.
    """
    with uow:
        if uow.événements.get(référence=cmd.référence) is not None:
            raise RéférenceDupliquée(f"Référence déjà utilisée : {cmd.référence}")
        événement = model.Événement(
            référence=cmd.référence,
            nom=cmd.nom,
            date_occasion=cmd.date_occasion,
            heure_occasion=cmd.heure_occasion,
            salles=cmd.salles,
            nombre_thaals=cmd.nombre_thaals,
        )
        résultat = _contrôler_créneau(uow, événement.créneau, cmd.forcer, tampon_minutes)
        événement.événements.append(
            events.RéservationCréée(
                référence=événement.référence,
                nom=événement.nom,
                date_occasion=événement.date_occasion,
                heure_occasion=événement.heure_occasion,
                salles=événement.salles,
            )
        )
        if résultat.en_conflit:
            événement.événements.append(
                events.ConflitTamponAccepté(référence=événement.référence, message=résultat.message)
            )
        uow.événements.add(événement)
        uow.commit()
    return cmd.référence


def replanifier_réservation(
    cmd: commands.ReplanifierRéservation,
    uow: AbstractUnitOfWork,
    tampon_minutes: int,
) -> None:
    """
    Modifie date, heure ou salles ; la réservation elle-même est exclue du contrôle.

    Le statut est vérifié avant les conflits : un événement annulé ou
    terminé est verrouillé quel que soit le créneau demandé.
    """
    with uow:
        événement = _charger(uow, cmd.référence)
        événement.contrôler_replanifiable()
        candidat = Créneau(
            date_occasion=cmd.date_occasion,
            heure_occasion=cmd.heure_occasion,
            salles=model.normaliser_salles(cmd.salles),
            référence=événement.référence,
            nom=événement.nom,
        )
        résultat = _contrôler_créneau(uow, candidat, cmd.forcer, tampon_minutes)
        événement.replanifier(cmd.date_occasion, cmd.heure_occasion, cmd.salles)
        if résultat.en_conflit:
            événement.événements.append(
                events.ConflitTamponAccepté(référence=événement.référence, message=résultat.message)
            )
        uow.commit()


def annuler_réservation(
    cmd: commands.AnnulerRéservation,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        _charger(uow, cmd.référence).annuler()
        uow.commit()


def terminer_événement(
    cmd: commands.TerminerÉvénement,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        _charger(uow, cmd.référence).terminer()
        uow.commit()


def enregistrer_mouvement(
    cmd: commands.EnregistrerMouvement,
    uow: AbstractUnitOfWork,
    horloge: Callable[[], datetime],
) -> None:
    """Sortie, retour ou perte. La récupération passe par RécupérerPerte."""
    if cmd.action == ActionInventaire.RÉCUPÉRATION:
        raise ValueError("Une récupération passe par la command RécupérerPerte")
    with uow:
        événement = _charger(uow, cmd.référence)
        événement.enregistrer(
            article=cmd.article,
            action=cmd.action,
            quantité=cmd.quantité,
            horodatage=cmd.horodatage or horloge(),
        )
        uow.commit()


def récupérer_perte(
    cmd: commands.RécupérerPerte,
    uow: AbstractUnitOfWork,
    horloge: Callable[[], datetime],
) -> None:
    with uow:
        événement = _charger(uow, cmd.référence)
        événement.enregistrer(
            article=cmd.article,
            action=ActionInventaire.RÉCUPÉRATION,
            quantité=cmd.quantité,
            horodatage=cmd.horodatage or horloge(),
        )
        uow.commit()


# --- Event Handlers ---


def journaliser_mouvement(event: events.MouvementEnregistré) -> None:
    logger.info(
        "Mouvement %s : %d x %s pour %s",
        event.action, event.quantité, event.article, event.référence,
    )


def notifier_nouvelle_réservation(
    event: events.RéservationCréée,
    notifications: AbstractNotifications,
    destinataire_admin: str,
) -> None:
    """Prévient les administrateurs d'une nouvelle réservation."""
    notifications.send(
        destination=destinataire_admin,
        sujet=f"Nouvelle réservation : {event.nom}",
        message=(
            f"{event.nom} a réservé {', '.join(sorted(event.salles))} "
            f"le {event.date_occasion:%d/%m/%Y} à {event.heure_occasion}."
        ),
    )


def journaliser_conflit_accepté(event: events.ConflitTamponAccepté) -> None:
    logger.warning("Conflit de tampon accepté pour %s : %s", event.référence, event.message)


def journaliser_annulation(event: events.ÉvénementAnnulé) -> None:
    logger.info("Réservation %s annulée, salles libérées", event.référence)


def notifier_perte(
    event: events.PerteDéclarée,
    notifications: AbstractNotifications,
    destinataire_admin: str,
) -> None:
    notifications.send(
        destination=destinataire_admin,
        sujet=f"Perte déclarée : {event.article}",
        message=f"{event.quantité} x {event.article} déclaré(s) perdu(s) pour {event.référence}.",
    )


def signaler_incohérence(
    event: events.IncohérenceDétectée,
    notifications: AbstractNotifications,
    destinataire_admin: str,
) -> None:
    """Les incohérences sont des données à corriger : on les rend visibles."""
    logger.warning(
        "Incohérence d'inventaire pour %s / %s : %s",
        event.référence, event.article, ", ".join(sorted(event.incohérences)),
    )
    notifications.send(
        destination=destinataire_admin,
        sujet=f"Incohérence d'inventaire : {event.article}",
        message=(
            f"Le bilan de {event.article} pour {event.référence} est incohérent "
            f"({', '.join(sorted(event.incohérences))})."
        ),
    )
