"""
Bootstrap : assemblage de l'application (Composition Root).

Seul endroit qui connaît les implémentations concrètes :
on y assemble le message bus avec ses dépendances réelles,
ou avec des fakes pour les tests.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from jamaat import config
from jamaat.adapters import notifications, orm
from jamaat.domain import commands, events
from jamaat.service_layer import handlers, messagebus, unit_of_work


def bootstrap(
    start_orm: bool = True,
    uow: unit_of_work.AbstractUnitOfWork | None = None,
    notifications_adapter: notifications.AbstractNotifications | None = None,
    horloge: Callable[[], datetime] = datetime.now,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """
    Construit et retourne un MessageBus configuré.

    `extra_dependencies` permet de surcharger `tampon_minutes`
    ou `destinataire_admin` (tests, scripts).
    """
    if start_orm:
        orm.start_mappers()

    if uow is None:
        uow = unit_of_work.SqlAlchemyUnitOfWork()

    if notifications_adapter is None:
        notifications_adapter = notifications.EmailNotifications()

    dependencies: dict[str, Any] = {
        "notifications": notifications_adapter,
        "horloge": horloge,
        "tampon_minutes": config.get_buffer_minutes(),
        "destinataire_admin": config.get_admin_email(),
        **extra_dependencies,
    }

    return messagebus.MessageBus(
        uow=uow,
        event_handlers=EVENT_HANDLERS,
        command_handlers=COMMAND_HANDLERS,
        dependencies=dependencies,
    )


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list] = {
    events.RéservationCréée: [handlers.notifier_nouvelle_réservation],
    events.ConflitTamponAccepté: [handlers.journaliser_conflit_accepté],
    events.ÉvénementAnnulé: [handlers.journaliser_annulation],
    events.MouvementEnregistré: [handlers.journaliser_mouvement],
    events.PerteDéclarée: [handlers.notifier_perte],
    events.IncohérenceDétectée: [handlers.signaler_incohérence],
}

COMMAND_HANDLERS: dict[type[commands.Command], Any] = {
    commands.CréerRéservation: handlers.créer_réservation,
    commands.ReplanifierRéservation: handlers.replanifier_réservation,
    commands.AnnulerRéservation: handlers.annuler_réservation,
    commands.TerminerÉvénement: handlers.terminer_événement,
    commands.EnregistrerMouvement: handlers.enregistrer_mouvement,
    commands.RécupérerPerte: handlers.récupérer_perte,
}
