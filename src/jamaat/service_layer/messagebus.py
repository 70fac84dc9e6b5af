"""
Message Bus.

Point central de dispatch des commands et des events :
1. un message entre dans le bus ;
2. le bus trouve son ou ses handlers ;
3. les events émis par les agrégats pendant le traitement
   sont collectés et traités à leur tour.

Une command a exactement un handler et son erreur remonte à l'appelant.
Un event a de 0 à N handlers ; leurs erreurs sont loggées sans bloquer.
"""

from __future__ import annotations

import inspect
import logging
from collections import deque
from typing import Any, Callable, Union

from jamaat.domain import commands, events
from jamaat.service_layer import unit_of_work

logger = logging.getLogger(__name__)

Message = Union[commands.Command, events.Event]


class MessageBus:
    """
    Message Bus avec injection de dépendances.

    Chaque handler reçoit le message en premier argument ; ses autres
    paramètres sont résolus par nom (`uow`, puis le dictionnaire de
    dépendances fourni au bootstrap).
    """

    def __init__(
        self,
        uow: unit_of_work.AbstractUnitOfWork,
        event_handlers: dict[type[events.Event], list[Callable]],
        command_handlers: dict[type[commands.Command], Callable],
        dependencies: dict[str, Any] | None = None,
    ):
        self.uow = uow
        self.event_handlers = event_handlers
        self.command_handlers = command_handlers
        self.dependencies = {"uow": uow, **(dependencies or {})}
        self.queue: deque[Message] = deque()

    def handle(self, message: Message) -> list[Any]:
        """
        Traite un message puis, en cascade, les events qu'il a produits.

        Retourne les résultats des command handlers, dans l'ordre.
        """
        self.queue = deque([message])
        results: list[Any] = []
        while self.queue:
            courant = self.queue.popleft()
            if isinstance(courant, commands.Command):
                results.append(self._handle_command(courant))
            elif isinstance(courant, events.Event):
                self._handle_event(courant)
            else:
                raise ValueError(f"Message de type inconnu : {type(courant)}")
        return results

    def _collecter(self) -> None:
        self.queue.extend(self.uow.collect_new_events())

    def _handle_event(self, event: events.Event) -> None:
        abonnés = self.event_handlers.get(type(event), [])
        if not abonnés:
            logger.debug("Aucun handler pour %s", type(event).__name__)
            return
        for handler in abonnés:
            logger.debug("%s -> %s", type(event).__name__, handler.__name__)
            try:
                self._call_handler(handler, event)
            except Exception:
                # Les erreurs d'event ne remontent pas à l'appelant
                logger.exception("Le handler %s a échoué sur %s", handler.__name__, event)
                continue
            self._collecter()

    def _handle_command(self, command: commands.Command) -> Any:
        handler = self.command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"Aucun handler pour la command {type(command)}")
        logger.debug("%s -> %s", type(command).__name__, handler.__name__)
        result = self._call_handler(handler, command)
        self._collecter()
        return result

    def _call_handler(self, handler: Callable, message: Message) -> Any:
        # Le premier paramètre est le message ; les suivants sont injectés par nom
        noms = list(inspect.signature(handler).parameters)[1:]
        kwargs = {nom: self.dependencies[nom] for nom in noms if nom in self.dependencies}
        return handler(message, **kwargs)
