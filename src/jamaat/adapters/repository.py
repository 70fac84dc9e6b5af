"""
Pattern Repository.

Le repository expose une interface de type collection (add, get)
sur les événements persistés. Les noms de méthodes du pattern
restent en anglais ; les requêtes propres au domaine
(lister_par_date) sont en français.
"""

from __future__ import annotations

import abc
from datetime import date

from sqlalchemy.orm import Session

from jamaat.domain import model


class AbstractRepository(abc.ABC):
    """
    Interface abstraite du repository.

    Les méthodes publiques gèrent le tracking via `seen`, puis
    délèguent aux méthodes abstraites préfixées _.
    """

    seen: set[model.Événement]

    def __init__(self) -> None:
        # Agrégats consultés pendant la transaction, pour la collecte des événements
        self.seen: set[model.Événement] = set()

    def add(self, événement: model.Événement) -> None:
        self._add(événement)
        self.seen.add(événement)

    def get(self, référence: str) -> model.Événement | None:
        événement = self._get(référence)
        if événement:
            self.seen.add(événement)
        return événement

    def lister_par_date(self, date_occasion: date) -> list[model.Événement]:
        """Réservations d'une date donnée, annulées comprises."""
        événements = self._lister_par_date(date_occasion)
        self.seen.update(événements)
        return événements

    @abc.abstractmethod
    def _add(self, événement: model.Événement) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, référence: str) -> model.Événement | None:
        raise NotImplementedError

    @abc.abstractmethod
    def _lister_par_date(self, date_occasion: date) -> list[model.Événement]:
        raise NotImplementedError


class SqlAlchemyRepository(AbstractRepository):
    """Implémentation concrète du repository avec SQLAlchemy."""

    def __init__(self, session: Session):
        super().__init__()
        self.session = session

    def _add(self, événement: model.Événement) -> None:
        self.session.add(événement)

    def _get(self, référence: str) -> model.Événement | None:
        return (
            self.session.query(model.Événement)
            .filter_by(référence=référence)
            .first()
        )

    def _lister_par_date(self, date_occasion: date) -> list[model.Événement]:
        return (
            self.session.query(model.Événement)
            .filter_by(date_occasion=date_occasion)
            .order_by(model.Événement.heure_occasion)
            .all()
        )
