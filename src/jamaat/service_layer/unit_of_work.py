"""
Pattern Unit of Work.

Le Unit of Work coordonne la transaction en base et la collecte
des événements émis par les agrégats pendant cette transaction.

    with uow:
        événement = uow.événements.get(référence)
        ...
        uow.commit()

Sans appel à commit(), la sortie du bloc annule tout.
"""

from __future__ import annotations

import abc
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from jamaat import config
from jamaat.adapters import repository
from jamaat.domain import events


def default_session_factory() -> sessionmaker:
    return sessionmaker(
        bind=create_engine(
            config.get_database_uri(),
            isolation_level="SERIALIZABLE",
        )
    )


class AbstractUnitOfWork(abc.ABC):
    """Fournit le repository `événements` et gère commit/rollback."""

    événements: repository.AbstractRepository

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        self._commit()

    def collect_new_events(self) -> Iterator[events.Event]:
        """Vide et retourne les événements des agrégats vus dans la transaction."""
        for événement in self.événements.seen:
            while événement.événements:
                yield événement.événements.pop(0)

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Implémentation concrète du UoW avec SQLAlchemy.

    Une session par bloc `with`, fermée à la sortie.
    """

    def __init__(self, session_factory: sessionmaker | None = None):
        self.session_factory = session_factory or default_session_factory()

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self.session: Session = self.session_factory()
        self.événements = repository.SqlAlchemyRepository(self.session)
        return super().__enter__()

    def __exit__(self, *args: object) -> None:
        super().__exit__(*args)
        self.session.close()

    def _commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
