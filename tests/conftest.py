"""
Configuration partagée pour les tests.

Le mapping ORM est démarré une seule fois pour toute la session de tests,
ce qui permet aux tests d'intégration et e2e d'utiliser SQLAlchemy.
"""

import pytest

from jamaat.adapters import orm


@pytest.fixture(scope="session", autouse=True)
def mappers():
    """Démarre le mapping ORM une fois pour toute la session."""
    orm.start_mappers()
