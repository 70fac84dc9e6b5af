"""
Tests d'intégration du Repository avec SQLite en mémoire.

Vérifie que le mapping ORM fonctionne :
- sauvegarder et recharger un Événement avec ses écritures ;
- l'ensemble des salles et les statuts survivent à l'aller-retour ;
- la recherche par date.
"""

from datetime import date, datetime

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker

from jamaat.adapters import orm, repository
from jamaat.domain.inventaire import ActionInventaire, ÉcritureInventaire, réconcilier
from jamaat.domain.model import Événement
from jamaat.domain.value_objects import StatutÉvénement
from jamaat.service_layer import unit_of_work


def make_session_factory():
    engine = create_engine("sqlite:///:memory:")
    orm.metadata.create_all(engine)
    return sessionmaker(bind=engine)


def make_session():
    return make_session_factory()()


def nouvel_événement(référence="evt-1", jour=date(2024, 1, 10), heure="19:00", salles=("Maimoon Hall",)):
    return Événement(
        référence=référence,
        nom="Famille Najmi",
        date_occasion=jour,
        heure_occasion=heure,
        salles=salles,
        nombre_thaals=25,
    )


class TestSqlAlchemyRepository:
    def test_sauvegarder_et_recharger_un_événement(self):
        session = make_session()
        repo = repository.SqlAlchemyRepository(session)
        repo.add(nouvel_événement(salles=("Maimoon Hall", "Qutbi Hall")))
        session.commit()

        rechargé = repository.SqlAlchemyRepository(session).get("evt-1")
        assert rechargé is not None
        assert rechargé.salles == {"Maimoon Hall", "Qutbi Hall"}
        assert rechargé.statut is StatutÉvénement.PRÉVU
        assert rechargé.nombre_thaals == 25
        assert rechargé.événements == []

    def test_les_écritures_survivent_au_rechargement(self):
        session = make_session()
        repo = repository.SqlAlchemyRepository(session)
        événement = nouvel_événement()
        événement.enregistrer("THAAL", ActionInventaire.SORTIE, 25, datetime(2024, 1, 10, 17))
        événement.enregistrer("THAAL", ActionInventaire.RETOUR, 20, datetime(2024, 1, 10, 23))
        repo.add(événement)
        session.commit()
        session.expunge_all()

        rechargé = repository.SqlAlchemyRepository(session).get("evt-1")
        assert [e.action for e in rechargé.écritures] == [ActionInventaire.SORTIE, ActionInventaire.RETOUR]
        assert rechargé.écritures[0].id_événement == "evt-1"
        assert rechargé.bilan("THAAL").déficit == 5

    def test_actions_stockées_avec_leur_code(self):
        session = make_session()
        événement = nouvel_événement()
        événement.enregistrer("THAAL", ActionInventaire.RÉCUPÉRATION, 1)
        repository.SqlAlchemyRepository(session).add(événement)
        session.commit()

        actions = list(session.execute(text("SELECT action FROM ecritures_inventaire")).scalars())
        statuts = list(session.execute(text("SELECT statut FROM evenements")).scalars())
        assert actions == ["RECOVERY"]
        assert statuts == ["SCHEDULED"]

    def test_lister_par_date(self):
        session = make_session()
        repo = repository.SqlAlchemyRepository(session)
        repo.add(nouvel_événement("evt-1", heure="19:00"))
        repo.add(nouvel_événement("evt-2", heure="12:00"))
        repo.add(nouvel_événement("evt-3", jour=date(2024, 1, 11)))
        session.commit()

        repo2 = repository.SqlAlchemyRepository(session)
        trouvés = repo2.lister_par_date(date(2024, 1, 10))
        assert [e.référence for e in trouvés] == ["evt-2", "evt-1"]
        assert len(repo2.seen) == 2

    def test_get_retourne_none_si_inconnu(self):
        repo = repository.SqlAlchemyRepository(make_session())
        assert repo.get("INEXISTANT") is None


class TestSqlAlchemyUnitOfWork:
    def test_rollback_sans_commit(self):
        session_factory = make_session_factory()
        uow = unit_of_work.SqlAlchemyUnitOfWork(session_factory)
        with uow:
            uow.événements.add(nouvel_événement())

        with uow:
            assert uow.événements.get("evt-1") is None

    def test_commit_et_collecte_des_événements(self):
        session_factory = make_session_factory()
        uow = unit_of_work.SqlAlchemyUnitOfWork(session_factory)
        with uow:
            uow.événements.add(nouvel_événement())
            uow.commit()

        with uow:
            événement = uow.événements.get("evt-1")
            événement.annuler()
            uow.commit()

        collectés = list(uow.collect_new_events())
        assert len(collectés) == 1
        with uow:
            assert uow.événements.get("evt-1").statut is StatutÉvénement.ANNULÉ


class TestÉcrituresMappées:
    def test_une_écriture_se_construit_avec_le_mapping_démarré(self):
        orm.start_mappers()
        assert inspect(ÉcritureInventaire, raiseerr=False) is not None

        écriture = ÉcritureInventaire("evt-1", "THAAL", ActionInventaire.SORTIE, 5)

        assert réconcilier([écriture]).déficit == 5

    def test_enregistrer_puis_persister_par_le_unit_of_work(self):
        uow = unit_of_work.SqlAlchemyUnitOfWork(make_session_factory())
        with uow:
            uow.événements.add(nouvel_événement())
            uow.commit()

        with uow:
            uow.événements.get("evt-1").enregistrer("THAAL", ActionInventaire.SORTIE, 30)
            uow.commit()

        with uow:
            bilan = uow.événements.get("evt-1").bilan("THAAL")
        assert (bilan.émis, bilan.déficit) == (30, 30)
