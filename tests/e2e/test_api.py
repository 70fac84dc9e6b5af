"""
Tests end-to-end de l'API Flask.

HTTP request → Flask → Message Bus → Handlers → Repository → SQLite,
avec le test client Flask et une base SQLite en mémoire.
"""

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from jamaat.adapters import notifications, orm
from jamaat.entrypoints.flask_app import app
from jamaat.service_layer import bootstrap, unit_of_work


class FakeNotifications(notifications.AbstractNotifications):
    def __init__(self):
        self.envoyés = []

    def send(self, destination: str, sujet: str, message: str) -> None:
        self.envoyés.append({"destination": destination, "sujet": sujet, "message": message})


@pytest.fixture
def sqlite_bus():
    """Message bus sur SQLite en mémoire, horloge figée."""
    engine = create_engine("sqlite:///:memory:")
    orm.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine)

    uow = unit_of_work.SqlAlchemyUnitOfWork(session_factory=session_factory)
    return bootstrap.bootstrap(
        start_orm=False,
        uow=uow,
        notifications_adapter=FakeNotifications(),
        horloge=lambda: datetime(2024, 1, 10, 16, 0),
        tampon_minutes=120,
    )


@pytest.fixture
def client(sqlite_bus):
    """Client de test Flask avec le bus injecté."""
    import jamaat.entrypoints.flask_app as flask_module

    original_bus = flask_module.bus
    flask_module.bus = sqlite_bus
    app.config["TESTING"] = True

    with app.test_client() as client:
        yield client

    flask_module.bus = original_bus


def réserver(client, ref, heure="19:00", halls=("Maimoon Hall",), **extra):
    return client.post("/events", json={
        "ref": ref,
        "name": f"Famille {ref}",
        "occasion_date": "2024-01-10",
        "occasion_time": heure,
        "halls": list(halls),
        "thaal_count": 30,
        **extra,
    })


def mouvement(client, ref, action, qty, item="THAAL"):
    return client.post(f"/events/{ref}/inventory", json={"item": item, "action": action, "qty": qty})


class TestRéservations:
    def test_créer_une_réservation(self, client):
        response = réserver(client, "evt-1")
        assert response.status_code == 201
        assert response.get_json() == {"ref": "evt-1"}

    def test_lister_les_réservations_du_jour(self, client):
        réserver(client, "evt-1", "19:00")
        réserver(client, "evt-2", "12:00", halls=("Najmi Hall",))

        response = client.get("/events?date=2024-01-10")

        assert response.status_code == 200
        data = response.get_json()
        assert [e["ref"] for e in data] == ["evt-2", "evt-1"]
        assert data[1]["halls"] == ["Maimoon Hall"]
        assert data[1]["status"] == "SCHEDULED"

    def test_lister_sans_date_retourne_400(self, client):
        assert client.get("/events").status_code == 400

    def test_conflit_bloquant_retourne_409(self, client):
        réserver(client, "evt-1", "19:00")

        response = réserver(client, "evt-2", "19:00", force=True)

        assert response.status_code == 409
        data = response.get_json()
        assert data["conflict_type"] == "hard"
        assert data["occupied_halls"] == ["Maimoon Hall"]

    def test_conflit_tampon_puis_confirmation(self, client):
        réserver(client, "evt-1", "19:00")

        refusée = réserver(client, "evt-2", "18:00", halls=("Maimoon Hall", "Fakhri Hall"))
        assert refusée.status_code == 409
        assert refusée.get_json()["conflict_type"] == "soft"
        assert refusée.get_json()["available_halls"] == ["Fakhri Hall"]

        forcée = réserver(client, "evt-2", "18:00", halls=("Maimoon Hall", "Fakhri Hall"), force=True)
        assert forcée.status_code == 201

    def test_réservation_sans_salle_retourne_400(self, client):
        response = réserver(client, "evt-1", halls=())
        assert response.status_code == 400

    def test_heure_illisible_retourne_400(self, client):
        response = réserver(client, "evt-1", heure="soir")
        assert response.status_code == 400

    def test_salles_illisibles_retourne_400(self, client):
        response = client.post("/events", json={
            "ref": "evt-1",
            "name": "Famille evt-1",
            "occasion_date": "2024-01-10",
            "occasion_time": "19:00",
            "halls": 5,
        })
        assert response.status_code == 400

    def test_nombre_de_thaals_illisible_retourne_400(self, client):
        response = réserver(client, "evt-1", thaal_count="beaucoup")
        assert response.status_code == 400

    def test_champ_manquant_retourne_400(self, client):
        response = client.post("/events", json={"name": "Sans référence"})
        assert response.status_code == 400

    def test_annuler_libère_la_salle(self, client):
        réserver(client, "evt-1", "19:00")
        assert client.post("/events/evt-1/cancel").status_code == 200

        assert réserver(client, "evt-2", "19:00").status_code == 201

    def test_replanifier(self, client):
        réserver(client, "evt-1", "19:00")
        réserver(client, "evt-2", "12:00")

        response = client.post("/events/evt-2/reschedule", json={
            "occasion_date": "2024-01-10",
            "occasion_time": "19:00",
            "halls": ["Maimoon Hall"],
        })
        assert response.status_code == 409

        response = client.post("/events/evt-1/reschedule", json={
            "occasion_date": "2024-01-10",
            "occasion_time": "20:00",
            "halls": ["Maimoon Hall"],
            "force": True,
        })
        assert response.status_code == 200

    def test_replanifier_un_événement_annulé_retourne_423(self, client):
        réserver(client, "evt-1", "19:00")
        réserver(client, "evt-2", "12:00")
        client.post("/events/evt-2/cancel")

        response = client.post("/events/evt-2/reschedule", json={
            "occasion_date": "2024-01-10",
            "occasion_time": "19:00",
            "halls": ["Maimoon Hall"],
        })
        assert response.status_code == 423

    def test_référence_inconnue_retourne_404(self, client):
        assert client.post("/events/inexistant/cancel").status_code == 404


class TestContrôleDeConflit:
    def test_contrôle_à_blanc(self, client):
        réserver(client, "evt-1", "19:00")

        response = client.post("/events/check_conflict", json={
            "occasion_date": "2024-01-10",
            "occasion_time": "20:30",
            "halls": ["Maimoon Hall", "Qutbi Hall"],
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data["conflict_type"] == "soft"
        assert data["occupied_halls"] == ["Maimoon Hall"]
        assert data["available_halls"] == ["Qutbi Hall"]

    def test_exclut_la_réservation_modifiée(self, client):
        réserver(client, "evt-1", "19:00")

        response = client.post("/events/check_conflict", json={
            "occasion_date": "2024-01-10",
            "occasion_time": "19:00",
            "halls": ["Maimoon Hall"],
            "exclude_ref": "evt-1",
        })

        assert response.get_json()["conflict_type"] == "none"

    def test_sans_salle_retourne_400(self, client):
        response = client.post("/events/check_conflict", json={
            "occasion_date": "2024-01-10",
            "occasion_time": "19:00",
            "halls": [],
        })
        assert response.status_code == 400


class TestInventaire:
    def test_bilan_par_article(self, client):
        réserver(client, "evt-1")
        assert mouvement(client, "evt-1", "ISSUE", 50).status_code == 201
        mouvement(client, "evt-1", "RETURN", 45)
        mouvement(client, "evt-1", "LOSS", 2)
        mouvement(client, "evt-1", "ISSUE", 4, item="PAAT")

        response = client.get("/events/evt-1/inventory")

        assert response.status_code == 200
        data = {ligne["item"]: ligne for ligne in response.get_json()}
        assert data["THAAL"]["deficit"] == 3
        assert data["THAAL"]["lost"] == 2
        assert data["PAAT"]["settled"] is False

    def test_sur_retour_signalé(self, client):
        réserver(client, "evt-1")
        mouvement(client, "evt-1", "ISSUE", 5)
        mouvement(client, "evt-1", "RETURN", 7)

        ligne = client.get("/events/evt-1/inventory").get_json()[0]
        assert ligne["deficit"] == 0
        assert ligne["inconsistencies"] == ["OVER_RETURN"]

    def test_action_inconnue_retourne_400(self, client):
        réserver(client, "evt-1")
        assert mouvement(client, "evt-1", "BORROW", 1).status_code == 400

    def test_quantité_négative_retourne_400(self, client):
        réserver(client, "evt-1")
        assert mouvement(client, "evt-1", "ISSUE", -5).status_code == 400

    def test_événement_annulé_retourne_423(self, client):
        réserver(client, "evt-1")
        client.post("/events/evt-1/cancel")
        assert mouvement(client, "evt-1", "ISSUE", 5).status_code == 423

    def test_inventaire_d_un_événement_inconnu(self, client):
        assert client.get("/events/inexistant/inventory").status_code == 404
        assert mouvement(client, "inexistant", "ISSUE", 1).status_code == 404

    def test_objets_perdus_et_récupération(self, client):
        réserver(client, "evt-1")
        mouvement(client, "evt-1", "ISSUE", 50)
        mouvement(client, "evt-1", "LOSS", 3)

        perdus = client.get("/lost_items").get_json()
        assert perdus == [{
            "ref": "evt-1",
            "event_name": "Famille evt-1",
            "occasion_date": "2024-01-10",
            "item": "THAAL",
            "lost": 3,
            "recovered": 0,
            "remaining": 3,
        }]

        response = client.post("/events/evt-1/inventory/recover", json={"item": "THAAL", "qty": 3})
        assert response.status_code == 201
        assert client.get("/lost_items").get_json() == []


class TestProgression:
    def test_réservé_sans_sortie(self, client):
        réserver(client, "evt-1")
        data = client.get("/events/evt-1/progress").get_json()
        assert data["stage"] == "RÉSERVÉ"
        assert data["auto_settle_at"] == "2024-01-12T00:00:00"

    def test_en_cours_le_jour_même(self, client):
        réserver(client, "evt-1")
        mouvement(client, "evt-1", "ISSUE", 50)
        mouvement(client, "evt-1", "RETURN", 40)

        data = client.get("/events/evt-1/progress?now=2024-01-10T21:00:00").get_json()
        assert data["stage"] == "EN_COURS"
        assert data["step"] == 3

    def test_réglé_le_lendemain(self, client):
        réserver(client, "evt-1")
        mouvement(client, "evt-1", "ISSUE", 50)
        mouvement(client, "evt-1", "RETURN", 50)

        data = client.get("/events/evt-1/progress?now=2024-01-11T00:00:00").get_json()
        assert data["stage"] == "RÉGLÉ"
        assert data["settlement_info"] == "Réglé : inventaire conforme"

    def test_terminé(self, client):
        réserver(client, "evt-1")
        client.post("/events/evt-1/complete")
        data = client.get("/events/evt-1/progress?now=2024-01-09T00:00:00").get_json()
        assert data["stage"] == "RÉGLÉ"

    def test_horodatage_avec_fuseau_retourne_400(self, client):
        réserver(client, "evt-1")
        response = client.get("/events/evt-1/progress?now=2024-01-10T12:00:00%2B00:00")
        assert response.status_code == 400

    def test_horodatage_illisible_retourne_400(self, client):
        réserver(client, "evt-1")
        assert client.get("/events/evt-1/progress?now=demain").status_code == 400

    def test_événement_inconnu_retourne_404(self, client):
        assert client.get("/events/inexistant/progress").status_code == 404
