"""
Point d'entrée Flask.

L'API Flask est un thin adapter : elle convertit les requêtes HTTP
en commands ou en lectures, et les erreurs du domaine en codes HTTP.
Elle ne contient aucune logique métier.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import Flask, jsonify, request

from jamaat.domain import commands
from jamaat.domain.conflits import RésultatConflit
from jamaat.domain.exceptions import EntréeInvalide, ÉcritureInvalide, ÉvénementVerrouillé
from jamaat.domain.inventaire import ActionInventaire
from jamaat.domain.model import normaliser_salles
from jamaat.domain.value_objects import Créneau
from jamaat.service_layer import bootstrap, handlers
from jamaat.views import views


app = Flask(__name__)
bus = bootstrap.bootstrap()


# --- Conversion des données JSON ---


def _date(valeur: str | None) -> date:
    if not valeur:
        raise EntréeInvalide("Date d'occasion manquante")
    try:
        return date.fromisoformat(valeur[:10])
    except ValueError:
        raise EntréeInvalide(f"Date illisible : {valeur!r}")


def _conflit_en_dict(résultat: RésultatConflit) -> dict:
    return {
        "conflict_type": résultat.type.value,
        "message": résultat.message,
        "occupied_halls": sorted(résultat.salles_occupées),
        "available_halls": sorted(résultat.salles_disponibles),
    }


def _entier(data: dict, clé: str, défaut: int | None = None) -> int:
    valeur = data.get(clé, défaut)
    if isinstance(valeur, bool) or not isinstance(valeur, int):
        raise EntréeInvalide(f"Entier attendu pour {clé} : {valeur!r}")
    return valeur


# --- Traduction des erreurs du domaine ---


@app.errorhandler(EntréeInvalide)
@app.errorhandler(ÉcritureInvalide)
def invalid_input_handler(error):
    return jsonify({"message": str(error)}), 400


@app.errorhandler(handlers.RéférenceInconnue)
def unknown_ref_handler(error):
    return jsonify({"message": str(error)}), 404


@app.errorhandler(handlers.RéférenceDupliquée)
def duplicate_ref_handler(error):
    return jsonify({"message": str(error)}), 409


@app.errorhandler(handlers.ConflitDeRéservation)
def conflict_handler(error):
    return jsonify(_conflit_en_dict(error.résultat)), 409


@app.errorhandler(ÉvénementVerrouillé)
def locked_handler(error):
    return jsonify({"message": str(error)}), 423


# --- Réservations ---


@app.route("/events", methods=["GET"])
def list_events_endpoint():
    """
    GET /events?date=YYYY-MM-DD

    Réservations d'une journée (lecture CQRS).
    """
    jour = _date(request.args.get("date"))
    return jsonify(views.réservations_du_jour(jour, bus.uow)), 200


@app.route("/events", methods=["POST"])
def create_event_endpoint():
    """
    POST /events
    Body JSON : { ref, name, occasion_date, occasion_time, halls, thaal_count?, force? }

    409 en cas de conflit, avec les salles occupées et disponibles.
    """
    data = request.json
    try:
        cmd = commands.CréerRéservation(
            référence=data["ref"],
            nom=data["name"],
            date_occasion=_date(data.get("occasion_date")),
            heure_occasion=data.get("occasion_time"),
            salles=normaliser_salles(data.get("halls")),
            nombre_thaals=_entier(data, "thaal_count", 0),
            forcer=bool(data.get("force", False)),
        )
    except KeyError as e:
        return jsonify({"message": f"Champ manquant : {e.args[0]}"}), 400
    référence = bus.handle(cmd).pop(0)
    return jsonify({"ref": référence}), 201


@app.route("/events/check_conflict", methods=["POST"])
def check_conflict_endpoint():
    """
    POST /events/check_conflict
    Body JSON : { occasion_date, occasion_time, halls, exclude_ref? }

    Contrôle à blanc : ne réserve rien.
    """
    data = request.json
    exclure = data.get("exclude_ref")
    candidat = Créneau(
        date_occasion=_date(data.get("occasion_date")),
        heure_occasion=data.get("occasion_time"),
        salles=normaliser_salles(data.get("halls")),
        référence=exclure,
    )
    résultat = views.vérifier_conflit(
        candidat, bus.uow, bus.dependencies["tampon_minutes"], exclure=exclure
    )
    return jsonify(_conflit_en_dict(résultat)), 200


@app.route("/events/<ref>/reschedule", methods=["POST"])
def reschedule_endpoint(ref: str):
    data = request.json
    bus.handle(
        commands.ReplanifierRéservation(
            référence=ref,
            date_occasion=_date(data.get("occasion_date")),
            heure_occasion=data.get("occasion_time"),
            salles=normaliser_salles(data.get("halls")),
            forcer=bool(data.get("force", False)),
        )
    )
    return "OK", 200


@app.route("/events/<ref>/cancel", methods=["POST"])
def cancel_endpoint(ref: str):
    bus.handle(commands.AnnulerRéservation(référence=ref))
    return "OK", 200


@app.route("/events/<ref>/complete", methods=["POST"])
def complete_endpoint(ref: str):
    bus.handle(commands.TerminerÉvénement(référence=ref))
    return "OK", 200


# --- Inventaire ---


@app.route("/events/<ref>/inventory", methods=["POST"])
def inventory_movement_endpoint(ref: str):
    """
    POST /events/<ref>/inventory
    Body JSON : { item, action (ISSUE | RETURN | LOSS), qty }
    """
    data = request.json
    try:
        action = ActionInventaire(data.get("action"))
    except ValueError:
        return jsonify({"message": f"Action inconnue : {data.get('action')!r}"}), 400
    if action == ActionInventaire.RÉCUPÉRATION:
        return jsonify({"message": "Utiliser /inventory/recover"}), 400

    bus.handle(
        commands.EnregistrerMouvement(
            référence=ref,
            article=data.get("item"),
            action=action,
            quantité=_entier(data, "qty"),
        )
    )
    return "OK", 201


@app.route("/events/<ref>/inventory/recover", methods=["POST"])
def inventory_recover_endpoint(ref: str):
    """
    POST /events/<ref>/inventory/recover
    Body JSON : { item, qty }
    """
    data = request.json
    bus.handle(
        commands.RécupérerPerte(référence=ref, article=data.get("item"), quantité=_entier(data, "qty"))
    )
    return "OK", 201


@app.route("/events/<ref>/inventory", methods=["GET"])
def inventory_view_endpoint(ref: str):
    if views.réservation(ref, bus.uow) is None:
        return "not found", 404
    return jsonify(views.bilan_inventaire(ref, bus.uow)), 200


@app.route("/events/<ref>/progress", methods=["GET"])
def progress_endpoint(ref: str):
    """
    GET /events/<ref>/progress?now=ISO-8601

    Sans paramètre `now`, l'horloge du bus fait foi.
    """
    now = request.args.get("now")
    try:
        maintenant = datetime.fromisoformat(now) if now else bus.dependencies["horloge"]()
    except ValueError:
        return jsonify({"message": f"Horodatage illisible : {now!r}"}), 400
    result = views.progression(ref, maintenant, bus.uow)
    if result is None:
        return "not found", 404
    return jsonify(result), 200


@app.route("/lost_items", methods=["GET"])
def lost_items_endpoint():
    return jsonify(views.objets_perdus(bus.uow)), 200
