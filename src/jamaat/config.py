"""
Configuration de l'application.

Tout est lu dans les variables d'environnement, avec des valeurs
par défaut adaptées au développement local.
"""

from __future__ import annotations

import os

from jamaat.domain.conflits import TAMPON_MINUTES


def get_database_uri() -> str:
    return os.environ.get("JAMAAT_DATABASE_URI", "sqlite:///jamaat.db")


def get_email_host_and_port() -> dict:
    host = os.environ.get("JAMAAT_SMTP_HOST", "localhost")
    port = int(os.environ.get("JAMAAT_SMTP_PORT", 587))
    return dict(host=host, port=port)


def get_admin_email() -> str:
    """Destinataire des alertes (nouvelles réservations, pertes, incohérences)."""
    return os.environ.get("JAMAAT_ADMIN_EMAIL", "admin@example.com")


def get_buffer_minutes() -> int:
    """Écart minimal entre deux réservations d'une même salle."""
    return int(os.environ.get("JAMAAT_BUFFER_MINUTES", TAMPON_MINUTES))
