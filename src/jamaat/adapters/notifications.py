"""
Adapter pour les notifications.

Ce module fournit une abstraction sur l'envoi de notifications
aux responsables (nouvelle réservation, perte, incohérence),
pour découpler le domaine du mécanisme d'envoi concret.
"""

from __future__ import annotations

import abc
import logging
import smtplib

from jamaat import config

logger = logging.getLogger(__name__)


class AbstractNotifications(abc.ABC):
    """Interface abstraite pour les notifications."""

    @abc.abstractmethod
    def send(self, destination: str, sujet: str, message: str) -> None:
        raise NotImplementedError


class EmailNotifications(AbstractNotifications):
    """Implémentation concrète envoyant des emails via SMTP."""

    def __init__(self, smtp_host: str | None = None, smtp_port: int | None = None):
        paramètres = config.get_email_host_and_port()
        self.smtp_host = smtp_host or paramètres["host"]
        self.smtp_port = smtp_port or paramètres["port"]

    def send(self, destination: str, sujet: str, message: str) -> None:
        msg = f"Subject: {sujet}\n\n{message}"
        logger.debug("Envoi de « %s » à %s via %s", sujet, destination, self.smtp_host)
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as smtp:
            smtp.sendmail(
                from_addr="reservations@example.com",
                to_addrs=[destination],
                msg=msg.encode("utf-8"),
            )
