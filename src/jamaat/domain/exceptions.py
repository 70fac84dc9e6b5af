"""
Exceptions du domaine.

Les règles métier rejettent immédiatement une entrée mal formée :
elles ne remplacent jamais une valeur manquante par un défaut
qui masquerait une erreur de l'appelant.
"""

from __future__ import annotations

from typing import Any


class ErreurDomaine(Exception):
    """Classe de base pour toutes les erreurs du domaine."""
    pass


class EntréeInvalide(ErreurDomaine, ValueError):
    """Levée quand une date, une heure ou un ensemble de salles est absent ou mal formé."""
    pass


class ÉcritureInvalide(ErreurDomaine, ValueError):
    """
    Levée quand une écriture d'inventaire est mal formée
    (quantité négative, action inconnue).

    L'écriture fautive est conservée dans l'attribut `écriture`.
    """

    def __init__(self, écriture: Any, raison: str):
        self.écriture = écriture
        self.raison = raison
        super().__init__(f"Écriture invalide ({raison}) : {écriture!r}")


class ÉvénementVerrouillé(ErreurDomaine):
    """Levée quand on modifie l'inventaire d'un événement annulé ou terminé."""
    pass
