"""
Contribution form validation.

Runs before a form is posted: a form that fails here is never sent to the
upstream. Rules are checked in a fixed order and the first failure raises.
"""

import re
from collections.abc import Mapping
from typing import Any, Optional

from .errors import FormValidationError

REQUIRED_FIELDS = ("nom", "email", "categorie", "detail", "portions")
CATEGORIES = ("sale", "sucre", "soft", "alco")

NB_PERSONNES_RANGE = (1, 20)
PORTIONS_RANGE = (1, 100)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TELEPHONE_PATTERN = re.compile(r"^[0-9]{10}$")
INTEGER_PATTERN = re.compile(r"^[+-]?[0-9]+$")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _parse_int(value: Any) -> Optional[int]:
    """Integer value of an int or a string of ASCII digits, None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and INTEGER_PATTERN.match(value.strip()):
        return int(value.strip())
    return None


def _in_range(value: Any, bounds: tuple) -> bool:
    number = _parse_int(value)
    return number is not None and bounds[0] <= number <= bounds[1]


def validate_form_data(data: Any) -> bool:
    """
    Validate a contribution form.

    Order of checks: data present, required fields (all missing names are
    reported together), email shape, category, nbPersonnes, portions,
    optional telephone.

    Returns:
        True when every rule passes

    Raises:
        FormValidationError: On the first violated rule
    """
    if data is None or not isinstance(data, Mapping):
        raise FormValidationError("Données du formulaire manquantes")

    missing = [field for field in REQUIRED_FIELDS if _is_blank(data.get(field))]
    if missing:
        raise FormValidationError(f"Champs obligatoires manquants: {', '.join(missing)}")

    if not EMAIL_PATTERN.match(str(data["email"]).strip()):
        raise FormValidationError("Adresse email invalide")

    if data["categorie"] not in CATEGORIES:
        raise FormValidationError(
            f"Catégorie invalide, valeurs acceptées: {', '.join(CATEGORIES)}"
        )

    if not _in_range(data.get("nbPersonnes"), NB_PERSONNES_RANGE):
        raise FormValidationError("Le nombre de personnes doit être compris entre 1 et 20")

    if not _in_range(data["portions"], PORTIONS_RANGE):
        raise FormValidationError("Le nombre de portions doit être compris entre 1 et 100")

    telephone = data.get("telephone")
    if not _is_blank(telephone) and not TELEPHONE_PATTERN.match(str(telephone).strip()):
        raise FormValidationError("Le numéro de téléphone doit contenir 10 chiffres")

    return True
