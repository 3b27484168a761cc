"""Utility functions for PetCare."""

from petcare.utils.helpers import utcnow, normalize_name

__all__ = ["utcnow", "normalize_name"]
