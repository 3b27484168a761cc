"""PetCare: pet records behind a reconciled authentication session."""

__version__ = "1.0.0"
