"""Utilitaires transverses (identités Steam)."""
