"""Modèles de domaine Deadlock (payloads API validés)."""
