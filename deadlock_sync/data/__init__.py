"""
Module data : domaine (modèles Pydantic) et pipeline de synchronisation.
(Data module: domain models and sync pipeline)
"""
