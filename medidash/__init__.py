"""MediDash - services web de la plateforme d'abonnement des médecins"""

__version__ = "1.0.0"
