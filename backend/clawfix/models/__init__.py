# Re-export all models for convenient imports
from clawfix.models.diagnosis import Diagnosis, Pattern, AIDiscovery, Feedback

__all__ = [
    "Diagnosis",
    "Pattern",
    "AIDiscovery",
    "Feedback",
]
