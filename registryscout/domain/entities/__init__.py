from .business_entity import EntityStatus, ScrapedBusinessEntity, ScrapedOfficer
from .fingerprint import Fingerprint, MaskedSignal

__all__ = [
    "EntityStatus",
    "ScrapedBusinessEntity",
    "ScrapedOfficer",
    "Fingerprint",
    "MaskedSignal",
]
