"""Services for PetCare."""

from petcare.services.identity import IdentityProviderClient
from petcare.services.profiles import ProfileRepository
from petcare.services.session_cache import SessionCache
from petcare.services.session import SessionManager, SessionView
from petcare.services.storage import JsonFileStore, MemoryStore, create_store
from petcare.services.pets import PetService

__all__ = [
    "IdentityProviderClient",
    "ProfileRepository",
    "SessionCache",
    "SessionManager",
    "SessionView",
    "JsonFileStore",
    "MemoryStore",
    "create_store",
    "PetService",
]
