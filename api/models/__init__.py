from models.profile import Profile
from models.provider_service import ProviderService
from models.business_verification import BusinessVerification
from models.pet_master import PetMaster
from models.identity_verification import IdentityVerification

__all__ = [
    "Profile", "ProviderService", "BusinessVerification",
    "PetMaster", "IdentityVerification",
]
