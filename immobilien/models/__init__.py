# Import all models so they're registered with Base.metadata
from immobilien.models.user import User
from immobilien.models.property import Property
from immobilien.models.property_images import PropertyImage
from immobilien.models.favorite import Favorite
from immobilien.models.inquiry import Inquiry

__all__ = [
    "User",
    "Property",
    "PropertyImage",
    "Favorite",
    "Inquiry",
]
