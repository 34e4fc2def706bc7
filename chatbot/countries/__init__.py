from .remote import RestCountriesClient
from .resolver import CountryResolver
from .store import CountryStore

__all__ = ["CountryResolver", "CountryStore", "RestCountriesClient"]
