"""HTTP clients for the analysis backend services."""

from .client import ServiceClient
from .literature import LiteratureClient, build_search_request
from .phenotype import PhenotypeClient
from .screening import ScreeningClient
from .tasks import TaskClient
from .variants import VariantsClient

__all__ = [
    "LiteratureClient",
    "PhenotypeClient",
    "ScreeningClient",
    "ServiceClient",
    "TaskClient",
    "VariantsClient",
    "build_search_request",
]
