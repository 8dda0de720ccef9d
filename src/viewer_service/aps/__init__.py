"""
Domain layer for the platform facade.
Provides gateway interfaces, their HTTP adapters, and a service that caches
tokens and drives object storage and model translation, so front-ends (HTTP
or others) can use the same core logic.
"""

from .errors import AuthFailure, BackendFailure, NotFoundRecoverable, PlatformError, TransportFailure
from .interfaces import AuthenticationGateway, DerivativeGateway, StorageGateway
from .models import Credential, ObjectDetails, PageCursor, TranslationJob, TranslationStatus, base64_encode
from .service import PlatformService
