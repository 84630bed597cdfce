"""ERP connector.

Provides the HTTP client for the ERP OData APIs and the request and
response models of the production order, confirmation and
classification APIs.
"""

from connectors.erp.erp_client import (
    ErpApiClient,
    ErpApiConfig,
    ErpApiError,
    ErpLockedError,
    ErpResponse,
    RetryConfig,
    pretty_error_message,
    quote_key,
)
from connectors.erp.erp_models import (
    BatchCharacteristic,
    CharacteristicDescription,
    ConfirmationProposal,
    MaterialDocumentItem,
    ProductCharacteristicValue,
    ProductionOrderComponentItem,
    ProductionOrderConfirmation,
    ProductionOrderHeader,
)

__all__ = [
    # Client
    "ErpApiClient",
    "ErpApiConfig",
    "ErpApiError",
    "ErpLockedError",
    "ErpResponse",
    "RetryConfig",
    "pretty_error_message",
    "quote_key",
    # Models
    "BatchCharacteristic",
    "CharacteristicDescription",
    "ConfirmationProposal",
    "MaterialDocumentItem",
    "ProductCharacteristicValue",
    "ProductionOrderComponentItem",
    "ProductionOrderConfirmation",
    "ProductionOrderHeader",
]
