"""Unified SMS / voice / MMS dispatch over regional telecom vendors."""
from .accounts import Account, Config, Strategy
from .clients import (
    BaseTransformer,
    HTTPRequestSpec,
    ResponseHandlerConfig,
    SendResult,
    SMSTransformer,
    get_transformer,
    register_transformer,
    registry,
)
from .errors import (
    AuthError,
    ConfigurationError,
    ErrorKind,
    InvalidMessageError,
    NoAvailableAccountError,
    ProviderError,
    SendCancelledError,
    SMSError,
    TransportError,
    UnsupportedCategoryError,
    UnsupportedInternationalError,
    UnsupportedMessageTypeError,
    UnsupportedSubProviderError,
)
from .models import Category, Extras, Message, MessageType
from .selector import Selector, use_account
from .services import HTTPDispatcher, Provider, new

__version__ = "0.1.0"

__all__ = [
    "Account", "Config", "Strategy",
    "BaseTransformer", "HTTPRequestSpec", "ResponseHandlerConfig", "SendResult", "SMSTransformer",
    "get_transformer", "register_transformer", "registry",
    "AuthError", "ConfigurationError", "ErrorKind", "InvalidMessageError", "NoAvailableAccountError",
    "ProviderError", "SendCancelledError", "SMSError", "TransportError", "UnsupportedCategoryError",
    "UnsupportedInternationalError", "UnsupportedMessageTypeError", "UnsupportedSubProviderError",
    "Category", "Extras", "Message", "MessageType",
    "Selector", "use_account",
    "HTTPDispatcher", "Provider", "new",
]
