from .base import (
    BaseTransformer, BodyType, HTTPRequestSpec, MatchMode, ResponseHandler,
    ResponseHandlerConfig, ResponseType, Transformer, build_response_handler,
)
from .factory import BUILTIN_TRANSFORMERS, SMSTransformer, install_builtin_transformers
from .registry import TransformerRegistry, get_transformer, register_transformer, registry
from .result import SendResult
from .signing import Clock, FixedClock, SystemClock

install_builtin_transformers(registry)

__all__ = [
    'BaseTransformer','BodyType','HTTPRequestSpec','MatchMode','ResponseHandler',
    'ResponseHandlerConfig','ResponseType','Transformer','build_response_handler',
    'BUILTIN_TRANSFORMERS','SMSTransformer','install_builtin_transformers',
    'TransformerRegistry','get_transformer','register_transformer','registry',
    'SendResult','Clock','FixedClock','SystemClock',
]
