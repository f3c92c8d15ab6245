from __future__ import annotations
from typing import Callable, Dict, Tuple

from ..accounts import Account
from ..errors import InvalidMessageError, UnsupportedSubProviderError
from ..models import Message, ProviderType
from .aliyun import AliyunTransformer
from .base import HTTPRequestSpec, ResponseHandler, Transformer
from .cl253 import CL253Transformer
from .huawei import HuaweiTransformer
from .juhe import JuheTransformer
from .luosimao import LuosimaoTransformer
from .netease import NeteaseTransformer
from .normal import NormalTransformer
from .registry import TransformerRegistry, registry as default_registry
from .smsbao import SmsbaoTransformer
from .submail import SubmailTransformer
from .tencent import TencentTransformer
from .ucp import UCPTransformer
from .yunpian import YunpianTransformer
from .yuntongxun import YuntongxunTransformer

BUILTIN_TRANSFORMERS: Dict[str, Callable[[], Transformer]] = {
    'aliyun': AliyunTransformer,
    'tencent': TencentTransformer,
    'huawei': HuaweiTransformer,
    'submail': SubmailTransformer,
    'cl253': CL253Transformer,
    'luosimao': LuosimaoTransformer,
    'smsbao': SmsbaoTransformer,
    'juhe': JuheTransformer,
    'yunpian': YunpianTransformer,
    'ucp': UCPTransformer,
    'yuntongxun': YuntongxunTransformer,
    'netease': NeteaseTransformer,
    'normal': NormalTransformer,
}

def install_builtin_transformers(target: TransformerRegistry | None = None) -> TransformerRegistry:
    reg = target if target is not None else default_registry
    for tag, build in BUILTIN_TRANSFORMERS.items():
        reg.register(tag, build())
    return reg

class SMSTransformer:
    """Routes a message to the transformer registered for its sub-provider."""

    def __init__(self, registry: TransformerRegistry | None = None):
        self.registry = registry if registry is not None else default_registry

    def can_transform(self, msg: object) -> bool:
        return getattr(msg, 'provider_type', None) == ProviderType.SMS

    def resolve(self, msg: Message) -> Transformer:
        if not self.can_transform(msg):
            raise InvalidMessageError("message is not an SMS message", code="unsupported_provider_type")
        if not msg.sub_provider:
            raise InvalidMessageError("message has no sub-provider", code="missing_subprovider")
        transformer = self.registry.get(msg.sub_provider)
        if transformer is None:
            raise UnsupportedSubProviderError(
                f"Unsupported sub-provider {msg.sub_provider}", provider=msg.sub_provider
            )
        return transformer

    def transform(self, msg: Message, account: Account) -> Tuple[HTTPRequestSpec, ResponseHandler]:
        return self.resolve(msg).transform(msg, account)

__all__ = ['BUILTIN_TRANSFORMERS', 'install_builtin_transformers', 'SMSTransformer']
