"""Vendor-agnostic message model.

A `Message` names the vendor it targets (`sub_provider`), the recipients and
either free text or a pre-approved template. Vendor specific knobs travel in
`extras`, a small typed mapping read through accessors that return
`(value, present)`.
"""
from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Dict, Iterator, List, Mapping, Tuple, Union

from .errors import InvalidMessageError

if TYPE_CHECKING:
    from .accounts import Account


class ProviderType(str, Enum):
    SMS = "sms"


class MessageType(str, Enum):
    TEXT = "text"
    VOICE = "voice"
    MMS = "mms"


class Category(str, Enum):
    VERIFICATION = "verification"
    NOTIFICATION = "notification"
    PROMOTION = "promotion"


DOMESTIC_REGION_CODE = 86

# Assigned ITU-T E.164 country calling codes.
_E164_RANGES = (
    (1, 1), (7, 7), (20, 20), (27, 27), (30, 34), (36, 36), (39, 41), (43, 49),
    (51, 58), (60, 66), (81, 82), (84, 84), (86, 86), (90, 95), (98, 98),
    (211, 213), (216, 216), (218, 218), (220, 258), (260, 269), (290, 291),
    (297, 299), (350, 359), (370, 383), (385, 387), (389, 389), (420, 421),
    (423, 423), (500, 509), (590, 599), (670, 670), (672, 683), (685, 692),
    (800, 800), (808, 808), (850, 850), (852, 853), (855, 856), (870, 870),
    (878, 878), (880, 883), (886, 886), (888, 888), (960, 968), (970, 977),
    (979, 979), (992, 996), (998, 998),
)
E164_COUNTRY_CODES = frozenset(code for lo, hi in _E164_RANGES for code in range(lo, hi + 1))

_MOBILE_RE = re.compile(r"^\+?\d{7,20}$")
_MOBILE_NOISE_RE = re.compile(r"[\s\-()]")

ExtraValue = Union[str, int, bool, float]


class Extras:
    """Typed open mapping of vendor specific options."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, ExtraValue] | None = None):
        self._values: Dict[str, ExtraValue] = {}
        for key, value in (values or {}).items():
            self.set(key, value)

    def set(self, key: str, value: ExtraValue) -> None:
        if not isinstance(value, (str, int, bool, float)):
            raise TypeError(f"extra {key!r} must be str, int, bool or float, got {type(value).__name__}")
        self._values[key] = value

    def get_str(self, key: str) -> Tuple[str, bool]:
        if key not in self._values:
            return "", False
        value = self._values[key]
        if isinstance(value, bool):
            return ("true" if value else "false"), True
        return str(value), True

    def get_int(self, key: str) -> Tuple[int, bool]:
        value = self._values.get(key)
        if value is None:
            return 0, False
        if isinstance(value, bool):
            return int(value), True
        if isinstance(value, int):
            return value, True
        if isinstance(value, float):
            return (int(value), True) if value.is_integer() else (0, False)
        try:
            return int(value.strip()), True
        except ValueError:
            return 0, False

    def get_bool(self, key: str) -> Tuple[bool, bool]:
        value = self._values.get(key)
        if value is None:
            return False, False
        if isinstance(value, bool):
            return value, True
        if isinstance(value, (int, float)):
            return value != 0, True
        low = value.strip().lower()
        if low in ("true", "1", "yes"):
            return True, True
        if low in ("false", "0", "no"):
            return False, True
        return False, False

    def get_float(self, key: str) -> Tuple[float, bool]:
        value = self._values.get(key)
        if value is None or isinstance(value, bool):
            return 0.0, False
        if isinstance(value, (int, float)):
            return float(value), True
        try:
            return float(value.strip()), True
        except ValueError:
            return 0.0, False

    def str_or(self, key: str, default: str = "") -> str:
        value, ok = self.get_str(key)
        return value if ok and value != "" else default

    def int_or(self, key: str, default: int = 0) -> int:
        value, ok = self.get_int(key)
        return value if ok else default

    def bool_or(self, key: str, default: bool = False) -> bool:
        value, ok = self.get_bool(key)
        return value if ok else default

    def items(self) -> Iterator[Tuple[str, ExtraValue]]:
        return iter(self._values.items())

    def copy(self) -> "Extras":
        return Extras(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Extras):
            return self._values == other._values
        if isinstance(other, Mapping):
            return self._values == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Extras({self._values!r})"


@dataclass
class Message:
    sub_provider: str = ""
    mobiles: List[str] = field(default_factory=list)
    type: MessageType = MessageType.TEXT
    category: Category = Category.VERIFICATION
    region_code: int = 0
    content: str = ""
    sign_name: str = ""
    template_id: str = ""
    template_params: Dict[str, str] = field(default_factory=dict)
    params_order: List[str] = field(default_factory=list)
    callback_url: str = ""
    extend: str = ""
    uid: str = ""
    scheduled_at: datetime | None = None
    extras: Extras = field(default_factory=Extras)

    provider_type: ClassVar[ProviderType] = ProviderType.SMS

    def __post_init__(self):
        if not isinstance(self.extras, Extras):
            self.extras = Extras(self.extras)
        if isinstance(self.mobiles, str):
            self.mobiles = [self.mobiles]

    def is_domestic(self) -> bool:
        return self.region_code in (0, DOMESTIC_REGION_CODE)

    def is_intl(self) -> bool:
        return not self.is_domestic()

    def has_multiple_recipients(self) -> bool:
        return len(self.mobiles) > 1

    def validate(self) -> None:
        """Raise `InvalidMessageError` when the message cannot be sent by any vendor."""
        tag = self.sub_provider
        if not self.mobiles:
            raise InvalidMessageError("at least one mobile is required", provider=tag, code="missing_mobiles")
        for mobile in self.mobiles:
            if not _MOBILE_RE.match(_MOBILE_NOISE_RE.sub("", mobile or "")):
                raise InvalidMessageError(f"invalid mobile number {mobile!r}", provider=tag, code="invalid_mobile")
        if self.region_code and self.region_code not in E164_COUNTRY_CODES:
            raise InvalidMessageError(
                f"invalid E.164 country code {self.region_code}", provider=tag, code="invalid_region_code"
            )
        if not self.template_id and not self.content:
            raise InvalidMessageError(
                "content is required when no template is given", provider=tag, code="missing_content"
            )

    def with_defaults(self, account: "Account") -> "Message":
        """Return a copy with account level defaults filled in; `self` is untouched."""
        content = self.content
        sign_name = self.sign_name
        if not sign_name:
            sign_name, content = extract_signature(content)
            if not sign_name:
                sign_name = account.sign_name
        return dataclasses.replace(
            self,
            mobiles=list(self.mobiles),
            content=content,
            sign_name=sign_name,
            region_code=self.region_code or DOMESTIC_REGION_CODE,
            callback_url=self.callback_url or account.callback,
            template_params=dict(self.template_params),
            params_order=list(self.params_order),
            extras=self.extras.copy(),
        )


def extract_signature(content: str) -> Tuple[str, str]:
    """Split a leading `【brand】` off `content`, returning `(brand, rest)`."""
    if not content.startswith("【"):
        return "", content
    end = content.find("】")
    if end <= 1 or end > 20:
        return "", content
    return content[1:end], content[end + 1:]


def add_signature(content: str, sign_name: str) -> str:
    if not sign_name or content.startswith("【"):
        return content
    return f"【{sign_name}】{content}"


def render_template(text: str, params: Mapping[str, str]) -> str:
    """Replace `#name#` placeholders with values from `params`."""
    for key, value in params.items():
        text = text.replace(f"#{key}#", str(value))
    return text


__all__ = [
    "ProviderType",
    "MessageType",
    "Category",
    "Extras",
    "ExtraValue",
    "Message",
    "E164_COUNTRY_CODES",
    "extract_signature",
    "add_signature",
    "render_template",
]
