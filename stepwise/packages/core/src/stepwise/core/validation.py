"""标识符校验 -- 在访问存储前拒绝格式错误的 id"""

import re

from .exceptions import InvalidRequestError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_\-:.]{1,128}$")


def validate_identifier(value: str | None, field: str) -> str:
    """校验并返回去除首尾空白后的标识符

    Raises:
        InvalidRequestError: 为空、过长或包含非法字符
    """
    if value is None:
        raise InvalidRequestError(f"{field} is required")
    cleaned = value.strip()
    if not _IDENTIFIER_RE.match(cleaned):
        raise InvalidRequestError(f"{field} is malformed")
    return cleaned
