import re
from typing import Any, Optional

from errors import ValidationFailed


class TextValidator:
    """Trimming and presence checks for free-text fields."""

    @staticmethod
    def clean(text: Optional[Any]) -> str:
        if text is None:
            return ""
        return str(text).strip()

    @staticmethod
    def require(value: Optional[Any], field_name: str) -> str:
        cleaned = TextValidator.clean(value)
        if not cleaned:
            raise ValidationFailed(f"{field_name} is required")
        return cleaned


class PhoneValidator:
    """Phone numbers are compared after trimming; format is loosely checked."""

    _PATTERN = re.compile(r"^\+?[0-9][0-9\- ]{4,18}[0-9]$")

    @staticmethod
    def normalize(raw: Optional[str]) -> str:
        return TextValidator.clean(raw)

    @staticmethod
    def is_valid(phone: str) -> bool:
        if not phone:
            return False
        return bool(PhoneValidator._PATTERN.match(phone))


class EmailValidator:
    _PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    @staticmethod
    def is_valid(email: str) -> bool:
        return bool(email) and bool(EmailValidator._PATTERN.match(email))


class NumberValidator:
    """Coerces JSON-ish numeric input and rejects negatives."""

    @staticmethod
    def non_negative(value: Any, field_name: str) -> float:
        if isinstance(value, bool):
            raise ValidationFailed(f"{field_name} must be a number")
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise ValidationFailed(f"{field_name} must be a number") from e
        if number != number or number < 0:
            raise ValidationFailed(f"{field_name} must be zero or greater")
        return number

    @staticmethod
    def non_negative_int(value: Any, field_name: str) -> int:
        if isinstance(value, bool):
            raise ValidationFailed(f"{field_name} must be an integer")
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if not isinstance(value, int):
            try:
                value = int(str(value).strip())
            except ValueError as e:
                raise ValidationFailed(f"{field_name} must be an integer") from e
        if value < 0:
            raise ValidationFailed(f"{field_name} must be zero or greater")
        return value
