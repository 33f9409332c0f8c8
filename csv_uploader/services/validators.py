"""
Validator registry: named predicates run against raw field values.

Validators raise InvalidValueError(reason, validator_name) on failure; the
registry stops at the first failing validator.
"""
import inspect
import re
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from dateutil import parser as date_parser
from email_validator import EmailNotValidError, validate_email

from csv_uploader.core.exceptions import ConfigurationError, InvalidValueError
from csv_uploader.schemas.upload import RuleSpec, normalize_rules


ValidatorFunc = Callable[..., None]


def validate_string(value: str, min_length: int = 0, max_length: Optional[int] = None) -> None:
    """Length bounds, inclusive."""
    length = len(value)
    if length < min_length or (max_length is not None and length > max_length):
        raise InvalidValueError("invalid string length", "string")


def validate_email_address(value: str) -> None:
    """Email syntax only; the domain is not resolved."""
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise InvalidValueError("invalid email", "email") from None


def validate_integer(value: str, min: Optional[int] = None, max: Optional[int] = None) -> None:
    try:
        number = int(value.strip())
    except ValueError:
        raise InvalidValueError("invalid integer", "integer") from None
    if (min is not None and number < min) or (max is not None and number > max):
        raise InvalidValueError("integer out of range", "integer")


def validate_required(value: str) -> None:
    if not value.strip():
        raise InvalidValueError("value is required", "required")


def validate_regex(value: str, pattern: str) -> None:
    if re.fullmatch(pattern, value) is None:
        raise InvalidValueError("value does not match pattern", "regex")


def validate_date(value: str, format: Optional[str] = None) -> None:
    """
    Date validation.

    With a strptime format the value must match it exactly; otherwise any
    format python-dateutil understands is accepted.
    """
    try:
        if format:
            datetime.strptime(value, format)
        else:
            date_parser.parse(value)
    except (ValueError, OverflowError):
        raise InvalidValueError("invalid date", "date") from None


BUILTIN_VALIDATORS: Dict[str, ValidatorFunc] = {
    "string": validate_string,
    "email": validate_email_address,
    "integer": validate_integer,
    "int": validate_integer,
    "required": validate_required,
    "regex": validate_regex,
    "date": validate_date,
}


class ValidatorRegistry:
    """Registry of named validators."""

    def __init__(self, validators: Optional[Dict[str, ValidatorFunc]] = None):
        self._validators: Dict[str, ValidatorFunc] = dict(BUILTIN_VALIDATORS)
        if validators:
            self._validators.update(validators)

    def register(self, name: str, func: ValidatorFunc) -> None:
        """Add or replace a validator."""
        self._validators[name] = func

    @property
    def names(self) -> List[str]:
        return sorted(self._validators)

    def check(self, specs: Iterable) -> None:
        """
        Verify every validator name is known.

        Raises:
            ConfigurationError: On the first unknown name or parameter set
                the validator does not accept
        """
        for spec in normalize_rules(specs):
            if spec.name not in self._validators:
                raise ConfigurationError(f"Unknown validator '{spec.name}'")
            try:
                signature = inspect.signature(self._validators[spec.name])
            except (TypeError, ValueError):
                continue
            try:
                signature.bind("", **spec.params)
            except TypeError as e:
                raise ConfigurationError(f"Invalid parameters for validator '{spec.name}': {e}") from e

    def validate(self, value: Optional[str], specs: Iterable) -> None:
        """
        Run validators in order against a raw value.

        Args:
            value: Raw field value (None is validated as "")
            specs: Validator specs

        Raises:
            InvalidValueError: From the first failing validator; its
                ``validator`` attribute names the rule that failed
        """
        value = "" if value is None else value
        for spec in normalize_rules(specs):
            try:
                self._get(spec)(value, **spec.params)
            except InvalidValueError as e:
                if e.validator != spec.name:
                    raise InvalidValueError(e.reason, spec.name) from e
                raise

    def _get(self, spec: RuleSpec) -> ValidatorFunc:
        try:
            return self._validators[spec.name]
        except KeyError:
            raise ConfigurationError(f"Unknown validator '{spec.name}'") from None
