"""
Transformer registry: named, total string -> string functions applied in order.
"""
import inspect
import re
from typing import Callable, Dict, Iterable, List, Optional

from csv_uploader.core.exceptions import ConfigurationError
from csv_uploader.schemas.upload import RuleSpec, normalize_rules


TransformerFunc = Callable[..., str]


def _lower(value: str) -> str:
    return value.lower()


def _upper(value: str) -> str:
    return value.upper()


def _ucfirst(value: str) -> str:
    """Uppercase the first character only: "john smith" → "John smith"."""
    return value[:1].upper() + value[1:]


def _title(value: str) -> str:
    return value.title()


def _trim(value: str, characters: Optional[str] = None) -> str:
    return value.strip(characters)


def _collapse_spaces(value: str) -> str:
    return re.sub(r'\s+', ' ', value).strip()


BUILTIN_TRANSFORMERS: Dict[str, TransformerFunc] = {
    "lower": _lower,
    "upper": _upper,
    "ucfirst": _ucfirst,
    "title": _title,
    "trim": _trim,
    "collapse_spaces": _collapse_spaces,
}


class TransformerRegistry:
    """
    Registry of named transformers.

    A transformer spec is a name plus keyword parameters; transform() threads
    the value through each one in the order given.
    """

    def __init__(self, transformers: Optional[Dict[str, TransformerFunc]] = None):
        self._transformers: Dict[str, TransformerFunc] = dict(BUILTIN_TRANSFORMERS)
        if transformers:
            self._transformers.update(transformers)

    def register(self, name: str, func: TransformerFunc) -> None:
        """Add or replace a transformer."""
        self._transformers[name] = func

    @property
    def names(self) -> List[str]:
        return sorted(self._transformers)

    def check(self, specs: Iterable) -> None:
        """
        Verify every transformer name is known.

        Raises:
            ConfigurationError: On the first unknown name or parameter set
                the transformer does not accept
        """
        for spec in normalize_rules(specs):
            if spec.name not in self._transformers:
                raise ConfigurationError(f"Unknown transformer '{spec.name}'")
            try:
                signature = inspect.signature(self._transformers[spec.name])
            except (TypeError, ValueError):
                continue
            try:
                signature.bind("", **spec.params)
            except TypeError as e:
                raise ConfigurationError(f"Invalid parameters for transformer '{spec.name}': {e}") from e

    def transform(self, value: str, specs: Iterable) -> str:
        """
        Apply transformers in sequence.

        Args:
            value: Raw field value
            specs: Transformer specs (names, RuleSpec or config mappings)

        Returns:
            Transformed value
        """
        for spec in normalize_rules(specs):
            value = self._get(spec)(value, **spec.params)
        return value

    def _get(self, spec: RuleSpec) -> TransformerFunc:
        try:
            return self._transformers[spec.name]
        except KeyError:
            raise ConfigurationError(f"Unknown transformer '{spec.name}'") from None
