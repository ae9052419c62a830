"""Mass assignment protection for untrusted attribute payloads.

Raw request data is wrapped in :class:`Parameters` and must be explicitly
permitted before it can be bulk-assigned onto documents or collections.
Plain dicts and lists are trusted as already sanitized.
"""

from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from embedded_documents.errors import ForbiddenAttributesError

PermitFilter = str | Mapping[str, Sequence[Any]]

_SCALAR_TYPES = (str, int, float, bool, type(None))


def _is_position(key: Any) -> bool:
    return isinstance(key, int) or (isinstance(key, str) and key.lstrip("-").isdigit())


class Parameters(Mapping[str, Any]):
    """Untrusted attribute payload with an explicit permit step.

    Nested mappings read through ``[]`` come back as ``Parameters`` carrying
    the parent's ``permitted`` flag.
    """

    def __init__(self, data: Mapping[str, Any] | None = None, *, permitted: bool = False) -> None:
        self._data = dict(data or {})
        self.permitted = permitted

    def __getitem__(self, key: str) -> Any:
        return self._wrap(self._data[key])

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Parameters({self._data!r}, permitted={self.permitted})"

    def _wrap(self, value: Any) -> Any:
        if isinstance(value, Parameters):
            return value
        if isinstance(value, Mapping):
            return Parameters(value, permitted=self.permitted)
        if isinstance(value, list):
            return [self._wrap(item) for item in value]
        return value

    def permit(self, *filters: PermitFilter) -> "Parameters":
        """Return a permitted copy keeping only allowlisted keys.

        Args:
            filters: Scalar key names, or mappings from a key to the
                allowlist applied to its nested entries. Nested allowlists
                apply to every entry of an index-keyed mapping or a list.

        Returns:
            Permitted Parameters
        """
        permitted: dict[str, Any] = {}

        for filter_ in filters:
            if isinstance(filter_, str):
                value = self._data.get(filter_)
                if filter_ in self._data and isinstance(value, _SCALAR_TYPES):
                    permitted[filter_] = value
                continue

            for key, nested in filter_.items():
                if key in self._data:
                    permitted_value = _permit_nested(self._data[key], nested)
                    if permitted_value is not None:
                        permitted[key] = permitted_value

        return Parameters(permitted, permitted=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain, recursively unwrapped data."""
        return {key: _unwrap(value) for key, value in self._data.items()}


def _permit_nested(value: Any, filters: Sequence[Any]) -> Any:
    if isinstance(value, Mapping):
        if value and all(_is_position(key) for key in value):
            return {
                key: Parameters(entry).permit(*filters)
                for key, entry in value.items()
                if isinstance(entry, Mapping)
            }
        return Parameters(value).permit(*filters)

    if isinstance(value, list):
        return [Parameters(entry).permit(*filters) for entry in value if isinstance(entry, Mapping)]

    return None


def _unwrap(value: Any) -> Any:
    if isinstance(value, Parameters):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {key: _unwrap(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_unwrap(item) for item in value]
    return value


def sanitize_for_mass_assignment(payload: Any) -> Any:
    """Unwrap permitted Parameters; reject unpermitted ones.

    Raises:
        ForbiddenAttributesError: If payload is Parameters that were never permitted.
    """
    if isinstance(payload, Parameters):
        if not payload.permitted:
            raise ForbiddenAttributesError(
                "Parameters must be permitted before mass assignment: call permit(...)"
            )
        return payload.to_dict()
    return payload
