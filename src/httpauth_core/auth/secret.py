"""Opaque secret strings.

A `Secret` holds a password, token or client secret. Every diagnostic
rendering (`str()`, `repr()`, serialized config dumps) shows the fixed
placeholder `<secret>` instead of the value.
"""

import hmac


class Secret:
    """A string secret that never renders its value.

    Example:
        ```python
        s = Secret("hunter2")
        print(s)  # <secret>
        s.get_secret_value()  # "hunter2"
        ```
    """

    PLACEHOLDER = "<secret>"

    __slots__ = ("_value",)

    def __init__(self, value: str):
        self._value = value

    @classmethod
    def new(cls, value: "str | Secret | None") -> "Secret | None":
        """Return a Secret for value, or None if value is empty."""
        if isinstance(value, Secret):
            return value if value._value else None
        if not value:
            return None
        return cls(value)

    def get_secret_value(self) -> str:
        """Return the secret in plaintext."""
        return self._value

    def __str__(self) -> str:
        return self.PLACEHOLDER

    def __repr__(self) -> str:
        return f"Secret('{self.PLACEHOLDER}')"

    def __bool__(self) -> bool:
        return bool(self._value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Secret):
            return NotImplemented
        return hmac.compare_digest(self._value.encode(), other._value.encode())

    def __hash__(self) -> int:
        return hash(self._value)
