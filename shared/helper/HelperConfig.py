"""Central configuration helper for the retrieval engine.

All settings are read from environment variables. A getter called without a
default treats the key as required and raises if it is missing, so that
misconfiguration surfaces when a client or service is constructed rather
than in the middle of a request.
"""

import logging
import os


class HelperConfig:
    """Central configuration helper. Reads all settings from environment variables."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    ##########################################
    ################ READER ##################
    ##########################################

    def _read_raw(self, key: str, required: bool) -> str | None:
        """Read the raw value of an environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            required (bool): Raise if the variable is not set.

        Returns:
            str | None: The stripped value, or None if unset/empty.

        Raises:
            ValueError: If the variable is required but not set.
        """
        key = key.upper()
        raw = (os.getenv(key) or "").strip() or None  # empty string → None
        if raw is None and required:
            raise ValueError(f"Environment variable '{key}' is not set.")
        return raw

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (str | None): Fallback value if the variable is not set.

        Returns:
            str: The resolved value.

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        raw = self._read_raw(key, required=default is None)
        return raw if raw is not None else default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric environment variable.

        Integers are returned as int, anything with a decimal point as float.

        Raises:
            ValueError: If the variable is not set and no default is provided,
                        or if the value cannot be parsed as a number.
        """
        raw = self._read_raw(key, required=default is None)
        if raw is None:
            return default
        try:
            return int(raw) if "." not in raw else float(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_int_val(self, key: str, default: int | None = None, min_val: int | None = None) -> int:
        """Read an integer environment variable with an optional lower bound.

        Raises:
            ValueError: If the value is missing (without default), not an
                        integer, or below min_val.
        """
        value = self.get_number_val(key, default=default)
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"Environment variable '{key.upper()}' must be an integer: '{value}'.")
            value = int(value)
        if min_val is not None and value < min_val:
            raise ValueError(f"Environment variable '{key.upper()}' must be >= {min_val}, got {value}.")
        return value

    def get_float_val(
        self,
        key: str,
        default: float | None = None,
        min_val: float | None = None,
        max_val: float | None = None,
    ) -> float:
        """Read a float environment variable constrained to [min_val, max_val].

        Raises:
            ValueError: If the value is missing (without default), not a
                        number, or outside the allowed range.
        """
        value = float(self.get_number_val(key, default=default))
        if min_val is not None and value < min_val:
            raise ValueError(f"Environment variable '{key.upper()}' must be >= {min_val}, got {value}.")
        if max_val is not None and value > max_val:
            raise ValueError(f"Environment variable '{key.upper()}' must be <= {max_val}, got {value}.")
        return value

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a boolean environment variable ("true", "1" and "yes" are truthy).

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        raw = self._read_raw(key, required=default is None)
        if raw is None:
            return default
        return raw.lower() in ("true", "1", "yes")

    def get_list_val(self, key: str, default: list | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list environment variable in the form "[elem1,elem2,...]".

        Args:
            key (str): Environment variable name (case-insensitive).
            default (list | None): Fallback value if the variable is not set.
            separator (str): The delimiter between elements.
            element_type (type): The type to which each element is cast.

        Returns:
            list: The resolved list of elements.

        Raises:
            ValueError: If the variable is not set and no default is provided,
                        or if the value is malformed.
        """
        raw = self._read_raw(key, required=default is None)
        if raw is None:
            return default
        if not raw.startswith("[") or not raw.endswith("]"):
            raise ValueError(f"Environment variable '{key.upper()}' must be in the format '[elem1{separator}elem2{separator}...]'. Got: '{raw}'")
        elements = [v.strip() for v in raw[1:-1].split(separator) if v.strip()]
        try:
            return [element_type(elem) for elem in elements]
        except ValueError as e:
            raise ValueError(f"Environment variable '{key.upper()}' contains invalid elements: {e}. Got: '{raw}'")

    def get_logger(self) -> logging.Logger:
        """Return the application logger."""
        return self._logger
