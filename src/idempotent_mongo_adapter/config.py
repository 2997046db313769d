"""Configuration module for the idempotency MongoDB adapter.

This module provides the MongoConnectionOptions and AdapterOptions classes used
to configure how the adapter reaches MongoDB, how its collections are named,
and how long stored resources live.

Example:
    Basic usage with an owned connection:

        >>> options = AdapterOptions(config={"uri": "mongodb://localhost:27017"})
        >>> options.collection_prefix
        'idempotency'
        >>> options.ttl_seconds
        86400

    Sharing a database handle owned by the host application:

        >>> async def get_db():
        ...     return app_client.get_database("shop")
        >>> options = AdapterOptions(use_delegation=True, delegate=get_db)

    Loading from environment:

        >>> import os
        >>> os.environ['IDEMPOTENCY_MONGO_URI'] = 'mongodb://mongo:27017/shop'
        >>> os.environ['IDEMPOTENCY_MONGO_TTL_SECONDS'] = '30'
        >>> options = AdapterOptions.from_env()
"""

import os
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_COLLECTION_PREFIX = "idempotency"
DEFAULT_TTL_SECONDS = 86400

# Largest value MongoDB accepts for expireAfterSeconds (signed 32-bit int)
MAX_TTL_SECONDS = 2147483647

VALID_URI_SCHEMES = ("mongodb://", "mongodb+srv://")

DatabaseDelegate = Callable[[], Awaitable[Any]]


class MongoConnectionOptions(BaseModel):
    """Connection parameters for an adapter-owned MongoDB client.

    Attributes:
        uri: MongoDB connection string.
        settings: Driver-specific keyword arguments passed to
            ``AsyncMongoClient`` (e.g. ``serverSelectionTimeoutMS``).
        database_name: Database to use. When omitted, the database named in
            the URI is used, falling back to ``"idempotency"``.
    """

    uri: str = Field(..., description="MongoDB connection string")
    settings: dict[str, Any] = Field(
        default_factory=dict,
        description="Driver-specific AsyncMongoClient keyword arguments",
    )
    database_name: str | None = Field(
        default=None,
        description="Database name, overrides the one in the URI",
    )

    model_config = {"frozen": True}

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        """Validate the connection string scheme.

        Raises:
            ValueError: If the URI is empty or not a mongodb:// or
                mongodb+srv:// URI.
        """
        v = v.strip()
        if not v:
            raise ValueError("uri must not be empty")
        if not v.startswith(VALID_URI_SCHEMES):
            raise ValueError(
                f"uri must start with one of {', '.join(VALID_URI_SCHEMES)}, got {v!r}"
            )
        return v


class AdapterOptions(BaseModel):
    """Options for the idempotency MongoDB adapter.

    Attributes:
        config: Connection parameters, used when the adapter owns its
            connection. May be given as a dict.
        use_delegation: Obtain the database from ``delegate`` instead of
            opening a connection. The adapter never closes a delegated
            database.
        delegate: Async callable returning an ``AsyncDatabase``.
        collection_prefix: Prefix of the ``Store`` and ``Schema``
            collections. Default is "idempotency".
        ttl_seconds: Lifetime of stored resources in seconds, enforced by a
            MongoDB TTL index. Default is 86400 (1 day).

    Note:
        A missing ``config`` without delegation is accepted here and reported
        as a DatabaseConnectionError when the adapter is initialized.
    """

    config: MongoConnectionOptions | None = Field(
        default=None,
        description="Connection parameters for an owned connection",
    )
    use_delegation: bool = Field(
        default=False,
        description="Obtain the database handle from the delegate",
    )
    delegate: DatabaseDelegate | None = Field(
        default=None,
        description="Async callable returning the database handle",
    )
    collection_prefix: str = Field(
        default=DEFAULT_COLLECTION_PREFIX,
        description="Prefix used to name the Store and Schema collections",
    )
    ttl_seconds: int = Field(
        default=DEFAULT_TTL_SECONDS,
        description="Time-to-live in seconds for stored resources",
    )

    model_config = {"frozen": True}

    @field_validator("collection_prefix")
    @classmethod
    def validate_collection_prefix(cls, v: str) -> str:
        """Validate the prefix produces legal MongoDB collection names.

        Raises:
            ValueError: If the prefix is empty, contains ``$`` or a NUL
                character, or starts with ``system.``.

        Example:
            >>> AdapterOptions(collection_prefix="tenantA_").collection_prefix
            'tenantA_'
        """
        if not v:
            raise ValueError("collection_prefix must not be empty")
        if "$" in v or "\x00" in v:
            raise ValueError("collection_prefix must not contain '$' or NUL characters")
        if v.startswith("system."):
            raise ValueError("collection_prefix must not start with 'system.'")
        return v

    @field_validator("ttl_seconds")
    @classmethod
    def validate_ttl_seconds(cls, v: int) -> int:
        """Validate TTL is within the range MongoDB accepts.

        Raises:
            ValueError: If TTL is not between 1 and 2147483647.
        """
        if not (1 <= v <= MAX_TTL_SECONDS):
            raise ValueError(f"ttl_seconds must be between 1 and {MAX_TTL_SECONDS}, got {v}")
        return v

    @model_validator(mode="after")
    def validate_delegation(self) -> "AdapterOptions":
        """Require a delegate when delegation is enabled.

        Raises:
            ValueError: If use_delegation is True and no delegate is set.
        """
        if self.use_delegation and self.delegate is None:
            raise ValueError("delegate must be provided when use_delegation is True")
        return self

    @classmethod
    def from_env(cls, prefix: str = "IDEMPOTENCY_MONGO_") -> "AdapterOptions":
        """Create options from environment variables.

        Reads ``{prefix}URI``, ``{prefix}DATABASE_NAME``,
        ``{prefix}COLLECTION_PREFIX`` and ``{prefix}TTL_SECONDS``. Delegation
        cannot be configured from the environment.

        Args:
            prefix: Prefix for environment variable names.

        Returns:
            AdapterOptions populated from environment variables.

        Example:
            >>> os.environ['IDEMPOTENCY_MONGO_URI'] = 'mongodb://localhost:27017'
            >>> os.environ['IDEMPOTENCY_MONGO_COLLECTION_PREFIX'] = 'orders'
            >>> AdapterOptions.from_env().collection_prefix
            'orders'
        """
        options: dict[str, Any] = {}

        uri = os.environ.get(f"{prefix}URI")
        if uri is not None:
            connection: dict[str, Any] = {"uri": uri}
            database_name = os.environ.get(f"{prefix}DATABASE_NAME")
            if database_name:
                connection["database_name"] = database_name
            options["config"] = connection

        collection_prefix = os.environ.get(f"{prefix}COLLECTION_PREFIX")
        if collection_prefix is not None:
            options["collection_prefix"] = collection_prefix

        ttl_seconds = os.environ.get(f"{prefix}TTL_SECONDS")
        if ttl_seconds is not None:
            options["ttl_seconds"] = int(ttl_seconds)

        return cls(**options)

    @classmethod
    def from_dict(cls, options: dict[str, Any]) -> "AdapterOptions":
        """Create options from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**options)
