"""Data Transfer Objects for writer.py.

This module contains the data objects that are collected from a schema file
and rendered into the generated client module.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from twirp_ts_generator import helper
from twirp_ts_generator.proto_types import JSON_SUFFIX


@dataclass
class ModelField:
    """One member of a model.

    Attributes:
        name: The lowerCamel name used in the TypeScript interface (e.g., "createdAt")
        type: The TypeScript type, a sequence for repeated fields (e.g., "Item[]")
        json_name: The original schema name used on the wire (e.g., "created_at")
        json_type: The protobuf-JSON type (e.g., "ItemJSON[]")
        is_message: Whether the field references another model
        is_repeated: Whether the field carries the repeated label
        map_type: The associative type for map fields (e.g., "Map<string, number>")
    """

    name: str
    type: str
    json_name: str
    json_type: str
    is_message: bool = False
    is_repeated: bool = False
    map_type: str | None = None

    @property
    def base_type(self) -> str:
        """The TypeScript type without the sequence marker."""
        return helper.strip_repeated(self.type)


@dataclass
class MapDetails:
    """Marks a model as the synthetic entry type of a map field.

    Attributes:
        name: The name of the map helpers (e.g., "MessageTags" for "MessageTagsEntry")
        key_field: The `key` field of the entry
        value_field: The `value` field of the entry
    """

    name: str
    key_field: ModelField
    value_field: ModelField

    @property
    def map_type(self) -> str:
        """The associative type the map helpers convert from and to."""
        return helper.new_map_type(self.key_field.type, self.value_field.type)


@dataclass
class Model:
    """One generated data shape, derived from one schema message.

    Attributes:
        name: The unique, namespace-flattened name (e.g., "OuterInner")
        primitive: True only for the built-in `Date` placeholder
        fields: The fields in declaration order
        map_details: Set if the model is a map entry
        can_marshal: Whether a `<Name>ToJSON` function is generated
        can_unmarshal: Whether a `JSONTo<Name>` function is generated
    """

    name: str
    primitive: bool = False
    fields: list[ModelField] = field(default_factory=list)
    map_details: MapDetails | None = None
    can_marshal: bool = False
    can_unmarshal: bool = False

    @property
    def is_map(self) -> bool:
        """Whether this model is a map entry."""
        return self.map_details is not None

    @property
    def json_name(self) -> str:
        """Name of the wire-mirror interface."""
        return self.name + JSON_SUFFIX


@dataclass
class ServiceMethod:
    """One RPC method of a service.

    Attributes:
        name: The lowerCamel client method name (e.g., "sayHello")
        path: The route path, the schema method name verbatim (e.g., "SayHello")
        input_arg: The parameter name of the client method (e.g., "helloReq")
        input_type: The local name of the input model
        output_type: The local name of the output model
    """

    name: str
    path: str
    input_arg: str
    input_type: str
    output_type: str


@dataclass
class Service:
    """One schema service with its methods in declaration order."""

    name: str
    package: str
    methods: list[ServiceMethod] = field(default_factory=list)

    @property
    def client_name(self) -> str:
        """Name of the generated client class."""
        return f"{self.name}Client"

    @property
    def path_prefix(self) -> str:
        """The route prefix shared by all methods, e.g. `/twirp/pkg.Greeter/`."""
        if self.package:
            return f"/twirp/{self.package}.{self.name}/"

        return f"/twirp/{self.name}/"
