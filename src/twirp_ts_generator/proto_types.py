"""Type mapping from protobuf field descriptors to TypeScript and protobuf-JSON types."""

from __future__ import annotations

from google.protobuf.descriptor_pb2 import DescriptorProto, FieldDescriptorProto

from twirp_ts_generator import helper

TS_NUMBER = "number"
TS_STRING = "string"
TS_BOOLEAN = "boolean"
TS_DATE = "Date"

JSON_SUFFIX = "JSON"

TIMESTAMP_TYPE_NAME = ".google.protobuf.Timestamp"

MAP_KEY_FIELD = "key"
MAP_VALUE_FIELD = "value"

PROTO_TYPE_TO_TS = {
    FieldDescriptorProto.TYPE_DOUBLE: TS_NUMBER,
    FieldDescriptorProto.TYPE_FLOAT: TS_NUMBER,
    FieldDescriptorProto.TYPE_FIXED32: TS_NUMBER,
    FieldDescriptorProto.TYPE_FIXED64: TS_NUMBER,
    FieldDescriptorProto.TYPE_SFIXED32: TS_NUMBER,
    FieldDescriptorProto.TYPE_SFIXED64: TS_NUMBER,
    FieldDescriptorProto.TYPE_INT32: TS_NUMBER,
    FieldDescriptorProto.TYPE_INT64: TS_NUMBER,
    FieldDescriptorProto.TYPE_UINT32: TS_NUMBER,
    FieldDescriptorProto.TYPE_UINT64: TS_NUMBER,
    FieldDescriptorProto.TYPE_SINT32: TS_NUMBER,
    FieldDescriptorProto.TYPE_SINT64: TS_NUMBER,
    FieldDescriptorProto.TYPE_STRING: TS_STRING,
    FieldDescriptorProto.TYPE_BOOL: TS_BOOLEAN,
}
"""Scalar types with a dedicated TypeScript type. The wire type is the same as the target type."""


def is_repeated(field: FieldDescriptorProto) -> bool:
    """Whether a field carries the repeated label."""
    return field.label == FieldDescriptorProto.LABEL_REPEATED


def is_message(field: FieldDescriptorProto) -> bool:
    """Whether a field references another message."""
    return field.type == FieldDescriptorProto.TYPE_MESSAGE


def is_map_entry(message: DescriptorProto) -> bool:
    """Whether a message is the synthetic entry type protoc creates for a map field.

    Args:
        message (DescriptorProto): The message to check.

    Returns:
        bool: True, if the message is marked as map entry and has a `key` and a `value` field.
    """
    if not message.options.map_entry:
        return False

    field_names = {field.name for field in message.field}
    return MAP_KEY_FIELD in field_names and MAP_VALUE_FIELD in field_names


def field_types(field: FieldDescriptorProto, package: str) -> tuple[str, str]:
    """Generates the (type, JSON type) tuple of a single, non-repeated field value.

    Bytes and enum values fall back to strings, which is how protobuf JSON encodes them.

    Google's well-known Timestamp is a special case: the wire value is kept as RFC 3339 string,
    the target value is a `Date`. `JSON.stringify` already serializes `Date` to RFC 3339.

    Args:
        field (FieldDescriptorProto): The field to map.
        package (str): The package of the schema file, stripped from referenced type names.

    Returns:
        tuple[str, str]: The TypeScript type and the protobuf-JSON type.
    """
    if field.type in PROTO_TYPE_TO_TS:
        ts_type = PROTO_TYPE_TO_TS[field.type]
        return ts_type, ts_type

    if is_message(field):
        if field.type_name == TIMESTAMP_TYPE_NAME:
            return TS_DATE, TS_STRING

        local_name = helper.remove_pkg(field.type_name, package)
        return local_name, local_name + JSON_SUFFIX

    return TS_STRING, TS_STRING


def proto_to_ts_type(field: FieldDescriptorProto, package: str) -> tuple[str, str]:
    """Generates the (type, JSON type) tuple of a field, so marshal and unmarshal functions can convert
    between TypeScript interfaces and protobuf JSON.

    Args:
        field (FieldDescriptorProto): The field to map.
        package (str): The package of the schema file.

    Returns:
        tuple[str, str]: The TypeScript type and the protobuf-JSON type, both as sequences for repeated fields.
    """
    ts_type, json_type = field_types(field, package)

    if is_repeated(field):
        ts_type += helper.REPEATED_SUFFIX
        json_type += helper.REPEATED_SUFFIX

    return ts_type, json_type


def map_type(field: FieldDescriptorProto, message: DescriptorProto, package: str) -> str | None:
    """Find the associative type of a map field.

    A map field is a repeated field whose type is a nested map entry of the message that declares the field.

    Args:
        field (FieldDescriptorProto): The field to check.
        message (DescriptorProto): The message that declares the field.
        package (str): The package of the schema file.

    Returns:
        str | None: The map type, e.g. `Map<string, number>`, or None if the field is no map field.
    """
    if not field.type_name:
        return None

    simple_name = field.type_name.split(".")[-1]
    for nested in message.nested_type:
        if nested.name != simple_name or not nested.options.map_entry:
            continue

        key_type = value_type = TS_STRING
        for entry_field in nested.field:
            if entry_field.name == MAP_KEY_FIELD:
                key_type, _ = field_types(entry_field, package)
            elif entry_field.name == MAP_VALUE_FIELD:
                value_type, _ = field_types(entry_field, package)

        return helper.new_map_type(key_type, value_type)

    return None
