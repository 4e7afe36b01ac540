"""Pytest configuration and fixtures for twirp client generator tests.

Schema files are built in-process as descriptors, so no protoc binary is needed.
"""

from __future__ import annotations

import pytest
from google.protobuf.descriptor_pb2 import (
    DescriptorProto,
    FieldDescriptorProto,
    FileDescriptorProto,
)

PACKAGE = "pkg"

STRING = FieldDescriptorProto.TYPE_STRING
INT32 = FieldDescriptorProto.TYPE_INT32
INT64 = FieldDescriptorProto.TYPE_INT64
DOUBLE = FieldDescriptorProto.TYPE_DOUBLE
BOOL = FieldDescriptorProto.TYPE_BOOL
BYTES = FieldDescriptorProto.TYPE_BYTES
ENUM = FieldDescriptorProto.TYPE_ENUM
MESSAGE = FieldDescriptorProto.TYPE_MESSAGE

OPTIONAL = FieldDescriptorProto.LABEL_OPTIONAL
REPEATED = FieldDescriptorProto.LABEL_REPEATED

TIMESTAMP = ".google.protobuf.Timestamp"


def add_field(
    message: DescriptorProto,
    name: str,
    field_type: int,
    type_name: str = "",
    label: int = OPTIONAL,
) -> FieldDescriptorProto:
    """Add a field to a message descriptor, numbered in declaration order."""
    field = message.field.add()
    field.name = name
    field.number = len(message.field)
    field.type = field_type  # type: ignore[assignment]
    field.label = label  # type: ignore[assignment]
    if type_name:
        field.type_name = type_name
    return field


def add_map_field(
    message: DescriptorProto,
    name: str,
    key_type: int,
    value_type: int,
    value_type_name: str = "",
    package: str = PACKAGE,
    scope: str = "",
) -> DescriptorProto:
    """Add a map field the way protoc does: a repeated field referencing a nested map entry message.

    Args:
        message: The message to add the map field to.
        name: The snake_case field name.
        key_type: The field type of the map key.
        value_type: The field type of the map value.
        value_type_name: Fully qualified type name, if the value is a message.
        package: The schema package.
        scope: Dotted names of the messages enclosing `message`.

    Returns:
        The nested map entry descriptor.
    """
    entry_name = "".join(part.capitalize() for part in name.split("_")) + "Entry"
    entry = message.nested_type.add()
    entry.name = entry_name
    entry.options.map_entry = True
    add_field(entry, "key", key_type)
    add_field(entry, "value", value_type, value_type_name)

    full_scope = ".".join(part for part in (package, scope, message.name) if part)
    add_field(message, name, MESSAGE, f".{full_scope}.{entry_name}", REPEATED)
    return entry


def add_method(file_descriptor: FileDescriptorProto, service_name: str, name: str, input_type: str, output_type: str):
    """Add a method to a service of a file descriptor, creating the service on first use."""
    for service in file_descriptor.service:
        if service.name == service_name:
            break
    else:
        service = file_descriptor.service.add()
        service.name = service_name

    method = service.method.add()
    method.name = name
    method.input_type = f".{file_descriptor.package}.{input_type}"
    method.output_type = f".{file_descriptor.package}.{output_type}"
    return method


def new_file(name: str = "greeter.proto", package: str = PACKAGE) -> FileDescriptorProto:
    """Create an empty schema file descriptor."""
    return FileDescriptorProto(name=name, package=package, syntax="proto3")


@pytest.fixture
def greeter_file() -> FileDescriptorProto:
    """A schema with service `Greeter`, method `SayHello(HelloReq) returns (HelloResp)`."""
    file_descriptor = new_file()

    hello_req = file_descriptor.message_type.add(name="HelloReq")
    add_field(hello_req, "name", STRING)

    hello_resp = file_descriptor.message_type.add(name="HelloResp")
    add_field(hello_resp, "message", STRING)

    add_method(file_descriptor, "Greeter", "SayHello", "HelloReq", "HelloResp")
    return file_descriptor


@pytest.fixture
def tagged_file() -> FileDescriptorProto:
    """A schema whose request message has a `map<string, string> tags` field."""
    file_descriptor = new_file("tagged.proto")

    tagged = file_descriptor.message_type.add(name="Tagged")
    add_field(tagged, "id", INT64)
    add_map_field(tagged, "tags", STRING, STRING)

    file_descriptor.message_type.add(name="Empty")

    add_method(file_descriptor, "Tagger", "Tag", "Tagged", "Tagged")
    return file_descriptor


@pytest.fixture
def library_file() -> FileDescriptorProto:
    """A schema with nested, repeated, timestamp, cyclic and unreachable messages."""
    file_descriptor = new_file("library/v1/library.proto", "library.v1")
    package = file_descriptor.package

    book = file_descriptor.message_type.add(name="Book")
    add_field(book, "title", STRING)
    add_field(book, "page_count", INT32)
    add_field(book, "published_at", MESSAGE, TIMESTAMP)
    add_field(book, "author", MESSAGE, f".{package}.Book.Author")
    add_field(book, "sequel", MESSAGE, f".{package}.Book")

    author = book.nested_type.add(name="Author")
    add_field(author, "full_name", STRING)
    add_field(author, "address", MESSAGE, f".{package}.Book.Author.Address")

    address = author.nested_type.add(name="Address")
    add_field(address, "street", STRING)

    shelf = file_descriptor.message_type.add(name="Shelf")
    add_field(shelf, "books", MESSAGE, f".{package}.Book", REPEATED)
    add_field(shelf, "checked_at", MESSAGE, TIMESTAMP, REPEATED)
    add_map_field(shelf, "ratings", STRING, MESSAGE, f".{package}.Rating", package)

    rating = file_descriptor.message_type.add(name="Rating")
    add_field(rating, "stars", DOUBLE)

    get_shelf = file_descriptor.message_type.add(name="GetShelfRequest")
    add_field(get_shelf, "shelf_id", STRING)

    orphan = file_descriptor.message_type.add(name="Orphan")
    add_field(orphan, "note", STRING)

    add_method(file_descriptor, "Library", "GetShelf", "GetShelfRequest", "Shelf")
    add_method(file_descriptor, "Library", "AddBook", "Book", "Shelf")
    return file_descriptor
