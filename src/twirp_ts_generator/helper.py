"""Helper functionality that is used in other modules of this package."""

from __future__ import annotations

import posixpath
from collections.abc import Sequence

INDENT = "    "
TS_SUFFIX = ".ts"
PROTO_SUFFIXES = (".proto", ".protodevel")
REPEATED_SUFFIX = "[]"


def lower_first(name: str) -> str:
    """Lowercase the first character of a name.

    E.g. `SayHello` becomes `sayHello`, `HelloReq` becomes `helloReq`.

    Args:
        name (str): The original name.

    Returns:
        str: The name with a lowercase first character.
    """
    return name[:1].lower() + name[1:]


def camel_case(name: str) -> str:
    """Convert a snake_case field name to lowerCamelCase.

    Every part after the first is capitalized, all other characters are lowercased.
    E.g. `created_at` becomes `createdAt`, `USER_ID` becomes `userId`.

    Args:
        name (str): The schema field name.

    Returns:
        str: The camel cased name.
    """
    parts = name.split("_")

    for i, part in enumerate(parts):
        if i == 0:
            parts[i] = part.lower()
        else:
            parts[i] = part[:1].upper() + part[1:].lower()

    return "".join(parts)


def remove_pkg(type_name: str, package: str) -> str:
    """Strip the package prefix from a fully qualified type name and flatten the rest.

    E.g. `.pkg.Outer.Inner` in package `pkg` becomes `OuterInner`.

    Args:
        type_name (str): The fully qualified type name, as found in a field or method descriptor.
        package (str): The package of the schema file.

    Returns:
        str: The local, namespace-flattened name.
    """
    prefix = f".{package}."
    if type_name.startswith(prefix):
        type_name = type_name[len(prefix) :]

    return type_name.replace(".", "")


def strip_repeated(type_name: str) -> str:
    """Remove the sequence marker from a type name.

    E.g. `Item[]` becomes `Item`.

    Args:
        type_name (str): A target type name, possibly a sequence.

    Returns:
        str: The base type name.
    """
    return type_name.removesuffix(REPEATED_SUFFIX)


def ts_module_filename(proto_file_name: str) -> str:
    """Derive the name of the generated TypeScript module from a schema file name.

    The directory part is dropped and a `.proto` (or `.protodevel`) suffix is replaced by `.ts`.
    Other suffixes are kept, so `api.v1` becomes `api.v1.ts`.

    Args:
        proto_file_name (str): The schema file name, as found in the file descriptor.

    Returns:
        str: The module file name.
    """
    base_name = posixpath.basename(proto_file_name)
    root, extension = posixpath.splitext(base_name)
    if extension in PROTO_SUFFIXES:
        base_name = root

    return base_name + TS_SUFFIX


def join_output_path(output_path: str, file_name: str) -> str:
    """Join the output directory hint with a generated file name.

    Protoc expects forward slashes in generated file names on every platform.

    Args:
        output_path (str): The output directory hint, may be empty.
        file_name (str): The generated file name.

    Returns:
        str: The joined path.
    """
    return posixpath.normpath(posixpath.join(output_path, file_name))


def join_parameters(parameters: Sequence[str] | None) -> str:
    """Joins parameters by means of ', '.

    Args:
        parameters (Sequence[str] | None): The parameters to join.

    Returns:
        str: The joined parameters.
    """
    if parameters:
        return ", ".join(p for p in parameters if p)

    else:
        return ""


def new_map_type(key_type: str, value_type: str) -> str:
    """Create an associative container type, e.g. `Map<string, number>`."""
    return f"Map<{key_type}, {value_type}>"


def new_interface_declaration(name: str, exported: bool = True) -> str:
    """Creates a string for opening an interface declaration.

    Args:
        name (str): The interface name.
        exported (bool, optional): Whether the interface is part of the module's public surface. Defaults to True.

    Returns:
        str: The interface declaration.
    """
    if exported:
        return f"export interface {name} {{"

    else:
        return f"interface {name} {{"


def new_member(name: str, type_name: str, optional: bool = False) -> str:
    """Creates an interface member, e.g. `name?: string;`."""
    marker = "?" if optional else ""
    return f"{name}{marker}: {type_name};"


def new_arrow_function(name: str, parameters: Sequence[str] | None, return_type: str) -> str:
    """Creates the opening line of a module level arrow function.

    For example, for a name of 'FooToJSON', a parameter 'm: Foo' and a return type of 'FooJSON', the output
    will be 'const FooToJSON = (m: Foo): FooJSON => {'.

    Args:
        name (str): The function name.
        parameters (Sequence[str] | None): The function parameters, if any.
        return_type (str): The function's return type.

    Returns:
        str: The opening line of the function.
    """
    return f"const {name} = ({join_parameters(parameters)}): {return_type} => {{"


def new_promise(type_name: str) -> str:
    """Wrap a type into a `Promise`."""
    return f"Promise<{type_name}>"
