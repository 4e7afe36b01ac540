"""Top-level module for client generation."""

from __future__ import annotations

import argparse
import logging
import os.path
from collections.abc import Sequence
from typing import BinaryIO

from google.protobuf.compiler.plugin_pb2 import CodeGeneratorRequest, CodeGeneratorResponse
from google.protobuf.descriptor_pb2 import FileDescriptorProto, FileDescriptorSet
from google.protobuf.message import DecodeError

from twirp_ts_generator import helper
from twirp_ts_generator.registry import GenerationError
from twirp_ts_generator.writer import Writer

logger = logging.getLogger(__name__)

OUT_DIR_PARAMETER = "out_dir"


class DescriptorSetError(GenerationError):
    """Raised when a descriptor set cannot be read or does not contain the requested files."""


def parse_parameter(parameter: str) -> dict[str, str]:
    """Parse the protoc plugin parameter string.

    The parameter is a comma separated list of `key=value` pairs, e.g. `out_dir=gen/api`.
    Keys without a value map to an empty string.

    Args:
        parameter (str): The raw parameter string of the generation request.

    Returns:
        dict[str, str]: The parsed options.
    """
    options: dict[str, str] = {}
    for chunk in parameter.split(","):
        key, _, value = chunk.partition("=")
        key = key.strip()
        if key:
            options[key] = value.strip()

    return options


def generate_client(file_descriptor: FileDescriptorProto, output_path: str = "") -> CodeGeneratorResponse.File:
    """Entry-point for generating the client module of one schema file.

    Args:
        file_descriptor (FileDescriptorProto): The schema file.
        output_path (str, optional): The output directory hint. Defaults to "".

    Raises:
        GenerationError: If the schema file references unknown models or cannot be rendered.

    Returns:
        CodeGeneratorResponse.File: The generated file with its name and content.
    """
    writer = Writer(file_descriptor)
    writer.generate_all()

    generated = CodeGeneratorResponse.File()
    generated.name = helper.join_output_path(output_path, helper.ts_module_filename(file_descriptor.name))
    generated.content = writer.dumps_ts()

    logger.info("Generated '%s' from '%s'.", generated.name, file_descriptor.name)
    return generated


def generate_response(request: CodeGeneratorRequest) -> CodeGeneratorResponse:
    """Generate the client modules for all files protoc asks for.

    A failing file turns the whole response into an error response, protoc then reports the error and
    writes no files.

    Args:
        request (CodeGeneratorRequest): The generation request of protoc.

    Returns:
        CodeGeneratorResponse: The response with either all generated files or an error.
    """
    options = parse_parameter(request.parameter)
    output_path = options.get(OUT_DIR_PARAMETER, "")

    files_by_name = {proto_file.name: proto_file for proto_file in request.proto_file}

    response = CodeGeneratorResponse()
    for file_name in request.file_to_generate:
        if file_name not in files_by_name:
            return CodeGeneratorResponse(error=f"{file_name}: file is missing from the generation request")

        try:
            generated = generate_client(files_by_name[file_name], output_path)
        except GenerationError as e:
            logger.error(f"Generation failed for '{file_name}': {e}")
            return CodeGeneratorResponse(error=f"{file_name}: {e}")

        response.file.append(generated)

    return response


def run_plugin(stdin: BinaryIO, stdout: BinaryIO) -> None:
    """Run as protoc plugin: read a serialized request and write a serialized response.

    Args:
        stdin (BinaryIO): Stream with the serialized `CodeGeneratorRequest`.
        stdout (BinaryIO): Stream for the serialized `CodeGeneratorResponse`.
    """
    request = CodeGeneratorRequest()
    request.ParseFromString(stdin.read())

    response = generate_response(request)

    stdout.write(response.SerializeToString())
    stdout.flush()


def load_descriptor_set(path: str) -> FileDescriptorSet:
    """Load a serialized descriptor set, as written by `protoc --descriptor_set_out`.

    Args:
        path (str): Path to the descriptor set.

    Raises:
        DescriptorSetError: If the file cannot be read or parsed.

    Returns:
        FileDescriptorSet: The parsed descriptor set.
    """
    try:
        with open(path, "rb") as descriptor_file:
            payload = descriptor_file.read()
    except OSError as e:
        raise DescriptorSetError(f"Could not read descriptor set '{path}': {e}") from e

    descriptor_set = FileDescriptorSet()
    try:
        descriptor_set.ParseFromString(payload)
    except DecodeError as e:
        raise DescriptorSetError(f"'{path}' is not a serialized FileDescriptorSet: {e}") from e

    return descriptor_set


def select_files(descriptor_set: FileDescriptorSet, names: Sequence[str]) -> list[FileDescriptorProto]:
    """Select the schema files to generate clients for.

    Without explicit names, every file that defines a service is selected. If no file defines a service,
    all files are selected.

    Args:
        descriptor_set (FileDescriptorSet): The descriptor set.
        names (Sequence[str]): Requested schema file names, may be empty.

    Raises:
        DescriptorSetError: If a requested file is not part of the descriptor set.

    Returns:
        list[FileDescriptorProto]: The selected schema files.
    """
    if names:
        files_by_name = {proto_file.name: proto_file for proto_file in descriptor_set.file}
        missing = [name for name in names if name not in files_by_name]
        if missing:
            raise DescriptorSetError(f"Files not found in descriptor set: {', '.join(missing)}")

        return [files_by_name[name] for name in names]

    with_services = [proto_file for proto_file in descriptor_set.file if proto_file.service]
    return with_services or list(descriptor_set.file)


def check_output_names(
    proto_files: Sequence[FileDescriptorProto], generated_files: Sequence[CodeGeneratorResponse.File]
) -> None:
    """Verify that no two schema files are written to the same output file.

    The module file name drops the schema directory, so `a/api.proto` and `b/api.proto` clash.

    Args:
        proto_files (Sequence[FileDescriptorProto]): The selected schema files.
        generated_files (Sequence[CodeGeneratorResponse.File]): The generated files, in the same order.

    Raises:
        DescriptorSetError: If two schema files map to the same output file.
    """
    sources_by_output: dict[str, list[str]] = {}
    for proto_file, generated in zip(proto_files, generated_files):
        sources_by_output.setdefault(generated.name, []).append(proto_file.name)

    clashes = [f"'{name}' from {', '.join(sources)}" for name, sources in sources_by_output.items() if len(sources) > 1]
    if clashes:
        raise DescriptorSetError(f"Schema files generate the same output file: {'; '.join(clashes)}")


def run(args: argparse.Namespace, root_directory: str) -> int:
    """Run the client generator on a descriptor set and write the generated modules.

    Uses `generate_client` on each selected schema file.

    Args:
        args (argparse.Namespace): The arguments that were passed when calling the client generator.
        root_directory (str): The directory, from which the generator is executed.

    Returns:
        int: Error code.
    """
    descriptor_set_path: str = os.path.join(root_directory, args.descriptor_set)
    files: list[str] = getattr(args, "files", [])
    output_dir: str = getattr(args, "output_dir", "")

    try:
        descriptor_set = load_descriptor_set(descriptor_set_path)
        proto_files = select_files(descriptor_set, files)
        generated_files = [generate_client(proto_file) for proto_file in proto_files]
        check_output_names(proto_files, generated_files)
    except GenerationError as e:
        logger.error(e)
        return 1

    output_directory = os.path.join(root_directory, output_dir)
    os.makedirs(output_directory, exist_ok=True)

    for generated in generated_files:
        output_file_path = os.path.join(output_directory, generated.name)
        with open(output_file_path, "w", encoding="utf8") as output_file:
            output_file.write(generated.content)

        logger.info("Wrote client to '%s'.", output_file_path)

    return 0
