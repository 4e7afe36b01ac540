"""Generate a typed TypeScript Twirp client for a *.proto schema file."""

from __future__ import annotations

import logging

from google.protobuf.descriptor_pb2 import (
    DescriptorProto,
    FieldDescriptorProto,
    FileDescriptorProto,
    ServiceDescriptorProto,
)

from twirp_ts_generator import helper, proto_types
from twirp_ts_generator.registry import GenerationError, ModelRegistry
from twirp_ts_generator.writer_dto import MapDetails, Model, ModelField, Service, ServiceMethod

logger = logging.getLogger(__name__)

RUNTIME_IMPORTS = (
    "import {resolve} from 'url';",
    "import {createTwirpRequest, throwTwirpError, Fetch} from './twirp';",
)

MAP_ENTRY_SUFFIX = "Entry"


class RenderError(GenerationError):
    """Raised when a model or service cannot be rendered."""

    def __init__(self, name: str, reason: str):
        """Initialize the error.

        Args:
            name (str): The model or service that failed to render.
            reason (str): What went wrong.
        """
        super().__init__(f"failed to render '{name}': {reason}")
        self.name = name


def _map_helper_name(field: ModelField) -> str:
    """The map helper prefix of a map field, e.g. `MessageTags` for type `MessageTagsEntry[]`."""
    entry_type = field.base_type
    if not entry_type.endswith(MAP_ENTRY_SUFFIX):
        raise ValueError(f"map field '{field.name}' does not reference a map entry but '{field.type}'")

    return entry_type.removesuffix(MAP_ENTRY_SUFFIX)


def marshal_expression(field: ModelField) -> str:
    """The expression that converts a field of `m` into its wire value.

    Args:
        field (ModelField): The field to convert.

    Returns:
        str: A TypeScript expression.
    """
    if field.is_repeated:
        if field.base_type == proto_types.TS_DATE:
            return f"m.{field.name}.map((n) => n.toISOString())"
        elif field.map_type is not None:
            return f"{_map_helper_name(field)}MapToJSON(m.{field.name})"
        elif field.is_message:
            return f"m.{field.name}.map({field.base_type}ToJSON)"

    # Single message fields are optional members
    if field.type == proto_types.TS_DATE:
        return f"m.{field.name} !== undefined ? m.{field.name}.toISOString() : undefined"

    if field.is_message:
        return f"m.{field.name} !== undefined ? {field.type}ToJSON(m.{field.name}) : undefined"

    return f"m.{field.name}"


def unmarshal_expression(field: ModelField) -> str:
    """The expression that converts a wire value of `m` into the field value.

    Args:
        field (ModelField): The field to convert.

    Returns:
        str: A TypeScript expression.
    """
    if field.is_repeated:
        if field.base_type == proto_types.TS_DATE:
            return f"m.{field.json_name}.map((n) => new Date(n))"
        elif field.map_type is not None:
            return f"JSONTo{_map_helper_name(field)}Map(m.{field.json_name})"
        elif field.is_message:
            return f"m.{field.json_name}.map(JSONTo{field.base_type})"

    if field.type == proto_types.TS_DATE:
        return f"new Date(m.{field.json_name})"

    if field.is_message:
        return f"JSONTo{field.type}(m.{field.json_name})"

    return f"m.{field.json_name}"


def _default_value(field: ModelField) -> str:
    if field.map_type is not None:
        return "new Map()"
    elif field.is_repeated:
        return "[]"
    else:
        return "undefined"


class Writer:
    """A class that handles writing the client module, based on a provided schema file descriptor."""

    def __init__(self, file_descriptor: FileDescriptorProto):
        """Initialize the writer with a schema file.

        Args:
            file_descriptor (FileDescriptorProto): The schema file to generate a client module for.
        """
        self._file = file_descriptor
        self.package = file_descriptor.package

        self.registry = ModelRegistry()
        self.services: list[Service] = []

        self._lines: list[str] = []

    @property
    def display_name(self) -> str:
        """The name of this writer's schema file."""
        return self._file.name

    def generate_all(self) -> None:
        """Collect all models and services of the schema file and decide which need (un)marshal functions.

        Raises:
            UnknownModelError: If a field or method references a model that is not part of the schema file.
        """
        for message in self._file.message_type:
            self.add_message_type(message)

        for service in self._file.service:
            self.services.append(self.add_service(service))

        # Only models that are part of an rpc method signature get marshal functions,
        # everything else is reached from there.
        self.registry.add_model(Model(name=proto_types.TS_DATE, primitive=True))
        self.registry.check_references()
        self.registry.seed_from_services(self.services)
        self.registry.apply_marshal_flags()

        logger.info(
            f"Collected {len(self.registry)} model(s) and {len(self.services)} service(s) from '{self.display_name}'."
        )

    def add_message_type(self, message: DescriptorProto, prefix: str = "") -> Model:
        """Register a message and all its nested messages.

        Nested messages are named after all enclosing messages, `Outer.Inner` becomes `OuterInner`.

        Args:
            message (DescriptorProto): The message to register.
            prefix (str, optional): The dotted names of the enclosing messages. Defaults to "".

        Returns:
            Model: The model of the message.
        """
        model = Model(name=prefix.replace(".", "") + message.name)

        key_field: ModelField | None = None
        value_field: ModelField | None = None
        for field in message.field:
            model_field = self.new_field(field, message)
            model.fields.append(model_field)

            if field.name == proto_types.MAP_KEY_FIELD:
                key_field = model_field
            elif field.name == proto_types.MAP_VALUE_FIELD:
                value_field = model_field

        self.registry.add_model(model)

        if proto_types.is_map_entry(message) and key_field is not None and value_field is not None:
            model.map_details = MapDetails(
                name=model.name.removesuffix(MAP_ENTRY_SUFFIX),
                key_field=key_field,
                value_field=value_field,
            )

        for nested in message.nested_type:
            self.add_message_type(nested, f"{prefix}.{message.name}")

        return model

    def new_field(self, field: FieldDescriptorProto, message: DescriptorProto) -> ModelField:
        """Create the model field of a schema field.

        Args:
            field (FieldDescriptorProto): The schema field.
            message (DescriptorProto): The message declaring the field, used to detect map fields.

        Returns:
            ModelField: The model field.
        """
        ts_type, json_type = proto_types.proto_to_ts_type(field, self.package)

        return ModelField(
            name=helper.camel_case(field.name),
            type=ts_type,
            json_name=field.name,
            json_type=json_type,
            is_message=proto_types.is_message(field),
            is_repeated=proto_types.is_repeated(field),
            map_type=proto_types.map_type(field, message, self.package),
        )

    def add_service(self, service: ServiceDescriptorProto) -> Service:
        """Create the service with all its methods.

        The route path keeps the schema method name, since the server matches it case sensitively.

        Args:
            service (ServiceDescriptorProto): The schema service.

        Returns:
            Service: The service.
        """
        new_service = Service(name=service.name, package=self.package)

        for method in service.method:
            input_type = helper.remove_pkg(method.input_type, self.package)

            new_service.methods.append(
                ServiceMethod(
                    name=helper.lower_first(method.name),
                    path=method.name,
                    input_arg=helper.lower_first(input_type),
                    input_type=input_type,
                    output_type=helper.remove_pkg(method.output_type, self.package),
                )
            )

        return new_service

    def _add_line(self, line: str = "", depth: int = 0) -> None:
        if line:
            self._lines.append(f"{depth * helper.INDENT}{line}")
        else:
            self._lines.append("")

    def _gen_interface(self, model: Model) -> None:
        self._add_line(helper.new_interface_declaration(model.name))
        for field in model.fields:
            type_name = field.map_type if field.map_type is not None else field.type
            self._add_line(helper.new_member(field.name, type_name, optional=not field.is_repeated), 1)
        self._add_line("}")
        self._add_line()

    def _gen_json_interface(self, model: Model) -> None:
        self._add_line(helper.new_interface_declaration(model.json_name, exported=False))
        for field in model.fields:
            optional = not field.is_repeated and not model.is_map
            self._add_line(helper.new_member(field.json_name, field.json_type, optional=optional), 1)
        self._add_line("}")
        self._add_line()

    def _gen_marshal(self, model: Model) -> None:
        parameter = "m" if model.fields else "_"
        declaration = helper.new_arrow_function(f"{model.name}ToJSON", [f"{parameter}: {model.name}"], model.json_name)
        self._add_line(declaration)
        self._add_line("return {", 1)
        for field in model.fields:
            self._add_line(f"{field.json_name}: {marshal_expression(field)},", 2)
        self._add_line("};", 1)
        self._add_line("};")
        self._add_line()

    def _gen_unmarshal(self, model: Model) -> None:
        parameter = "m" if model.fields else "_"
        declaration = helper.new_arrow_function(f"JSONTo{model.name}", [f"{parameter}?: {model.json_name}"], model.name)
        self._add_line(declaration)
        self._add_line("return {", 1)
        for field in model.fields:
            self._add_line(
                f"{field.name}: m !== undefined ? {unmarshal_expression(field)} : {_default_value(field)},",
                2,
            )
        self._add_line("};", 1)
        self._add_line("};")
        self._add_line()

    def _gen_map_marshal(self, model: Model, details: MapDetails) -> None:
        self._add_line(
            helper.new_arrow_function(f"{details.name}MapToJSON", [f"map: {details.map_type}"], f"{model.json_name}[]")
        )
        self._add_line("return Array.from(map.entries()).map((entry) => {", 1)
        self._add_line("const [key, value] = entry;", 2)
        self._add_line("const m = {key: key, value: value};", 2)
        self._add_line("return {", 2)
        for field in model.fields:
            self._add_line(f"{field.json_name}: {marshal_expression(field)},", 3)
        self._add_line("};", 2)
        self._add_line("});", 1)
        self._add_line("};")
        self._add_line()

    def _gen_map_unmarshal(self, model: Model, details: MapDetails) -> None:
        key_type = details.key_field.type
        value_type = details.value_field.type
        self._add_line(
            helper.new_arrow_function(f"JSONTo{details.name}Map", [f"entries: {model.json_name}[]"], details.map_type)
        )
        self._add_line("return new Map(entries.map((m) => {", 1)
        self._add_line(
            f"const tuple: [{key_type}, {value_type}] = "
            f"[{unmarshal_expression(details.key_field)}, {unmarshal_expression(details.value_field)}];",
            2,
        )
        self._add_line("return tuple;", 2)
        self._add_line("}));", 1)
        self._add_line("};")
        self._add_line()

    def gen_model(self, model: Model) -> None:
        """Render the interfaces and conversion functions of one model.

        Map entries have no plain interface, their conversion functions work on a whole `Map`.

        Args:
            model (Model): The model to render.

        Raises:
            RenderError: If a field of the model cannot be rendered.
        """
        if model.primitive:
            return

        try:
            if model.map_details is None:
                self._gen_interface(model)
            self._gen_json_interface(model)

            if model.can_marshal:
                if model.map_details is not None:
                    self._gen_map_marshal(model, model.map_details)
                else:
                    self._gen_marshal(model)

            if model.can_unmarshal:
                if model.map_details is not None:
                    self._gen_map_unmarshal(model, model.map_details)
                else:
                    self._gen_unmarshal(model)

        except ValueError as e:
            raise RenderError(model.name, str(e)) from e

    def gen_service(self, service: Service) -> None:
        """Render the interface and the client class of one service.

        Every client method issues a single POST and hands non-success responses to `throwTwirpError`.

        Args:
            service (Service): The service to render.

        Raises:
            RenderError: If a method references a model without the required conversion function.
        """
        for method in service.methods:
            if method.input_type not in self.registry or method.output_type not in self.registry:
                raise RenderError(service.name, f"method '{method.path}' references an unknown model")
            if not self.registry.get(method.input_type, method.path).can_marshal:
                raise RenderError(service.name, f"'{method.input_type}' has no marshal function")
            if not self.registry.get(method.output_type, method.path).can_unmarshal:
                raise RenderError(service.name, f"'{method.output_type}' has no unmarshal function")

        self._add_line(helper.new_interface_declaration(service.name))
        for method in service.methods:
            signature = f"({method.input_arg}: {method.input_type}) => {helper.new_promise(method.output_type)}"
            self._add_line(helper.new_member(method.name, signature), 1)
        self._add_line("}")
        self._add_line()

        self._add_line(f"export class {service.client_name} implements {service.name} {{")
        self._add_line("private hostname: string;", 1)
        self._add_line("private fetch: Fetch;", 1)
        self._add_line(f'private pathPrefix = "{service.path_prefix}";', 1)
        self._add_line()
        self._add_line("constructor(hostname: string, fetch: Fetch) {", 1)
        self._add_line("this.hostname = hostname;", 2)
        self._add_line("this.fetch = fetch;", 2)
        self._add_line("}", 1)

        for method in service.methods:
            self._add_line()
            self._add_line(
                f"{method.name}({method.input_arg}: {method.input_type}): {helper.new_promise(method.output_type)} {{",
                1,
            )
            self._add_line(f'const url = resolve(this.hostname, this.pathPrefix + "{method.path}");', 2)
            self._add_line(
                f"return this.fetch(createTwirpRequest(url, {method.input_type}ToJSON({method.input_arg})))"
                ".then((resp) => {",
                2,
            )
            self._add_line("if (!resp.ok) {", 3)
            self._add_line("return throwTwirpError(resp);", 4)
            self._add_line("}", 3)
            self._add_line()
            self._add_line(f"return resp.json().then(JSONTo{method.output_type});", 3)
            self._add_line("});", 2)
            self._add_line("}", 1)

        self._add_line("}")
        self._add_line()

    def dumps_ts(self) -> str:
        """Generates string output for the TypeScript client module.

        Returns:
            str: The output string.
        """
        self._lines = []

        for line in RUNTIME_IMPORTS:
            self._add_line(line)
        self._add_line()

        for model in self.registry:
            self.gen_model(model)

        for service in self.services:
            self.gen_service(service)

        return "\n".join(self._lines).rstrip("\n") + "\n"
