"""Model registry and marshal flag propagation."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Literal

from twirp_ts_generator.proto_types import TS_DATE
from twirp_ts_generator.writer_dto import Model, Service

logger = logging.getLogger(__name__)

MarshalFlag = Literal["can_marshal", "can_unmarshal"]


class GenerationError(Exception):
    """Base class for errors that abort the generation of a client module."""


class UnknownModelError(GenerationError):
    """Raised when a field or method references a model that is not registered."""

    def __init__(self, type_name: str, field_name: str):
        """Initialize the error.

        Args:
            type_name (str): The name of the missing model.
            field_name (str): The field (or method) that references the missing model.
        """
        super().__init__(f"could not find model of type {type_name} for field {field_name}")
        self.type_name = type_name
        self.field_name = field_name


class ModelRegistry:
    """All models of one schema file, in registration order and looked up by name."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self.models: list[Model] = []
        self._lookup: dict[str, Model] = {}

    def __iter__(self) -> Iterator[Model]:
        return iter(self.models)

    def __len__(self) -> int:
        return len(self.models)

    def __contains__(self, name: object) -> bool:
        return name in self._lookup

    def add_model(self, model: Model) -> bool:
        """Register a model.

        Names are unique within one schema file, so a second model with the same name is ignored.

        Args:
            model (Model): The model to register.

        Returns:
            bool: True, if the model was added.
        """
        if model.name in self._lookup:
            logger.warning(f"Ignoring duplicate model '{model.name}'.")
            return False

        self.models.append(model)
        self._lookup[model.name] = model
        logger.debug(f"Registered model '{model.name}'.")
        return True

    def get(self, name: str, field_name: str) -> Model:
        """Look up a model by name.

        Args:
            name (str): The model name.
            field_name (str): The referencing field, for error reporting.

        Raises:
            UnknownModelError: If no model with that name is registered.

        Returns:
            Model: The registered model.
        """
        try:
            return self._lookup[name]
        except KeyError:
            raise UnknownModelError(name, field_name) from None

    def check_references(self) -> None:
        """Verify that every message field references a registered model.

        Raises:
            UnknownModelError: For the first field whose type is not registered.
        """
        for model in self.models:
            for field in model.fields:
                if field.is_message and field.base_type != TS_DATE:
                    self.get(field.base_type, f"{model.name}.{field.json_name}")

    def seed_from_services(self, services: Iterable[Service]) -> None:
        """Flag the models that appear in RPC method signatures.

        Input types need a `ToJSON` function and output types need a `JSONTo` function.

        Args:
            services (Iterable[Service]): The services of the schema file.

        Raises:
            UnknownModelError: If a method references a model that is not registered.
        """
        for service in services:
            for method in service.methods:
                referrer = f"{service.name}.{method.path}"
                self.get(method.input_type, referrer).can_marshal = True
                self.get(method.output_type, referrer).can_unmarshal = True

    def apply_marshal_flags(self) -> None:
        """Propagate `can_marshal` and `can_unmarshal` from flagged models to all models they reference.

        Raises:
            UnknownModelError: If a field references a model that is not registered.
        """
        self._propagate("can_marshal")
        self._propagate("can_unmarshal")

        logger.debug(f"Models with marshal functions: {sorted(self.marshal_closure())}")
        logger.debug(f"Models with unmarshal functions: {sorted(self.unmarshal_closure())}")

    def _propagate(self, flag: MarshalFlag) -> None:
        """Close one flag over the message reference graph.

        Each model is expanded at most once, so self-referencing and mutually referencing messages terminate.

        Args:
            flag (MarshalFlag): The name of the flag attribute.
        """
        pending = [model for model in self.models if getattr(model, flag)]
        visited = {model.name for model in pending}

        while pending:
            model = pending.pop()

            for field in model.fields:
                # Timestamps have a fixed conversion and no generated model
                if not field.is_message or field.base_type == TS_DATE:
                    continue

                referenced = self.get(field.base_type, f"{model.name}.{field.json_name}")
                if referenced.name in visited:
                    continue

                visited.add(referenced.name)
                setattr(referenced, flag, True)
                pending.append(referenced)

    def marshal_closure(self) -> set[str]:
        """Names of all models that get a marshal function."""
        return {model.name for model in self.models if model.can_marshal}

    def unmarshal_closure(self) -> set[str]:
        """Names of all models that get an unmarshal function."""
        return {model.name for model in self.models if model.can_unmarshal}
