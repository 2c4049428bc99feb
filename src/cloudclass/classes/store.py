"""SimpleDB class store.

Classes live in one SimpleDB domain. Each class is an item named
``<type>/<name>`` whose attributes are the class fields; list fields
are stored as one attribute per element, and every item carries a
``ClassType`` attribute used by selects.
"""

import dataclasses
import json
import logging
import typing
from typing import Any, Callable, Dict, Iterable, List, Optional, Type

from botocore.exceptions import ClientError

from cloudclass.core.aws_client import AWSClientManager
from cloudclass.core.config import Configuration
from cloudclass.core.errors import aws_error_message
from cloudclass.classes.definitions import (
    ClassError,
    LaunchConfigurationClass,
    CLASS_TYPES,
    class_type,
    default_classes,
    find_field,
)


logger = logging.getLogger(__name__)

TYPE_ATTRIBUTE = "ClassType"

_TRUE_VALUES = ("1", "t", "T", "TRUE", "true", "True")
_FALSE_VALUES = ("0", "f", "F", "FALSE", "false", "False")


class ClassNotFoundError(ClassError):
    """Raised when a class is not in the store."""
    pass


class ClassDefinitionError(ClassError):
    """Raised when a class document is malformed."""
    pass


class ClassStoreError(ClassError):
    """Raised when the store cannot be read or written."""
    pass


def _is_list(f: dataclasses.Field) -> bool:
    return typing.get_origin(f.type) is list


def _parse_scalar(f: dataclasses.Field, value: str) -> Any:
    """Parse one attribute value for a scalar field.

    Returns the field default when the value cannot be parsed.
    """
    if f.type is bool:
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
        return f.default
    if f.type is int:
        try:
            return int(value)
        except ValueError:
            return f.default
    if f.type is float:
        try:
            return float(value)
        except ValueError:
            return f.default
    return value


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def marshal_attributes(cls_type: Type, attributes: Iterable[Dict[str, str]]) -> Any:
    """Rehydrate a class from SimpleDB attributes.

    Args:
        cls_type: Class dataclass to build
        attributes: SimpleDB attribute dicts with Name and Value

    Returns:
        Instance of cls_type; unknown attributes are ignored
    """
    cls = cls_type()
    for attribute in attributes:
        f = find_field(cls_type, attribute.get("Name", ""))
        if f is None:
            continue

        value = attribute.get("Value", "")
        if _is_list(f):
            getattr(cls, f.name).append(value)
        else:
            setattr(cls, f.name, _parse_scalar(f, value))
    return cls


def to_attributes(cls: Any) -> List[Dict[str, str]]:
    """Flatten a class into SimpleDB attributes.

    Empty strings and empty lists are skipped.
    """
    attributes = []
    for f in dataclasses.fields(cls):
        name = f.metadata["attr"]
        value = getattr(cls, f.name)
        if _is_list(f):
            for element in value:
                attributes.append({"Name": name, "Value": str(element)})
        elif value != "" and value is not None:
            attributes.append({"Name": name, "Value": _format_scalar(value)})
    return attributes


def _check_json_value(f: dataclasses.Field, value: Any) -> Any:
    if _is_list(f):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ClassDefinitionError(f"Field [{f.metadata['json']}] must be a list of strings")
        return list(value)
    if f.type is bool:
        if not isinstance(value, bool):
            raise ClassDefinitionError(f"Field [{f.metadata['json']}] must be a boolean")
        return value
    if f.type is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ClassDefinitionError(f"Field [{f.metadata['json']}] must be an integer")
        return value
    if f.type is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ClassDefinitionError(f"Field [{f.metadata['json']}] must be a number")
        return float(value)
    if not isinstance(value, str):
        raise ClassDefinitionError(f"Field [{f.metadata['json']}] must be a string")
    return value


def from_json(cls_type: Type, data: Any) -> Any:
    """Build a class from a JSON document keyed by camelCase names.

    Raises:
        ClassDefinitionError: When the document is malformed
    """
    try:
        document = json.loads(data)
    except (TypeError, ValueError) as e:
        raise ClassDefinitionError(f"Invalid class JSON: {e}")

    if not isinstance(document, dict):
        raise ClassDefinitionError("Class JSON must be an object")

    cls = cls_type()
    for f in dataclasses.fields(cls_type):
        key = f.metadata["json"]
        if key in document:
            setattr(cls, f.name, _check_json_value(f, document[key]))
    return cls


def to_json(cls: Any) -> str:
    """Serialize a class to its JSON document."""
    return json.dumps(
        {f.metadata["json"]: getattr(cls, f.name) for f in dataclasses.fields(cls)},
        indent=2,
    )


def next_launch_configuration_version(
    class_name: str,
    cfg: LaunchConfigurationClass,
    exists: Callable[[str, str], bool],
) -> int:
    """Next free launch configuration version of a class.

    Starts after cfg.version and skips every version whose name already
    exists in any of the class regions.

    Args:
        class_name: Launch configuration class name
        cfg: Launch configuration class
        exists: Callable(region, name) telling whether a name is taken

    Returns:
        The first version number free in every class region
    """
    version = cfg.version + 1
    while any(
        exists(region, cfg.name_for(class_name, version)) for region in cfg.regions
    ):
        logger.info(
            "Launch configuration [%s] already exists, skipping version %d",
            cfg.name_for(class_name, version),
            version,
        )
        version += 1
    return version


class ClassStore:
    """Reads and writes configuration classes in SimpleDB."""

    def __init__(self, aws_client: AWSClientManager, config: Configuration) -> None:
        """Initialize class store.

        Args:
            aws_client: AWS client manager instance
            config: Configuration instance
        """
        self.aws_client = aws_client
        self.config = config
        self.domain = config.get_store_domain()
        self._sdb_client = None

    @property
    def sdb_client(self):
        """Get SimpleDB client with lazy initialization."""
        if self._sdb_client is None:
            self._sdb_client = self.aws_client.get_client(
                "sdb", self.config.get_store_region()
            )
        return self._sdb_client

    @staticmethod
    def item_name(type_key: str, name: str) -> str:
        return f"{type_key}/{name}"

    def ensure_domain(self) -> None:
        """Create the store domain; a no-op when it exists.

        Raises:
            ClassStoreError: When the domain cannot be created
        """
        try:
            self.sdb_client.create_domain(DomainName=self.domain)
        except ClientError as e:
            raise ClassStoreError(
                f"Unable to create class store [{self.domain}]: {aws_error_message(e)}"
            )

    def save(self, type_key: str, name: str, cls: Any) -> None:
        """Store a class, replacing any previous version.

        Raises:
            ClassStoreError: When SimpleDB rejects the write
        """
        class_type(type_key)
        item = self.item_name(type_key, name)
        attributes = [{"Name": TYPE_ATTRIBUTE, "Value": type_key}]
        attributes.extend(to_attributes(cls))

        try:
            self.sdb_client.delete_attributes(DomainName=self.domain, ItemName=item)
            self.sdb_client.put_attributes(
                DomainName=self.domain,
                ItemName=item,
                Attributes=[dict(a, Replace=False) for a in attributes],
            )
        except ClientError as e:
            raise ClassStoreError(
                f"Unable to save class [{item}]: {aws_error_message(e)}"
            )

        logger.info("Saved class [%s] in domain [%s]", item, self.domain)

    def load(self, type_key: str, name: str) -> Any:
        """Load one class by name.

        Raises:
            ClassNotFoundError: When no such class is stored
            ClassStoreError: When SimpleDB cannot be read
        """
        cls_type = class_type(type_key)
        item = self.item_name(type_key, name)
        try:
            response = self.sdb_client.get_attributes(
                DomainName=self.domain, ItemName=item, ConsistentRead=True
            )
        except ClientError as e:
            raise ClassStoreError(
                f"Unable to load class [{item}]: {aws_error_message(e)}"
            )

        attributes = response.get("Attributes", [])
        if not attributes:
            raise ClassNotFoundError(
                f"Unable to find the [{name}] class in [{type_key}]!"
            )
        return marshal_attributes(cls_type, attributes)

    def load_all(self, type_key: str) -> Dict[str, Any]:
        """Load every class of one type.

        Returns:
            Mapping of class name to class
        """
        cls_type = class_type(type_key)
        expression = (
            f"select * from `{self.domain}` "
            f"where {TYPE_ATTRIBUTE} = '{type_key}'"
        )
        prefix = f"{type_key}/"
        classes: Dict[str, Any] = {}

        try:
            paginator = self.sdb_client.get_paginator("select")
            for page in paginator.paginate(
                SelectExpression=expression, ConsistentRead=True
            ):
                for item in page.get("Items", []):
                    name = item["Name"]
                    if name.startswith(prefix):
                        name = name[len(prefix):]
                    classes[name] = marshal_attributes(
                        cls_type, item.get("Attributes", [])
                    )
        except ClientError as e:
            raise ClassStoreError(
                f"Unable to list [{type_key}] classes: {aws_error_message(e)}"
            )

        return classes

    def delete(self, type_key: str, name: str) -> None:
        """Delete one class."""
        class_type(type_key)
        item = self.item_name(type_key, name)
        try:
            self.sdb_client.delete_attributes(DomainName=self.domain, ItemName=item)
        except ClientError as e:
            raise ClassStoreError(
                f"Unable to delete class [{item}]: {aws_error_message(e)}"
            )
        logger.info("Deleted class [%s]", item)

    def save_json(self, type_key: str, name: str, data: Any) -> Any:
        """Parse a JSON class document and store it.

        Returns:
            The stored class
        """
        cls = from_json(class_type(type_key), data)
        self.save(type_key, name, cls)
        return cls

    def install_defaults(self, type_key: Optional[str] = None) -> int:
        """Seed the built-in default classes.

        Args:
            type_key: One class type, or None for every type

        Returns:
            Number of classes written
        """
        self.ensure_domain()
        type_keys = [type_key] if type_key else list(CLASS_TYPES)
        count = 0
        for key in type_keys:
            for name, cls in default_classes(key).items():
                self.save(key, name, cls)
                count += 1
        return count
