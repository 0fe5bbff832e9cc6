"""Reading of the ``antora.yml`` component version descriptor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import yaml

from ..errors import ConfigurationError

DESCRIPTOR_FILENAME = "antora.yml"


@dataclass(frozen=True)
class ComponentDescriptor:
    name: str
    version: str
    display_version: str | None = None
    title: str | None = None
    prerelease: bool | str | None = None
    start_page: str | None = None
    nav: tuple[str, ...] | None = None
    asciidoc_attributes: dict[str, Any] = field(default_factory=dict, hash=False)
    files: tuple[str, ...] | None = None
    data: dict[str, Any] = field(default_factory=dict, hash=False, compare=False, repr=False)


def _as_optional_str(data: dict[str, Any], key: str, location: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    raise ConfigurationError(f"{DESCRIPTOR_FILENAME} {key} must be a string", location=location)


def _as_str_tuple(data: dict[str, Any], key: str, location: str) -> tuple[str, ...] | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(it, str) for it in value):
        raise ConfigurationError(
            f"{DESCRIPTOR_FILENAME} {key} must be a list of strings", location=location
        )
    return tuple(value)


def _version_value(data: dict[str, Any], refname: str, location: str) -> str:
    if "version" not in data:
        raise ConfigurationError(f"{DESCRIPTOR_FILENAME} is missing a version", location=location)
    version = data["version"]
    if version is True:
        version = refname
    elif version is None or version is False:
        version = ""
    elif isinstance(version, (int, float)):
        version = str(version)
    elif not isinstance(version, str):
        raise ConfigurationError(
            f"{DESCRIPTOR_FILENAME} version must be a string", location=location
        )
    if "/" in version:
        raise ConfigurationError(
            f"version in {DESCRIPTOR_FILENAME} cannot contain a forward slash", location=location
        )
    return version


def parse_descriptor(contents: bytes | str, *, refname: str, location: str) -> ComponentDescriptor:
    """Validate the descriptor text and normalize its values.

    ``version: true`` takes the ref name; ``version: ~`` marks the component
    version as versionless.
    """
    try:
        data = yaml.safe_load(contents) or {}
    except yaml.YAMLError as err:
        raise ConfigurationError(
            f"{DESCRIPTOR_FILENAME} has invalid syntax: {err}", location=location
        ) from err
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"{DESCRIPTOR_FILENAME} must contain a mapping", location=location
        )

    name = data.get("name")
    if name is None or name == "":
        raise ConfigurationError(f"{DESCRIPTOR_FILENAME} is missing a name", location=location)
    name = str(name)
    if "/" in name:
        raise ConfigurationError(
            f"name in {DESCRIPTOR_FILENAME} cannot contain a forward slash", location=location
        )

    prerelease = data.get("prerelease")
    if prerelease is not None and not isinstance(prerelease, (bool, str)):
        prerelease = str(prerelease)

    asciidoc = data.get("asciidoc") or {}
    attributes = asciidoc.get("attributes") if isinstance(asciidoc, dict) else None
    if attributes is not None and not isinstance(attributes, dict):
        raise ConfigurationError(
            f"{DESCRIPTOR_FILENAME} asciidoc.attributes must be a mapping", location=location
        )

    return ComponentDescriptor(
        name=name,
        version=_version_value(data, refname, location),
        display_version=_as_optional_str(data, "display_version", location),
        title=_as_optional_str(data, "title", location),
        prerelease=prerelease,
        start_page=_as_optional_str(data, "start_page", location),
        nav=_as_str_tuple(data, "nav", location),
        asciidoc_attributes=dict(attributes or {}),
        files=_as_str_tuple(data, "files", location),
        data=data,
    )
