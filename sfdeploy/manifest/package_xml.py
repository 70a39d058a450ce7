"""
Package Manifest Module.

Builds, parses and writes Salesforce ``package.xml`` manifests:

    <Package xmlns="http://soap.sforce.com/2006/04/metadata">
        <types>
            <members>*</members>
            <name>ApexClass</name>
        </types>
        <version>60.0</version>
    </Package>

Manifests can be created from a comma-separated list of metadata types
(wildcard members) or from a plain-text metadata file, where a line that
looks like a type name (``ApexClass``) opens a section and the following
lines are its members.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List

from loguru import logger

METADATA_NAMESPACE = "http://soap.sforce.com/2006/04/metadata"
DEFAULT_API_VERSION = "60.0"
WILDCARD = "*"

TYPE_LINE = re.compile(r"^[A-Z][a-zA-Z]*$")


class ManifestError(Exception):
    """Raised when a manifest or metadata file cannot be read."""


def _tag(name: str) -> str:
    return f"{{{METADATA_NAMESPACE}}}{name}"


@dataclass
class PackageManifest:
    """
    In-memory package.xml.

    Attributes:
        types: Metadata type name -> member names, in insertion order.
        version: Metadata API version.
    """

    types: Dict[str, List[str]] = field(default_factory=dict)
    version: str = DEFAULT_API_VERSION

    def __len__(self) -> int:
        return len(self.types)

    def __contains__(self, type_name: str) -> bool:
        return type_name in self.types

    @property
    def is_empty(self) -> bool:
        return not self.types

    def add(self, type_name: str, members: Iterable[str]) -> None:
        """Append members to a type, creating it if needed."""
        existing = self.types.setdefault(type_name, [])
        for member in members:
            if member not in existing:
                existing.append(member)

    def with_members(self, type_name: str, members: Iterable[str]) -> "PackageManifest":
        """
        Return a copy with one type's members replaced.

        An empty member list drops the type entirely.
        """
        members = [m for m in members if m]
        types = {name: list(values) for name, values in self.types.items()}
        if members:
            types[type_name] = members
        else:
            types.pop(type_name, None)
        return PackageManifest(types=types, version=self.version)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_metadata_types(
        cls, metadata_types: str | Iterable[str], version: str = DEFAULT_API_VERSION
    ) -> "PackageManifest":
        """
        Build a wildcard manifest from type names.

        Args:
            metadata_types: "CustomObject, ApexClass" or an iterable of names.
        """
        if isinstance(metadata_types, str):
            metadata_types = metadata_types.split(",")

        manifest = cls(version=version)
        for type_name in metadata_types:
            type_name = type_name.strip()
            if type_name:
                manifest.add(type_name, [WILDCARD])
                logger.info(f"  Adding metadata type: {type_name}")
        return manifest

    @classmethod
    def parse_metadata_file(
        cls, text: str, version: str = DEFAULT_API_VERSION
    ) -> "PackageManifest":
        """
        Parse the plain-text metadata list format.

        Blank lines and ``#`` comments are ignored. Types without members
        are omitted; members that appear before any type are skipped.
        """
        manifest = cls(version=version)
        current_type = ""
        members: List[str] = []

        def close() -> None:
            if current_type and members:
                manifest.add(current_type, members)

        for raw in text.splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue

            if TYPE_LINE.match(line):
                close()
                current_type, members = line, []
                logger.info(f"  Found metadata type: {current_type}")
            elif current_type:
                members.append(line)
                logger.debug(f"    Adding member: {line}")
            else:
                logger.warning(f"Skipping line (no type specified): {line}")

        close()
        return manifest

    @classmethod
    def from_metadata_file(
        cls, path: str | Path, version: str = DEFAULT_API_VERSION
    ) -> "PackageManifest":
        """
        Raises:
            ManifestError: If the file does not exist or cannot be read.
        """
        path = Path(path)
        if not path.is_file():
            raise ManifestError(f"Metadata file not found: {path}")
        logger.info(f"Reading metadata from file: {path}")
        try:
            return cls.parse_metadata_file(path.read_text(encoding="utf-8"), version)
        except OSError as e:
            raise ManifestError(f"Failed to read metadata file {path}: {e}") from e

    @classmethod
    def from_xml(cls, path: str | Path) -> "PackageManifest":
        """
        Read an existing package.xml.

        Raises:
            ManifestError: If the file is missing or not a valid manifest.
        """
        path = Path(path)
        if not path.is_file():
            raise ManifestError(f"Manifest file not found: {path}")
        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as e:
            raise ManifestError(f"Failed to parse manifest {path}: {e}") from e

        def find_all(node: ET.Element, name: str) -> List[ET.Element]:
            return node.findall(_tag(name)) or node.findall(name)

        def text_of(node: ET.Element, name: str) -> str:
            found = find_all(node, name)
            return (found[0].text or "").strip() if found else ""

        manifest = cls(version=text_of(root, "version") or DEFAULT_API_VERSION)
        for types_node in find_all(root, "types"):
            type_name = text_of(types_node, "name")
            if not type_name:
                continue
            manifest.add(
                type_name,
                [(m.text or "").strip() for m in find_all(types_node, "members")],
            )
        return manifest

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def to_element(self) -> ET.Element:
        """Build the XML element tree."""
        root = ET.Element(_tag("Package"))
        for type_name, members in self.types.items():
            types_node = ET.SubElement(root, _tag("types"))
            for member in members:
                ET.SubElement(types_node, _tag("members")).text = member
            ET.SubElement(types_node, _tag("name")).text = type_name
        ET.SubElement(root, _tag("version")).text = self.version
        return root

    def to_xml(self) -> str:
        """Render the manifest as an XML document string."""
        ET.register_namespace("", METADATA_NAMESPACE)
        tree = ET.ElementTree(self.to_element())
        ET.indent(tree, space="    ")
        body = ET.tostring(tree.getroot(), encoding="unicode")
        return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'

    def write(self, path: str | Path) -> Path:
        """Write the manifest to disk, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_xml(), encoding="utf-8")
        logger.debug(f"Manifest written: {path} ({len(self.types)} types)")
        return path
