"""
Metadata Retrieval Atomic Actions.

Retrieves metadata from an org through a package.xml manifest. The
manifest can be an existing file, or it is generated on the fly from a
list of metadata types or from a plain-text metadata file and removed
once the retrieval is done.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from sfdeploy.actions.base import ActionResult, AtomicAction
from sfdeploy.manifest.package_xml import DEFAULT_API_VERSION, ManifestError, PackageManifest
from sfdeploy.sf_cli.client import SalesforceCLI


class RetrieveActions:
    """
    Collection of atomic actions for metadata retrieval.

    Usage::

        retriever = RetrieveActions(SalesforceCLI())
        retriever.retrieve_types("CustomObject,ApexClass", alias="my-org")
        retriever.retrieve_file("agentforce-metadata.txt", alias="my-org")
    """

    def __init__(self, cli: SalesforceCLI, api_version: str = DEFAULT_API_VERSION) -> None:
        self.cli = cli
        self.api_version = api_version

    def retrieve_manifest(
        self,
        manifest_path: str | Path,
        alias: str,
        wait: int = 10,
        output_dir: Optional[str | Path] = None,
    ) -> ActionResult:
        """Retrieve using an existing package.xml."""
        return _RetrieveAction(self.cli).run(
            manifest_path=Path(manifest_path), alias=alias, wait=wait, output_dir=output_dir
        )

    def retrieve(
        self,
        manifest: PackageManifest,
        alias: str,
        wait: int = 10,
        output_dir: Optional[str | Path] = None,
    ) -> ActionResult:
        """Retrieve using an in-memory manifest written to a temporary file."""
        return _RetrieveAction(self.cli).run(
            manifest=manifest, alias=alias, wait=wait, output_dir=output_dir
        )

    def retrieve_types(
        self,
        metadata_types: str,
        alias: str,
        wait: int = 10,
        output_dir: Optional[str | Path] = None,
    ) -> ActionResult:
        """Retrieve every member of the given comma-separated types."""
        logger.info("Retrieving metadata by types...")
        manifest = PackageManifest.from_metadata_types(metadata_types, version=self.api_version)
        return self.retrieve(manifest, alias=alias, wait=wait, output_dir=output_dir)

    def retrieve_file(
        self,
        metadata_file: str | Path,
        alias: str,
        wait: int = 10,
        output_dir: Optional[str | Path] = None,
    ) -> ActionResult:
        """Retrieve the types and members listed in a metadata file."""
        return _RetrieveAction(self.cli).run(
            metadata_file=Path(metadata_file),
            api_version=self.api_version,
            alias=alias,
            wait=wait,
            output_dir=output_dir,
        )

    def list_metadata_types(self, alias: str) -> ActionResult:
        """List metadata types available in the org; data is a list of names."""
        return _ListMetadataTypesAction(self.cli).run(alias=alias)


class _RetrieveAction(AtomicAction):
    """Atomic action: retrieve metadata for a manifest."""

    def __init__(self, cli: SalesforceCLI) -> None:
        super().__init__(name="retrieve_metadata")
        self.cli = cli
        self._manifest: Optional[PackageManifest] = None
        self._temp_manifest: Optional[Path] = None

    def _validate(self, **kwargs: Any) -> None:
        manifest: Optional[PackageManifest] = kwargs.get("manifest")
        manifest_path: Optional[Path] = kwargs.get("manifest_path")
        if kwargs.get("metadata_file") is not None:
            manifest = PackageManifest.from_metadata_file(
                kwargs["metadata_file"], version=kwargs.get("api_version", DEFAULT_API_VERSION)
            )
            self._manifest = manifest
        if manifest is not None and manifest.is_empty:
            raise ManifestError("No metadata types to retrieve")
        if manifest is None and (manifest_path is None or not manifest_path.is_file()):
            raise ManifestError(f"Manifest file not found: {manifest_path}")

    def _execute(self, **kwargs: Any) -> Dict[str, Any]:
        manifest: Optional[PackageManifest] = kwargs.get("manifest")
        if manifest is None:
            manifest = self._manifest
        manifest_path: Optional[Path] = kwargs.get("manifest_path")
        alias = kwargs["alias"]
        output_dir = kwargs.get("output_dir")

        if manifest is not None:
            fd, name = tempfile.mkstemp(prefix="package-", suffix=".xml")
            os.close(fd)
            self._temp_manifest = manifest_path = manifest.write(name)
            logger.debug(f"Created temporary manifest: {manifest_path}")

        logger.info(f"Retrieving metadata using manifest: {manifest_path}")
        logger.debug(f"Manifest contents:\n{Path(manifest_path).read_text(encoding='utf-8')}")
        if output_dir:
            Path(output_dir).mkdir(parents=True, exist_ok=True)

        logger.info("Retrieving metadata (this may take a few minutes)...")
        result = self.cli.retrieve(
            manifest_path, alias=alias, wait=kwargs.get("wait", 10), output_dir=output_dir
        )
        files = result.get("files", []) if isinstance(result, dict) else []
        logger.success("Metadata retrieved successfully!")
        if output_dir:
            logger.info(f"Output directory: {output_dir}")
        return {"manifest": str(manifest_path), "file_count": len(files)}

    def _cleanup(self, **kwargs: Any) -> None:
        if self._temp_manifest is not None:
            self._temp_manifest.unlink(missing_ok=True)
            self._temp_manifest = None


class _ListMetadataTypesAction(AtomicAction):
    """Atomic action: list the org's metadata types."""

    def __init__(self, cli: SalesforceCLI) -> None:
        super().__init__(name="list_metadata_types")
        self.cli = cli

    def _execute(self, **kwargs: Any) -> List[str]:
        logger.info("Fetching metadata types from org...")
        names = sorted(
            entry.get("xmlName", "") for entry in self.cli.list_metadata_types(kwargs["alias"])
        )
        names = [name for name in names if name]
        for name in names:
            logger.info(f"  {name}")
        return names
