"""
Manifest Module.

Builds and parses Salesforce package.xml manifests from metadata type
lists, plain-text metadata files and existing XML.
"""

from sfdeploy.manifest.package_xml import ManifestError, PackageManifest

__all__ = ["ManifestError", "PackageManifest"]
