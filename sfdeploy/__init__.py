"""
Salesforce Deployment Toolkit - Core Package.

This package contains the logic for:
- Salesforce CLI: org login, metadata retrieve/deploy, package lifecycle.
- GitHub Actions: workflow dispatch, run monitoring, device-login scraping.
- Configuration: project settings, .env credentials and schema validation.
- Actions: atomic deployment steps used by the command-line entry points.
- Portal: OAuth implicit-flow page that relays the org token to a workflow.
"""

__version__ = "0.1.0"
