"""Release tooling for Cargo workspaces: versions, changelogs, manifests, registries and git."""

__version__ = "0.1.0"