"""Version and image identity computation.

Common entrypoints:

- `pile.framework.version`: `VersionResolver` / `VersionRecord`
- `pile.framework.template`: version template parsing and rendering
- `pile.framework.project`: project descriptors, default inheritance, `load_project`
- `pile.framework.identity`: the process-wide operator identity cache
"""
