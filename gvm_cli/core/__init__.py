"""
Core application engine for installing and switching versions.

This package contains the primary logic. The `VersionManager` drives the
install pipeline and owns the state file, delegating shim maintenance to the
`ActivationManager` and PATH setup to the `ShellIntegrator`.
"""
