"""
Core application engine for managing installations.

The `InstallationManager` is the facade the rest of the application talks to.
It delegates downloads to the `DownloadCoordinator`, which runs each one
through the `ExtractionPipeline`, and leaves path decisions to `path_policy`.
"""
