"""Typed exception hierarchy for sdkscope."""


class SdkScopeError(Exception):
    """Base exception for all sdkscope errors."""

    pass


class InputError(SdkScopeError):
    """Raised when the caller supplies a missing or invalid input."""

    pass


class ToolNotFoundError(SdkScopeError):
    """Raised when a required external tool is not installed."""

    def __init__(self, tool: str, install_hint: str | None = None):
        self.tool = tool
        self.install_hint = install_hint
        message = f"Required tool not found: {tool}"
        if install_hint:
            message += f"\nInstall: {install_hint}"
        super().__init__(message)


class ProcessError(SdkScopeError):
    """Raised when a subprocess command fails."""

    def __init__(self, command: list[str], returncode: int, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        cmd_str = " ".join(command)
        super().__init__(f"Command failed (exit {returncode}): {cmd_str}\n{stderr}")


class MergeError(SdkScopeError):
    """Raised when a split package container cannot be reconstructed."""

    pass


class InvalidContainerError(MergeError):
    """Raised when the split container is missing or not a valid archive."""

    pass


class NoBaseArchiveFoundError(MergeError):
    """Raised when a split container holds no base APK."""

    def __init__(self, container: str, entries: list[str]):
        self.container = container
        self.entries = entries
        listing = ", ".join(entries) if entries else "no APK entries"
        super().__init__(f"No base APK found in {container} ({listing})")


class SplitPackageExtractionError(MergeError):
    """Raised when the container or one of its split APKs cannot be extracted."""

    pass


class BasePackageExtractionError(MergeError):
    """Raised when the base APK cannot be extracted into the staging area."""

    pass


class RepackagingError(MergeError):
    """Raised when the merged staging directory cannot be recompressed."""

    pass


class DecompilationError(SdkScopeError):
    """Raised when apktool fails or produces no manifest."""

    pass


class AnalysisError(SdkScopeError):
    """Raised when a package cannot be read for analysis."""

    pass


class ReportWriteError(SdkScopeError):
    """Raised when the report file cannot be written to the output directory."""

    pass
