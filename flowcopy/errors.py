"""
Import/export errors.

Only the tabular codec and the import reconciler raise these. The ordering,
grouping and hashing stages are total and never fail.
"""


class FlowCopyError(Exception):
    """Base class for errors reported back to the author."""


class MalformedDocumentError(FlowCopyError):
    """The file claims to be XML but does not parse."""


class UnrecognizedFormatError(FlowCopyError):
    """The file is neither CSV nor XML."""

    def __init__(self, message: str = 'Unsupported file. Please import CSV or XML.'):
        super().__init__(message)


class NoMatchingRowsError(FlowCopyError):
    """The file parsed, but no row belongs to the active project."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"No rows matched active project {project_id}.")
