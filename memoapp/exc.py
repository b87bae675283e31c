class DoesNotExist(Exception):  # noqa: N818
    """Exception raised when a resource does not exist."""

    def __init__(self, resource_type: str, resource_id: int | str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f'{resource_type} with ID "{resource_id!s}" does not exist')


class DuplicateTag(Exception):  # noqa: N818
    """Exception raised when a rename would reuse a tag name in the same list."""

    def __init__(self, kind: str, tag_name: str):
        self.kind = kind
        self.tag_name = tag_name
        super().__init__(f'A {kind} tagged "{tag_name}" already exists')


class AttachmentNotFound(Exception):  # noqa: N818
    """Exception raised when a marker does not resolve to any attachment."""

    def __init__(self, kind: str, tag_name: str):
        self.kind = kind
        self.tag_name = tag_name
        super().__init__(f'No {kind} attachment matches marker "{tag_name}"')


class RegistryOutOfSync(Exception):  # noqa: N818
    """Exception raised when a resolved index falls outside its attachment list."""

    def __init__(self, kind: str, index: int, size: int):
        self.kind = kind
        self.index = index
        self.size = size
        super().__init__(
            f"Resolved {kind} index {index} is out of range for a list of {size}"
        )


class AttachmentRejected(Exception):  # noqa: N818
    """Exception raised when an upload breaks the attachment limits."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f'Attachment "{name}" rejected: {reason}')


class PersistenceFailure(Exception):  # noqa: N818
    """Exception raised when a read or write against the store fails."""

    def __init__(self, operation: str, error: Exception):
        self.operation = operation
        self.error = error
        super().__init__(f"Persistence failure during {operation}: {error!s}")


class ImportValidationFailure(Exception):  # noqa: N818
    """Exception raised when an import document is malformed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid import document: {reason}")


class StorageQuotaWarning(Exception):  # noqa: N818
    """Exception raised when storage usage crosses a confirmation threshold."""

    def __init__(self, used: int, total: int, percentage: float):
        self.used = used
        self.total = total
        self.percentage = percentage
        super().__init__(
            f"Storage usage is at {percentage:.1f}% ({used} of {total} bytes)"
        )
