from typing import Optional


class ClinicDeskError(Exception):
    pass


class FetchError(ClinicDeskError):
    """A snapshot load failed. The previous collection is kept."""


class MalformedEvent(ClinicDeskError):
    """A change notification could not be understood and was dropped."""


class RemoteStoreError(ClinicDeskError):
    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class StorageError(ClinicDeskError):
    pass


class ObjectTooLarge(StorageError):
    pass


class ImageRejected(ClinicDeskError):
    pass
