class ReceiptbookError(Exception):
    """Base class for every failure raised by the ingestion pipeline."""


# --- Input ---

class InputError(ReceiptbookError):
    pass


class DuplicateUploadError(InputError):
    def __init__(self, file_hash: str):
        self.file_hash = file_hash
        super().__init__(f"File {file_hash} was already submitted for analysis")


# --- Remote service ---

class RemoteServiceError(ReceiptbookError):
    pass


class RemoteRejectedError(RemoteServiceError):
    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Analysis API responded with status code {status_code}")


# --- Decoding / extraction ---

class DecodeError(ReceiptbookError):
    pass


class ExtractionError(ReceiptbookError):
    pass


class MissingFieldError(ExtractionError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing {field} field")


class TimestampError(ExtractionError):
    pass


class InvalidTimestampError(TimestampError):
    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid date string: {value!r}")


class AmbiguousLocalTimeError(TimestampError):
    def __init__(self, value, zone: str):
        self.value = value
        super().__init__(f"Local time {value} has no unique instant in {zone}")


# --- Storage ---

class PersistenceError(ReceiptbookError):
    pass


class DuplicateReceiptError(PersistenceError):
    def __init__(self, file_hash: str):
        self.file_hash = file_hash
        super().__init__(f"A receipt for file {file_hash} is already stored")


class CacheError(ReceiptbookError):
    pass
