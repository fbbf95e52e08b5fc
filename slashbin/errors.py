class SlashbinError(Exception):
    kind = "Error"
    message = "Server error"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.message)
        self.detail = detail or self.message

class AdmissionDenied(SlashbinError):
    kind = "AdmissionDenied"
    message = "Rate limit exceeded. Try again later."

class SizeLimitExceeded(SlashbinError):
    kind = "SizeLimitExceeded"
    message = "Data too large"

    def __init__(self, limit: int, detail: str | None = None):
        super().__init__(detail or f"{self.message} (limit {limit} bytes)")
        self.limit = limit

class IdSpaceExhausted(SlashbinError):
    kind = "IdSpaceExhausted"
    message = "Could not allocate an identifier"

class CorruptObject(SlashbinError):
    kind = "CorruptObject"
    message = "Stored object is damaged"

class NotFoundOrExpired(SlashbinError):
    """Raised for ids that never existed and for expired ones alike."""
    kind = "NotFoundOrExpired"
    message = "File or collection not found or has expired."

class IOFailure(SlashbinError):
    kind = "IOFailure"
    message = "Storage error"
