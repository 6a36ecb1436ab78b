class AiDuxError(Exception):
    pass

class RetryableError(AiDuxError):
    """Temporary: network timeout, 429/5xx from upstream, transient GCS/Firestore errors."""
    pass

class PermanentError(AiDuxError):
    """Won't improve with retry: bad input, record not found, schema mismatch."""
    pass

class AuthorizationError(PermanentError):
    """Caller is not allowed to act on this patient or record."""
    pass

class ConsentRequiredError(PermanentError):
    pass

class ConsentDeclinedError(PermanentError):
    """Patient declined AI-assisted documentation. Hard block."""
    pass

class InsufficientTokensError(PermanentError):
    pass

class SpendCapExceededError(PermanentError):
    pass
