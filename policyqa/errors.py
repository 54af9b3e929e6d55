"""
PolicyQA Error Taxonomy

Every external-call failure is caught at its component boundary and
re-raised as one of these types. The API layer renders them as
``{"error": ..., "details": ...}`` with the attached status code.
"""


class PolicyQAError(Exception):
    """Base class for pipeline failures."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, details: str = "") -> None:
        super().__init__(details or self.error)
        self.details = details or self.error

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error, "details": self.details}


class UnsupportedFormat(PolicyQAError):
    """File type is neither PDF nor DOCX. The user must convert the file."""

    status_code = 400
    error = "Unsupported file type"


class ExtractionFailure(PolicyQAError):
    """Parser error, extraction timeout, or empty extracted text."""

    error = "Text extraction failed"


class EmbeddingFailure(PolicyQAError):
    """Embedding provider error. Fatal on the query path only."""

    error = "Embedding generation failed"


class InvalidProviderResponse(EmbeddingFailure):
    """Provider returned a response that does not match the request."""

    error = "Invalid response from embedding provider"


class RetrievalFailure(PolicyQAError):
    """Dense and lexical retrieval both failed or came back empty."""

    error = "Failed to retrieve relevant context"


class NoRelevantResults(RetrievalFailure):
    """Both retrieval paths succeeded but matched nothing."""

    status_code = 200
    error = "No relevant results"


class CompletionFailure(PolicyQAError):
    """Chat-completion provider error."""

    error = "Answer generation failed"


class StorageFailure(PolicyQAError):
    """Chunk table or blob storage operation failed."""

    error = "Storage operation failed"

    def __init__(self, details: str = "", phase: str | None = None) -> None:
        super().__init__(details)
        self.phase = phase


class DocumentNotFound(PolicyQAError):
    status_code = 404
    error = "Document not found"


class AuthFailure(PolicyQAError):
    status_code = 401
    error = "Authentication failed"


class PermissionDenied(PolicyQAError):
    status_code = 403
    error = "Forbidden: Insufficient permissions"
