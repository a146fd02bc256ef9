"""Error taxonomy shared by the update pipeline stages."""

from __future__ import annotations

from typing import Any, Mapping


class NFTUpdaterError(RuntimeError):
    """Base class for failures raised by the updater pipeline."""


class InvalidKeyEncoding(NFTUpdaterError):
    """Raised when a private key looks like a known encoding but fails to decode."""


class RemoteRequestFailed(NFTUpdaterError):
    """Raised when the update API is unreachable or rejects the request.

    ``status_code``, ``body`` and ``headers`` mirror whatever the HTTP
    response provided; all three are ``None`` for transport failures.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers) if headers is not None else None

    def describe(self) -> str:
        """Return a multi-line report suitable for CLI output."""

        lines = [str(self)]
        if self.status_code is not None:
            lines.append(f"status: {self.status_code}")
        if self.body is not None:
            lines.append(f"body: {self.body}")
        if self.headers:
            lines.append(f"headers: {self.headers}")
        return "\n".join(lines)


class ResponseShapeError(RemoteRequestFailed):
    """Raised when a successful response does not carry an encoded transaction."""


class MalformedTransaction(NFTUpdaterError):
    """Raised when the encoded transaction cannot be deserialized."""


class SigningOrSubmissionFailed(NFTUpdaterError):
    """Raised when signing fails or the RPC node rejects the transaction."""


class BatchFileError(NFTUpdaterError):
    """Raised when a batch file cannot be read or has the wrong shape."""


class FieldValueError(NFTUpdaterError):
    """Raised when an update field cannot be turned into a form part locally."""
