"""
Pydantic request models -- what clients send to the war room API.

Shapes only; limits that depend on configuration (problem length, file count)
are enforced by the SessionManager so HTTP, WebSocket and CLI share them.
"""

from pydantic import BaseModel, Field

from ...orchestration.models import FileRef


class FileAttachment(BaseModel):
    """An uploaded file whose text the caller has already extracted."""

    name: str = Field(..., min_length=1, max_length=255)
    size: int = Field(0, ge=0)
    mime_type: str = "application/octet-stream"
    text: str | None = Field(None, description="Extracted text (None for binary files)")

    def to_file_ref(self) -> FileRef:
        return FileRef(name=self.name, size=self.size, mime_type=self.mime_type, text=self.text)


class CreateSessionRequest(BaseModel):
    """Start a deliberation on a problem statement."""

    problem: str = Field(..., description="Problem statement or research question")
    files: list[FileAttachment] = Field(default_factory=list)


class EscalationAnswerRequest(BaseModel):
    """The human's answer to an agent's question."""

    answer: str


class HumanMessageRequest(BaseModel):
    """A free-form human interjection (a follow-up question after completion)."""

    content: str
