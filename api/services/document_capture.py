"""
Document Capture — holds identity photos in memory before submission.

Three slots: the document front, the document back (not needed for passports)
and a selfie. Each captured file gets a data-URL preview so the client can
show the picture back to the provider. Nothing here is persisted.
"""

import base64
from dataclasses import dataclass, field, replace

from schemas.identity_verification import DocumentType

FRONT = "document_front"
BACK = "document_back"
SELFIE = "selfie"
SLOTS = (FRONT, BACK, SELFIE)

MAX_FILE_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class CapturedFile:
    content: bytes
    content_type: str = "image/jpeg"
    filename: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def preview(self) -> str:
        """Local preview handle (data URL), same shape a browser FileReader yields."""
        encoded = base64.b64encode(self.content).decode()
        return f"data:{self.content_type};base64,{encoded}"


@dataclass(frozen=True)
class DocumentCapture:
    files: dict[str, CapturedFile] = field(default_factory=dict)

    def capture(
        self,
        slot: str,
        content: bytes,
        content_type: str | None = None,
        filename: str | None = None,
    ) -> "DocumentCapture":
        """Return a capture with `slot` filled (replacing any earlier photo)."""
        if slot not in SLOTS:
            raise ValueError(f"Unknown capture slot: {slot}")
        content_type = content_type or "image/jpeg"
        if not content_type.startswith("image/"):
            raise ValueError(f"{slot} must be an image, got {content_type}")
        if not content:
            raise ValueError(f"{slot} is empty")
        if len(content) > MAX_FILE_BYTES:
            raise ValueError(f"{slot} exceeds {MAX_FILE_BYTES // (1024 * 1024)} MB")

        files = dict(self.files)
        files[slot] = CapturedFile(content=content, content_type=content_type, filename=filename)
        return replace(self, files=files)

    def remove(self, slot: str) -> "DocumentCapture":
        files = {k: v for k, v in self.files.items() if k != slot}
        return replace(self, files=files)

    def get(self, slot: str) -> CapturedFile | None:
        return self.files.get(slot)

    def previews(self) -> dict[str, str]:
        return {slot: f.preview for slot, f in self.files.items()}

    def missing_for(self, document_type: DocumentType) -> list[str]:
        """Slots still required before this capture can be submitted."""
        required = [FRONT, SELFIE]
        if DocumentType(document_type) != DocumentType.PASSPORT:
            required.insert(1, BACK)
        return [slot for slot in required if slot not in self.files]
