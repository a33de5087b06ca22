"""
Error taxonomy shared by the checker, the normalizer and the app shell.

Every MeterCheckError carries a user-facing ``message`` (Thai, like the rest of
the UI) so the app can show it in a banner without further translation.
"""

from __future__ import annotations


class MeterCheckError(Exception):
    """Base class for failures that are shown to the user."""

    default_message = "เกิดข้อผิดพลาดที่ไม่คาดคิด"

    def __init__(self, message: str | None = None, *, detail: str | None = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message if detail is None else f"{self.message} ({detail})")


class InputError(MeterCheckError):
    """The user asked for an analysis without selecting an image."""

    default_message = "กรุณาเลือกรูปภาพก่อนทำการวิเคราะห์"


class ConfigurationError(MeterCheckError):
    """Missing credential or unusable configuration. Never retried."""

    default_message = "ไม่พบ API key กรุณาตั้งค่าตัวแปรสภาพแวดล้อมก่อนใช้งาน"


class TransportError(MeterCheckError):
    """The request to the model provider failed (network, HTTP status, quota...)."""

    default_message = "เกิดข้อผิดพลาดในการเชื่อมต่อกับบริการวิเคราะห์รูปภาพ"


class MalformedResponseError(MeterCheckError):
    """The model answered, but not with JSON matching the output schema."""

    default_message = "ผลลัพธ์จากโมเดลไม่อยู่ในรูปแบบที่กำหนด"


class ImageNormalizationError(MeterCheckError):
    """Base class for image preprocessing failures."""

    default_message = "ไม่สามารถประมวลผลรูปภาพได้"


class ImageReadError(ImageNormalizationError):
    default_message = "ไม่สามารถอ่านไฟล์รูปภาพได้"


class ImageDecodeError(ImageNormalizationError):
    default_message = "ไฟล์ที่เลือกไม่ใช่รูปภาพที่รองรับ"


class ImageEncodeError(ImageNormalizationError):
    default_message = "ไม่สามารถบีบอัดรูปภาพได้"


class StorageError(MeterCheckError):
    """The saved-session file could not be written. In-memory state is unchanged."""

    default_message = "ไม่สามารถบันทึกข้อมูลได้"


class InvalidTransitionError(RuntimeError):
    """Raised by the app shell when an operation is not allowed in the current phase."""
