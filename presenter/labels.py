"""Localized (Thai) labels for the verdict table, CSV export and UI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class TableLabels:
    condition: str = "เงื่อนไขตรวจสอบ"
    calculation: str = "สมการที่คำนวณ"
    actual_result: str = "ผลลัพธ์ที่ได้"
    expected_value: str = "ค่าที่ควรเป็น"
    status: str = "สถานะ"
    reason: str = "เหตุผล"
    passed: str = "ผ่าน"
    failed: str = "ไม่ผ่าน"
    title: str = "ผลการตรวจสอบ"
    print_button: str = "พิมพ์"
    disclaimer: str = "ผลลัพธ์จาก AI อาจคลาดเคลื่อนได้ โปรดตรวจสอบอีกครั้งก่อนนำไปใช้งาน"

    def csv_header(self) -> Tuple[str, ...]:
        return (
            self.condition,
            self.calculation,
            self.actual_result,
            self.expected_value,
            self.status,
            self.reason,
        )

    def status_token(self, status: bool) -> str:
        return self.passed if status else self.failed


THAI_LABELS = TableLabels()

ENGLISH_LABELS = TableLabels(
    condition="Condition",
    calculation="Calculation",
    actual_result="Actual result",
    expected_value="Expected value",
    status="Status",
    reason="Reason",
    passed="Pass",
    failed="Fail",
    title="Verification results",
    print_button="Print",
    disclaimer="AI output may be inaccurate. Please double check the results.",
)


def labels_for(language: str) -> TableLabels:
    return ENGLISH_LABELS if language.lower().startswith("en") else THAI_LABELS
