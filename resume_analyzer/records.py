"""Analysis record model and its JSON wire form."""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

RECORD_KEY_PREFIX = "resume:"


def record_key(record_id: str) -> str:
    return f"{RECORD_KEY_PREFIX}{record_id}"


@dataclass(frozen=True)
class AnalysisRecord:
    """One résumé analysis request and, once generated, its feedback."""

    id: str
    resume_path: str
    image_path: str
    company_name: str
    job_title: str
    job_description: str
    feedback: Optional[Dict[str, Any]] = None

    @property
    def key(self) -> str:
        return record_key(self.id)

    def with_feedback(self, feedback: Dict[str, Any]) -> "AnalysisRecord":
        """Return a copy carrying ``feedback``.

        Feedback is attached once, and only to a record whose uploads completed.
        """
        if self.feedback is not None:
            raise ValueError(f"Record '{self.id}' already has feedback")
        if not self.resume_path or not self.image_path:
            raise ValueError(f"Record '{self.id}' is missing an uploaded file path")
        return replace(self, feedback=feedback)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "resumePath": self.resume_path,
            "imagePath": self.image_path,
            "companyName": self.company_name,
            "jobTitle": self.job_title,
            "jobDescription": self.job_description,
            "feedback": self.feedback,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisRecord":
        return cls(
            id=data["id"],
            resume_path=data["resumePath"],
            image_path=data["imagePath"],
            company_name=data["companyName"],
            job_title=data["jobTitle"],
            job_description=data["jobDescription"],
            feedback=data.get("feedback"),
        )

    @classmethod
    def from_json(cls, raw: str) -> "AnalysisRecord":
        return cls.from_dict(json.loads(raw))
