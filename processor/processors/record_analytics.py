"""Merge-upsert of adaptation analytics records."""

import json
from typing import Optional

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.exc import IntegrityError

from processor.processors.base import BaseProcessor
from processor.queue_manager import utcnow

# Columns a record_analytics job may set
ANALYTICS_FIELDS = (
    "was_adapted",
    "adaptation_success",
    "fallback_used",
    "fallback_reason",
    "adaptation_time_ms",
    "ai_help_used",
    "ai_help_accepted",
    "response_completed",
    "response_length",
    "time_to_complete_seconds",
    "adaptation_context",
)


class RecordAnalyticsProcessor(BaseProcessor):
    """Writes one analytics record keyed by (assessment, question).

    Only the fields carried in the payload change; everything else recorded
    earlier for the same question is kept.
    """

    job_type = "record_analytics"

    async def process(
        self,
        assessment_id: Optional[int] = None,
        payload: Optional[dict] = None,
    ) -> None:
        payload = payload or {}
        assessment_id = payload.get("assessment_id", assessment_id)
        question_number = payload.get("question_number")
        if assessment_id is None or question_number is None:
            raise ValueError("assessment_id and question_number are required")

        fields = self._clean_fields(payload.get("fields") or {})
        if not fields:
            self.logger.debug("No analytics fields to record", assessment_id=assessment_id)
            return

        if not self._update(assessment_id, question_number, fields):
            try:
                self._insert(assessment_id, question_number, fields)
            except IntegrityError:
                # A concurrent job created the row first
                self.db.rollback()
                self._update(assessment_id, question_number, fields)

        self.db.commit()
        self.logger.info(
            "Analytics recorded",
            assessment_id=assessment_id,
            question_number=question_number,
            fields=sorted(fields),
        )

    def _clean_fields(self, fields: dict) -> dict:
        unknown = set(fields) - set(ANALYTICS_FIELDS)
        if unknown:
            self.logger.warning("Ignoring unknown analytics fields", fields=sorted(unknown))

        cleaned = {name: value for name, value in fields.items() if name in ANALYTICS_FIELDS}
        if "adaptation_context" in cleaned and cleaned["adaptation_context"] is not None:
            cleaned["adaptation_context"] = json.dumps(cleaned["adaptation_context"], ensure_ascii=False)
        return cleaned

    def _update(self, assessment_id: int, question_number: int, fields: dict) -> bool:
        assignments = ", ".join(f"{name} = :{name}" for name in fields)
        query = text(f"""
            UPDATE adaptation_analytics
            SET {assignments}, updated_at = :now
            WHERE assessment_id = :assessment_id AND question_number = :question_number
        """).bindparams(bindparam("now", type_=DateTime()))
        result = self.db.execute(
            query,
            {**fields, "now": utcnow(), "assessment_id": assessment_id, "question_number": question_number},
        )
        return result.rowcount > 0

    def _insert(self, assessment_id: int, question_number: int, fields: dict) -> None:
        columns = ", ".join(fields)
        values = ", ".join(f":{name}" for name in fields)
        query = text(f"""
            INSERT INTO adaptation_analytics
                (assessment_id, question_number, {columns}, created_at)
            VALUES (:assessment_id, :question_number, {values}, :now)
        """).bindparams(bindparam("now", type_=DateTime()))
        self.db.execute(
            query,
            {**fields, "now": utcnow(), "assessment_id": assessment_id, "question_number": question_number},
        )
