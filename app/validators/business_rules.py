"""
app/validators/business_rules.py

Advisory and integrity checks that run after schema validation.

Only columns that passed schema validation are inspected. Every finding is a
warning except an image URL the server reports as unreachable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from app.config import DestinationImportSettings, get_destination_import_settings
from app.connectors.image_probe import ImageProbe, ImageProbeError
from app.domain.destination_import import Severity, ValidationIssue
from app.validators.destination_schema import SchemaValidationOutcome

logger = logging.getLogger(__name__)

_BYTES_PER_MB = 1024 * 1024


@dataclass
class BusinessRuleFindings:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)


class DestinationBusinessRuleValidator:
    """
    Runs image accessibility, tag hygiene and popularity checks.
    """

    def __init__(
        self,
        *,
        image_probe: ImageProbe,
        settings: DestinationImportSettings | None = None,
    ) -> None:
        self._image_probe = image_probe
        self._settings = settings or get_destination_import_settings()

    def validate(self, outcome: SchemaValidationOutcome) -> BusinessRuleFindings:
        findings = BusinessRuleFindings()
        row = outcome.row_number

        if outcome.passed("image_url"):
            self._check_image(row=row, url=outcome.parsed["image_url"], findings=findings)

        if outcome.passed("mood_tags"):
            tag_count = len(outcome.parsed["mood_tags"])
            if tag_count > self._settings.recommended_mood_tags:
                findings.warnings.append(
                    self._warning(
                        row=row,
                        column="mood_tags",
                        message=(
                            "Too many mood tags "
                            f"(recommended at most {self._settings.recommended_mood_tags})."
                        ),
                        value=tag_count,
                    )
                )

        if outcome.passed("instagram_score"):
            score = outcome.parsed["instagram_score"]
            if score < self._settings.low_score_threshold:
                findings.warnings.append(
                    self._warning(
                        row=row,
                        column="instagram_score",
                        message="Low Instagram score; destination may need curator review.",
                        value=score,
                    )
                )

        return findings

    def _check_image(self, *, row: int, url: str, findings: BusinessRuleFindings) -> None:
        try:
            result = self._image_probe.probe(url)
        except ImageProbeError as exc:
            findings.warnings.append(
                self._warning(
                    row=row,
                    column="image_url",
                    message=f"Image accessibility could not be verified: {exc}",
                    value=url,
                )
            )
            return
        except Exception as exc:  # noqa: BLE001
            logger.warning("Image probe raised unexpectedly row=%s url=%s error=%r", row, url, exc)
            findings.warnings.append(
                self._warning(
                    row=row,
                    column="image_url",
                    message="Image accessibility could not be verified.",
                    value=url,
                )
            )
            return

        if not result.is_accessible:
            reason = f" ({result.error})" if result.error else ""
            findings.errors.append(
                ValidationIssue(
                    row=row,
                    field="image_url",
                    message=f"Image URL is not accessible{reason}.",
                    value=url,
                    severity=Severity.ERROR,
                )
            )
            return

        if not result.is_supported_image:
            findings.warnings.append(
                self._warning(
                    row=row,
                    column="image_url",
                    message=f"Unsupported image content type: {result.content_type}.",
                    value=url,
                )
            )

        if result.size_bytes is not None and result.size_bytes > self._settings.image_max_size_bytes:
            limit_mb = self._settings.image_max_size_bytes / _BYTES_PER_MB
            findings.warnings.append(
                self._warning(
                    row=row,
                    column="image_url",
                    message=f"Image is larger than recommended (< {limit_mb:g}MB).",
                    value=f"{result.size_bytes / _BYTES_PER_MB:.1f}MB",
                )
            )

    @staticmethod
    def _warning(*, row: int, column: str, message: str, value: object) -> ValidationIssue:
        return ValidationIssue(
            row=row,
            field=column,
            message=message,
            value=value,
            severity=Severity.WARNING,
        )
