"""Reconciles authored risk tracking entries with the generated risks."""

import logging
import re

from .model import ParsedModel


logger = logging.getLogger(__name__)

WILDCARD = '*'


class RiskTrackingError(Exception):
    """Raised when a tracking entry references no generated risk."""
    pass


def is_wildcard(key: str) -> bool:
    return WILDCARD in key


def wildcard_pattern(key: str) -> re.Pattern:
    """Compile a tracking key; each ``*`` stands for one ``@``-delimited part."""
    escaped = re.escape(key.strip()).replace(re.escape(WILDCARD), '[^@]+')
    return re.compile(escaped, re.IGNORECASE)


def _orphaned(message: str, ignore_orphaned: bool) -> None:
    if not ignore_orphaned:
        raise RiskTrackingError(message)
    logger.warning(message)


def apply_wildcard_risk_tracking(model: ParsedModel, ignore_orphaned: bool = False) -> list[str]:
    """Expand wildcard entries into concrete entries for the risks they match.

    Risks that already carry a direct entry keep it. Returns the synthetic ids
    that received an entry from a wildcard.
    """
    expanded: list[str] = []
    wildcard_keys = sorted(key for key in model.risk_tracking if is_wildcard(key))
    risks = sorted(model.generated_risks_by_synthetic_id.values(), key=lambda risk: risk.synthetic_id)
    for key in wildcard_keys:
        tracking = model.risk_tracking[key]
        pattern = wildcard_pattern(key)
        logger.info("Applying wildcard risk tracking for risk id: %s", key)
        found = False
        for risk in risks:
            if not pattern.match(risk.synthetic_id):
                continue
            found = True
            if model.get_risk_tracking(risk) is not None:
                continue
            model.risk_tracking[risk.synthetic_id] = tracking.model_copy(update={'synthetic_risk_id': risk.synthetic_id})
            expanded.append(risk.synthetic_id)
            logger.debug("  => %s", risk.synthetic_id)
        if not found:
            _orphaned(f"wildcard risk tracking does not match any risk id: {key}", ignore_orphaned)
    return expanded


def check_risk_tracking(model: ParsedModel, ignore_orphaned: bool = False) -> None:
    """Every literal tracking entry must name a generated risk."""
    for key in sorted(model.risk_tracking):
        if is_wildcard(key):
            continue
        tracking = model.risk_tracking[key]
        if tracking.synthetic_risk_id.lower() not in model.generated_risks_by_synthetic_id:
            _orphaned(
                f"risk tracking references unknown risk (risk id not found): {tracking.synthetic_risk_id}",
                ignore_orphaned,
            )
