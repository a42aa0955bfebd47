"""Anomaly classifier capability used by post-transaction analysis.

The analyzer treats the classifier as opaque: it sends a transaction with
recent history and gets back a verdict. Two implementations ship here:

- ``RulesAnomalyClassifier``: deterministic in-process rules over the
  blacklist, the user's contacts and the submitted history.
- ``HttpAnomalyClassifier``: delegates to a remote service over HTTP.
"""

import math
import re
from typing import Protocol

import httpx
import structlog

from .errors import ClassifierFailure
from .models import ClassificationInput, ClassifierVerdict, TrustStatus
from .similarity import find_similar_contacts
from .stores import BlacklistStore, ContactStore
from .validation import split_identifier

logger = structlog.get_logger()

SCAM_PATTERNS = (
    "cashback",
    "lottery",
    "winner",
    "prize",
    "reward",
    "lucky",
    "free",
    "offer",
    "bonus",
    "refund",
    "govt",
    "scheme",
    "subsidy",
    "official",
    "verify",
)

_REPEATED_CHAR = re.compile(r"(.)\1{2,}")


class AnomalyClassifier(Protocol):
    async def classify(self, payload: ClassificationInput) -> ClassifierVerdict:
        """Raise ClassifierFailure when no verdict can be produced."""
        ...


class RulesAnomalyClassifier:
    """Deterministic scoring over blacklist, contacts and submitted history."""

    confidence = 0.95

    def __init__(self, contacts: ContactStore, blacklist: BlacklistStore) -> None:
        self._contacts = contacts
        self._blacklist = blacklist

    async def classify(self, payload: ClassificationInput) -> ClassifierVerdict:
        identifier = payload.identifier.lower()
        try:
            entry = await self._blacklist.get_entry(identifier)
            contacts = await self._contacts.list_contacts(payload.user_id)
        except Exception as exc:
            raise ClassifierFailure(f"context lookup failed: {exc}") from exc

        if entry is not None:
            return ClassifierVerdict(
                risk_score=100.0,
                is_anomaly=True,
                fraud_category="known_fraud",
                confidence=self.confidence,
                reasons=[
                    f"This payee has been reported as fraudulent "
                    f"({entry.reported_count} reports, severity: {entry.severity.value})"
                ],
            )

        score = 0.0
        reasons: list[str] = []
        category: str | None = None
        is_anomaly = False
        _, handle = split_identifier(identifier)

        match = next((c for c in contacts if c.identifier.lower() == identifier), None)
        if match is not None and match.trust_status == TrustStatus.TRUSTED:
            score -= 30
            reasons.append(f'Recipient "{match.display_name or identifier}" is a trusted contact')
        elif match is not None and match.trust_status == TrustStatus.FLAGGED:
            score += 40
            category = "flagged_contact"
            reasons.append(f'Recipient "{match.display_name or identifier}" was previously flagged')

        payee_trusted = match is not None and match.trust_status == TrustStatus.TRUSTED
        similar = [] if payee_trusted else find_similar_contacts(identifier, contacts)
        if similar:
            score += 30
            category = "impersonation"
            is_anomaly = True
            reasons.append(
                "Payee identifier is suspiciously similar to your contact "
                f"{similar[0].display_name or similar[0].identifier}"
            )

        if any(kw in identifier for kw in SCAM_PATTERNS):
            score += 25
            category = category or "social_engineering"
            reasons.append("Payee identifier contains keywords commonly used in scams")

        if _REPEATED_CHAR.search(handle):
            score += 20
            category = category or "impersonation"
            reasons.append(f'Handle "{handle}" has unusual repeated characters')

        history = payload.history
        if history:
            amounts = [h.amount for h in history]
            avg = sum(amounts) / len(amounts)
            peak = max(amounts)
            stddev = math.sqrt(sum((a - avg) ** 2 for a in amounts) / len(amounts))

            if payload.amount > peak * 2:
                score += 20
                is_anomaly = True
                reasons.append(
                    f"Amount {payload.amount:,.2f} is more than double your highest "
                    f"transaction ({peak:,.2f})"
                )
            elif stddev > 0 and payload.amount > avg + 3 * stddev:
                score += 15
                is_anomaly = True
                reasons.append(
                    f"Amount is unusually high compared to your typical transactions "
                    f"(avg: {avg:,.0f})"
                )

            seen_before = any(h.receiver_identifier.lower() == identifier for h in history)
            if not seen_before and match is None:
                score += 10
                reasons.append("First transaction to this recipient")

            # Tiny probe payments often precede larger fraud
            if payload.amount < 10 and len(history) > 3 and payload.amount < avg * 0.01:
                score += 5
                reasons.append("Very small amount, sometimes used as a test before larger fraud")
        else:
            score += 15
            reasons.append("Limited transaction history")

        score = max(0.0, min(score, 100.0))
        if score < 20 and len(reasons) <= 1:
            reasons.append("Transaction appears normal based on your history")

        return ClassifierVerdict(
            risk_score=score,
            is_anomaly=is_anomaly,
            fraud_category=category,
            confidence=self.confidence,
            reasons=reasons,
        )


class HttpAnomalyClassifier:
    """Calls a remote classifier that accepts and returns JSON."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def classify(self, payload: ClassificationInput) -> ClassifierVerdict:
        try:
            response = await self._client.post(self._url, json=payload.model_dump(mode="json"))
            response.raise_for_status()
            return ClassifierVerdict.model_validate(response.json())
        except httpx.HTTPError as exc:
            logger.warning("classifier_http_error", url=self._url, error=str(exc))
            raise ClassifierFailure(str(exc)) from exc
        except ValueError as exc:
            # Covers JSON decode errors and pydantic ValidationError
            logger.warning("classifier_bad_response", url=self._url, error=str(exc))
            raise ClassifierFailure(f"invalid classifier response: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
