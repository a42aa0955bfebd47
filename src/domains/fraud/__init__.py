"""Payee fraud risk domain."""

from .alerts import AlertEmissionPolicy
from .analyzer import PostTransactionAnalyzer
from .blacklist import BlacklistUpsertPolicy
from .classifier import HttpAnomalyClassifier, RulesAnomalyClassifier
from .evaluator import PreTransactionEvaluator
from .events import EventBus
from .models import (
    Alert,
    BlacklistEntry,
    PostTransactionRequest,
    PreTransactionRequest,
    RiskAssessment,
    TransactionAnalysis,
)
from .scorer import FraudScorer, Stores, build_sql_scorer
from .signals import SignalAggregator

__all__ = [
    "Alert",
    "AlertEmissionPolicy",
    "BlacklistEntry",
    "BlacklistUpsertPolicy",
    "EventBus",
    "FraudScorer",
    "HttpAnomalyClassifier",
    "PostTransactionAnalyzer",
    "PostTransactionRequest",
    "PreTransactionEvaluator",
    "PreTransactionRequest",
    "RiskAssessment",
    "RulesAnomalyClassifier",
    "SignalAggregator",
    "Stores",
    "TransactionAnalysis",
    "build_sql_scorer",
]
