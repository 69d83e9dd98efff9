"""Planning: turn a request into a staged plan of capability invocations."""

from .planner import (
    DEFAULT_INTENT_RULES,
    Intent,
    IntentClassifier,
    IntentRule,
    Planner,
    build_plan,
    default_input,
    validate_context,
)
from .rule_based import RuleBasedPlanner
from .model_based import ModelPlanner

__all__ = [
    'DEFAULT_INTENT_RULES',
    'Intent',
    'IntentClassifier',
    'IntentRule',
    'Planner',
    'build_plan',
    'default_input',
    'validate_context',
    'RuleBasedPlanner',
    'ModelPlanner',
]
