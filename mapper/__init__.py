"""
Mapper package: compile activity mapper rules and classify activities into initiatives and launch items.
"""

from .cache import MapperCache, MapperType, default_cache
from .classifier import ActivityClassifier, Classification, classify_activity, map_activity
from .expression import CompiledExpression, EvaluationError, RuleSyntaxError, compile_expression

__all__ = [
    "ActivityClassifier",
    "Classification",
    "CompiledExpression",
    "EvaluationError",
    "MapperCache",
    "MapperType",
    "RuleSyntaxError",
    "classify_activity",
    "compile_expression",
    "default_cache",
    "map_activity",
]
