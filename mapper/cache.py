"""
Compiled activity mapper cache.
Keeps one map bucket id -> compiled rule per mapper type, rebuilt only when the rule set content changes.
"""

import hashlib
import json
import threading
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from logconfig import get_logger
from normalize.models import Bucket
from .expression import CompiledExpression, compile_expression

logger = get_logger(__name__)


class MapperType(str, Enum):
    INITIATIVE = 'initiative'
    LAUNCH_ITEM = 'launchItem'

    @classmethod
    def coerce(cls, value: Any) -> 'MapperType':
        """Accept a member, its value or its name; anything else is a programming error."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if value == member.value or value.upper() == member.name:
                    return member
        raise ValueError(f"Unknown mapper type: {value!r}")


def _rule_of(bucket: Any) -> Optional[str]:
    """Extract the rule string from a bucket given as a string, a Bucket or a raw dict."""
    if bucket is None:
        return None
    if isinstance(bucket, str):
        rule = bucket
    elif isinstance(bucket, Bucket):
        rule = bucket.activity_mapper
    elif isinstance(bucket, dict):
        rule = bucket.get('activityMapper') or bucket.get('activity_mapper')
    else:
        rule = getattr(bucket, 'activity_mapper', None)
    if not isinstance(rule, str) or not rule.strip():
        return None
    return rule


def rules_hash(rules: Mapping[str, Optional[str]]) -> str:
    """Content hash of a rule set, independent of iteration order."""
    pairs = sorted((str(bucket_id), rule) for bucket_id, rule in rules.items() if rule)
    return hashlib.sha256(json.dumps(pairs).encode('utf-8')).hexdigest()


class MapperCache:
    """Per mapper type compiled rules, with content-hash based invalidation.

    compile() builds the new map aside and swaps it in under the lock, so concurrent readers
    always see either the previous or the new complete map.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._compiled: Dict[MapperType, Dict[str, CompiledExpression]] = {t: {} for t in MapperType}
        self._hashes: Dict[MapperType, str] = {t: '' for t in MapperType}
        self.compile_count = 0
        self.hit_count = 0

    def compile(self, mapper_type: Any, buckets: Mapping[str, Any]) -> Dict[str, CompiledExpression]:
        """Compile the rules of buckets for mapper_type unless the same rule set is already compiled.

        :param mapper_type: MapperType or its value/name.
        :param buckets: bucket id -> rule string, None, Bucket, or raw dict with 'activityMapper'.
        :return: the compiled map for mapper_type (do not mutate it).
        """
        mtype = MapperType.coerce(mapper_type)
        rules = {str(bucket_id): _rule_of(bucket) for bucket_id, bucket in (buckets or {}).items()}
        digest = rules_hash(rules)

        with self._lock:
            if digest == self._hashes[mtype]:
                self.hit_count += 1
                logger.debug("Mapper cache hit for %s (%d rules)", mtype.value, len(self._compiled[mtype]))
                return self._compiled[mtype]

        compiled: Dict[str, CompiledExpression] = {}
        for bucket_id, rule in rules.items():
            if not rule:
                continue
            expression = compile_expression(rule)
            if not expression.valid:
                logger.warning("Invalid %s mapper for %s: %s", mtype.value, bucket_id, expression.error)
            compiled[bucket_id] = expression

        with self._lock:
            self._compiled[mtype] = compiled
            self._hashes[mtype] = digest
            self.compile_count += 1
        logger.info("Compiled %d %s mapper(s)", len(compiled), mtype.value)
        return compiled

    def predicates(self, mapper_type: Any) -> Dict[str, CompiledExpression]:
        """Return the current compiled map for mapper_type (a snapshot reference)."""
        mtype = MapperType.coerce(mapper_type)
        with self._lock:
            return self._compiled[mtype]

    def snapshot(self) -> Tuple[Dict[str, CompiledExpression], Dict[str, CompiledExpression]]:
        """Return the (initiative, launch item) compiled maps read under one lock acquisition."""
        with self._lock:
            return self._compiled[MapperType.INITIATIVE], self._compiled[MapperType.LAUNCH_ITEM]

    def hash(self, mapper_type: Any) -> str:
        mtype = MapperType.coerce(mapper_type)
        with self._lock:
            return self._hashes[mtype]

    def clear(self):
        """Forget all compiled rules and hashes."""
        with self._lock:
            self._compiled = {t: {} for t in MapperType}
            self._hashes = {t: '' for t in MapperType}

    def stats(self) -> Dict[str, Any]:
        """Return counters and, per mapper type, the number of compiled and invalid rules."""
        with self._lock:
            per_type = {
                t.value: {
                    'rules': len(self._compiled[t]),
                    'invalid': sum(1 for e in self._compiled[t].values() if not e.valid),
                    'hash': self._hashes[t],
                }
                for t in MapperType
            }
            return {'compiles': self.compile_count, 'hits': self.hit_count, 'types': per_type}


# shared instance for callers that do not inject their own
default_cache = MapperCache()


__all__ = ["MapperType", "MapperCache", "default_cache", "rules_hash"]
