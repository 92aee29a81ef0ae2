#!/usr/bin/env python3
# CUI // SP-CTI
"""Built-in binder strategies, in registration order."""

from shinobi.binders.strategies.auth import AuthBinderStrategy
from shinobi.binders.strategies.bucket import BucketBinderStrategy
from shinobi.binders.strategies.cache import CacheBinderStrategy
from shinobi.binders.strategies.database import DatabaseBinderStrategy
from shinobi.binders.strategies.queue import QueueBinderStrategy
from shinobi.binders.strategies.stream import StreamBinderStrategy

BUILTIN_STRATEGIES = (
    QueueBinderStrategy,
    CacheBinderStrategy,
    DatabaseBinderStrategy,
    BucketBinderStrategy,
    AuthBinderStrategy,
    StreamBinderStrategy,
)

__all__ = [cls.__name__ for cls in BUILTIN_STRATEGIES] + ["BUILTIN_STRATEGIES"]
