"""
JSON encoding for log entries sent to the logs queue.

Log extras carry money amounts, timestamps, enum roles and id sets; all of
them are rendered so the entry stays valid JSON.
"""

import json
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class EnhancedJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        # Money amounts keep their exact cents
        if isinstance(obj, Decimal):
            return str(obj)
        elif isinstance(obj, (datetime, date)):
            return obj.isoformat()
        elif isinstance(obj, Enum):
            return obj.value
        elif isinstance(obj, uuid.UUID):
            return str(obj)
        elif isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        elif hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json")
        elif isinstance(obj, BaseException):
            return {"type": type(obj).__name__, "message": str(obj)}
        return repr(obj)


def dumps(obj: Any, **kwargs) -> str:
    """json.dumps that never fails on the values found in log extras."""
    return json.dumps(obj, cls=EnhancedJSONEncoder, **kwargs)
