from __future__ import annotations

import json
import pickle

from abc import ABC, abstractmethod
from typing import Any

class CacheFormatter(ABC):
    """Base class for serialization formats used by backends that store bytes."""
    @abstractmethod
    def dumps(self, obj: Any) -> bytes:
        """Serialize object to bytes."""
        pass

    @abstractmethod
    def loads(self, data: bytes) -> Any:
        """Deserialize bytes to object."""
        pass

class PickleFormatter(CacheFormatter):
    """Pickle serialization format. Handles arbitrary python values, so it's the default."""
    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL):
        self.protocol = protocol

    def dumps(self, obj: Any) -> bytes:
        return pickle.dumps(obj, protocol=self.protocol)

    def loads(self, data: bytes) -> Any:
        return pickle.loads(data)

class JsonFormatter(CacheFormatter):
    """JSON serialization format, for values that should stay readable in the store."""
    def __init__(self, EncoderCls=json.JSONEncoder, DecoderCls=json.JSONDecoder):
        self.EncoderCls = EncoderCls
        self.DecoderCls = DecoderCls

    def dumps(self, obj: Any) -> bytes:
        return json.dumps(obj, cls=self.EncoderCls, ensure_ascii=False).encode('utf-8')

    def loads(self, data: bytes) -> Any:
        return json.loads(data.decode('utf-8'), cls=self.DecoderCls)
