import copy
from typing import Any, Dict, List, Optional


def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    """Plain equality matching; all the enquiry queries need."""
    return all(doc.get(key) == expected for key, expected in query.items())


def _without_hidden(doc: Dict[str, Any], projection: Optional[Dict[str, int]]) -> Dict[str, Any]:
    result = copy.deepcopy(doc)
    for key, include in (projection or {}).items():
        if include == 0:
            result.pop(key, None)
    return result


class FakeCollection:
    def __init__(self):
        self.data: List[Dict[str, Any]] = []

    async def insert_one(self, document: Dict[str, Any]) -> None:
        self.data.append(copy.deepcopy(document))

    async def find_one(self, query: Dict[str, Any], projection: Optional[Dict[str, int]] = None) -> Optional[Dict[str, Any]]:
        for doc in self.data:
            if _matches(doc, query):
                return _without_hidden(doc, projection)
        return None


class InMemoryDB:
    """Stands in for the motor database when no MongoDB is configured."""

    def __init__(self):
        self.enquiries = FakeCollection()
