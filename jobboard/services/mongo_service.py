"""
MongoDB Service - CRUD operations for document collections.

Collections in this database:
1. cv_documents   - Text extracted from uploaded CVs, one per upload
2. search_events  - Public job searches with their filters and hit counts

WHY MongoDB for these?
- CV text varies wildly in size and structure
- Search filters are free-form and change with the UI
- No joins needed - documents are self-contained
"""

from datetime import datetime, timedelta
from typing import Optional, List
from pymongo.collection import Collection

from jobboard.db.mongodb import get_collection, COLLECTIONS


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def serialize_docs(docs: list) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


# ============================================================
# CV DOCUMENTS COLLECTION
# ============================================================

class CvDocumentService:
    """
    Stores the text extracted from a job seeker's CV.
    The relational row keeps the file location; this keeps the content.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["cv_documents"])

    def insert(self, job_seeker_id: int, cv_text: str, filename: str, stored_name: str) -> str:
        """
        Insert an extracted CV.

        Returns:
            MongoDB ObjectId as string
        """
        doc = {
            "job_seeker_id": job_seeker_id,
            "cv_text": cv_text,
            "filename": filename,
            "stored_name": stored_name,
            "uploaded_at": datetime.utcnow(),
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def get_by_job_seeker(self, job_seeker_id: int) -> Optional[dict]:
        """Fetch the latest CV text for a job seeker."""
        doc = self.collection.find_one(
            {"job_seeker_id": job_seeker_id},
            sort=[("uploaded_at", -1)]  # Most recent first
        )
        return serialize_doc(doc)

    def delete_by_job_seeker(self, job_seeker_id: int) -> int:
        """Remove every stored CV for a job seeker (account deletion)."""
        return self.collection.delete_many({"job_seeker_id": job_seeker_id}).deleted_count


# ============================================================
# SEARCH EVENTS COLLECTION
# ============================================================

class SearchEventService:
    """
    One document per public job search. Feeds search analytics.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["search_events"])

    def record(
        self,
        query: Optional[str],
        location: Optional[str],
        job_types: List[str],
        industries: List[str],
        skills: List[str],
        results: int,
        user_id: Optional[int] = None,
    ) -> str:
        doc = {
            "query": (query or "").strip().lower() or None,
            "location": (location or "").strip() or None,
            "job_types": job_types,
            "industries": industries,
            "skills": [s.lower() for s in skills],
            "results": results,
            "user_id": user_id,
            "created_at": datetime.utcnow(),
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def top_values(self, field: str, days: int, limit: int = 10) -> List[dict]:
        """
        Most frequent values of a field over the last `days` days.
        List fields are unwound so each element counts once.
        """
        since = datetime.utcnow() - timedelta(days=days)
        pipeline = [
            {"$match": {"created_at": {"$gte": since}, field: {"$nin": [None, "", []]}}},
        ]
        if field in ("job_types", "industries", "skills"):
            pipeline.append({"$unwind": f"${field}"})
        pipeline += [
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
            {"$limit": limit},
        ]
        return [{"value": row["_id"], "count": row["count"]} for row in self.collection.aggregate(pipeline)]

    def count_since(self, days: int) -> int:
        since = datetime.utcnow() - timedelta(days=days)
        return self.collection.count_documents({"created_at": {"$gte": since}})


def get_cv_document_service() -> CvDocumentService:
    return CvDocumentService()


def get_search_event_service() -> SearchEventService:
    return SearchEventService()
