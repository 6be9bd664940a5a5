import logging
import re
from typing import BinaryIO, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, utcnow
from errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from schemas import Interaction, MaterialForm, StudyMaterial
from storage import FileStorage

logger = logging.getLogger(__name__)

COLLECTION = "studymaterial"

REQUIRED_FIELDS = ("subjectName", "courseCode", "materialType", "semester", "department", "year")

# kind -> (counter field, dedup set field, past tense, reject duplicates)
INTERACTIONS = {
    Interaction.LIKE: ("likes", "likedBy", "liked", True),
    Interaction.VIEW: ("views", "viewedBy", "viewed", True),
    Interaction.DOWNLOAD: ("downloads", "downloadedBy", "downloaded", False),
}


def _object_id(material_id: str) -> ObjectId:
    if not ObjectId.is_valid(material_id):
        raise NotFoundError("Material not found")
    return ObjectId(material_id)


def _missing(form: MaterialForm) -> List[str]:
    return [name for name in REQUIRED_FIELDS if not getattr(form, name)]


class MaterialRegistry:
    """Study materials with their like/view/download counters.

    Every counter is paired with the set of device IDs that produced it, and
    both are only ever changed together in one conditional update, so
    ``likes == len(likedBy)`` (and likewise for views and downloads) holds
    after any sequence of calls, concurrent ones included.
    """

    def __init__(self, database: Database, storage: FileStorage):
        self.db = database
        self.storage = storage

    @property
    def collection(self):
        return self.db[COLLECTION]

    def _get(self, material_id: str) -> dict:
        material = self.collection.find_one({"_id": _object_id(material_id)})
        if material is None:
            raise NotFoundError("Material not found")
        return material

    # ----------------- Queries -----------------
    def list(self, department: Optional[str] = None, year: Optional[str] = None) -> List[dict]:
        query = {}
        if department and department != "All":
            query["department"] = department
        if year:
            query["year"] = year
        return get_documents(self.db, COLLECTION, query, sort=[("likes", DESCENDING)])

    def search(self, query: Optional[str]) -> List[dict]:
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        pattern = {"$regex": re.escape(query), "$options": "i"}
        return get_documents(
            self.db,
            COLLECTION,
            {"$or": [
                {"subjectName": pattern},
                {"courseCode": pattern},
                {"description": pattern},
            ]},
            sort=[("likes", DESCENDING)],
        )

    def list_by_uploader(self, device_id: Optional[str]) -> List[dict]:
        if not device_id:
            raise ValidationError("Device ID is required")
        materials = get_documents(self.db, COLLECTION, {"uploadedBy": device_id}, sort=[("uploadedAt", DESCENDING)])
        logger.debug(f"Fetched {len(materials)} materials for deviceId: {device_id}")
        return materials

    # ----------------- Mutations -----------------
    def create(self, form: MaterialForm, device_id: Optional[str],
               stream: Optional[BinaryIO], filename: Optional[str]) -> dict:
        if _missing(form) or not device_id or stream is None or not filename:
            raise ValidationError("All fields and file are required")

        file_url = self.storage.save(stream, filename)
        now = utcnow()
        material = StudyMaterial(
            subjectName=form.subjectName,
            courseCode=form.courseCode,
            materialType=form.materialType,
            semester=form.semester,
            description=form.description or "",
            department=form.department,
            year=form.year,
            fileUrl=file_url,
            uploadedBy=device_id,
            uploadedAt=now,
            updatedAt=now,
        )
        material_id = create_document(self.db, COLLECTION, material)
        logger.info(f"Created material {material_id} with fileUrl: {file_url}")
        return self._get(material_id)

    def update(self, material_id: str, form: MaterialForm, device_id: Optional[str], is_admin: bool,
               stream: Optional[BinaryIO] = None, filename: Optional[str] = None) -> dict:
        if _missing(form) or not device_id:
            raise ValidationError("All fields are required except description and file")

        material = self._get(material_id)
        if not is_admin and material["uploadedBy"] != device_id:
            raise ForbiddenError("You can only edit your own materials")

        changes = {name: getattr(form, name) for name in REQUIRED_FIELDS}
        changes["description"] = form.description or ""
        changes["updatedAt"] = utcnow()

        if stream is not None and filename:
            changes["fileUrl"] = self.storage.save(stream, filename)
            self.storage.delete(material.get("fileUrl"))

        updated = self.collection.find_one_and_update(
            {"_id": material["_id"]},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise NotFoundError("Material not found")
        logger.info(f"Updated material {material_id} (admin={is_admin})")
        return updated

    def delete(self, material_id: str, device_id: Optional[str], is_admin: bool) -> dict:
        if not device_id:
            raise ValidationError("Device ID is required in body")

        material = self._get(material_id)
        if not is_admin and material["uploadedBy"] != device_id:
            raise ForbiddenError("You can only delete your own materials")

        self.storage.delete(material.get("fileUrl"))
        self.collection.delete_one({"_id": material["_id"]})
        logger.info(f"Deleted material {material_id} (admin={is_admin})")
        return {"message": "Material deleted successfully"}

    def record_interaction(self, material_id: str, device_id: Optional[str], kind: Interaction) -> dict:
        if not device_id:
            raise ValidationError("Device ID is required")

        counter, actors, past, reject_duplicate = INTERACTIONS[Interaction(kind)]
        oid = _object_id(material_id)

        # Membership check and increment are one document operation
        updated = self.collection.find_one_and_update(
            {"_id": oid, actors: {"$ne": device_id}},
            {"$addToSet": {actors: device_id}, "$inc": {counter: 1}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is not None:
            return updated

        material = self._get(material_id)
        if reject_duplicate:
            raise ConflictError(f"This device has already {past} this resource")
        return material
