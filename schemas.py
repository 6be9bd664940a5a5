"""
Database Schemas for KEC Study Hub

Each Pydantic model represents a MongoDB collection. The collection name is the
lowercased class name. Example: class StudyMaterial -> "studymaterial" collection.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class StudyMaterial(BaseModel):
    subjectName: str = Field(..., description="Subject title, e.g. Data Structures")
    courseCode: str = Field(..., description="Course code, e.g. CS201")
    materialType: str = Field(..., description="Notes, question paper, lab manual...")
    semester: str = Field(..., description="Semester number as entered by the uploader")
    description: str = Field("", description="Free text shown in listings and searched")
    department: str = Field(..., description="Department, e.g. CSE")
    year: str = Field(..., description="Year of study")
    fileUrl: str = Field(..., description="Locator of the stored file")
    uploadedBy: str = Field(..., description="Device ID of the uploader")
    likes: int = Field(0, ge=0)
    likedBy: List[str] = Field(default_factory=list, description="Device IDs that liked")
    views: int = Field(0, ge=0)
    viewedBy: List[str] = Field(default_factory=list, description="Device IDs that viewed")
    downloads: int = Field(0, ge=0)
    downloadedBy: List[str] = Field(default_factory=list, description="Device IDs that downloaded")
    uploadedAt: datetime
    updatedAt: datetime


class Message(BaseModel):
    sender: str = Field("", description="Display name; department scoping matches on it")
    content: str = Field(..., description="Message text")
    isGlobal: bool = Field(False, description="Global board vs department board")
    timestamp: datetime


# --------- Request bodies ---------
class MaterialForm(BaseModel):
    """Multipart fields for upload and edit; presence is checked by the registry."""
    subjectName: Optional[str] = None
    courseCode: Optional[str] = None
    materialType: Optional[str] = None
    semester: Optional[str] = None
    description: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None


class DeviceRequest(BaseModel):
    deviceId: Optional[str] = None


class MessageCreate(BaseModel):
    sender: Optional[str] = ""
    content: Optional[str] = None
    isGlobal: bool = False


class ChatRequest(BaseModel):
    message: Optional[str] = None


class Interaction(str, Enum):
    LIKE = "like"
    VIEW = "view"
    DOWNLOAD = "download"
