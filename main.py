import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from auth import AuthInfo, get_current_user
from errors import AppError
from gateway import GeminiTextGenerator, ModerationGateway, build_profanity_filter
from registry import MaterialRegistry
from schemas import ChatRequest, DeviceRequest, Interaction, MaterialForm, MessageCreate
from settings import (
    API_TITLE, API_VERSION, CHAT_MODEL, CORS_ORIGINS, DATABASE_NAME, DATABASE_URL,
    GOOGLE_API_KEY, MAX_UPLOAD_BYTES, PORT, PUBLIC_BASE_URL, UPLOAD_DIR,
)
from storage import FileStorage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    storage = FileStorage(UPLOAD_DIR, PUBLIC_BASE_URL, MAX_UPLOAD_BYTES)
    storage.ensure_dir()
    try:
        database.ensure_indexes(database.db)
    except Exception as e:
        logger.warning(f"Could not ensure indexes: {str(e)}")

    app.state.registry = MaterialRegistry(database.db, storage)
    app.state.gateway = ModerationGateway(
        database.db,
        build_profanity_filter(),
        GeminiTextGenerator(GOOGLE_API_KEY, CHAT_MODEL),
    )
    logger.info(f"{API_TITLE} started (database={DATABASE_NAME}, uploads={UPLOAD_DIR})")
    yield
    database.client.close()
    logger.info(f"{API_TITLE} shutting down")


app = FastAPI(title=API_TITLE, version=API_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")


# --------- Dependencies ---------
def get_database() -> Database:
    return database.db


def get_registry(request: Request) -> MaterialRegistry:
    return request.app.state.registry


def get_gateway(request: Request) -> ModerationGateway:
    return request.app.state.gateway


# --------- Error handling ---------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request", "error": str(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": "Server error", "error": str(exc)})


# Utility to convert Mongo documents to JSON-serializable dicts
def to_public(doc: dict):
    if not doc:
        return doc
    d = {**doc}
    _id = d.pop("_id", None)
    if isinstance(_id, ObjectId):
        d["id"] = str(_id)
    elif _id is not None:
        d["id"] = _id
    return d


@app.get("/")
def read_root():
    return {"message": "KEC Study Hub and Discussion Forum API is running"}


@app.get("/test")
def test_database(db: Database = Depends(get_database)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": getattr(db, "name", None),
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except Exception as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


# ----------------- Study materials -----------------
def _material_form(
    subjectName: Optional[str] = Form(None),
    courseCode: Optional[str] = Form(None),
    materialType: Optional[str] = Form(None),
    semester: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    department: Optional[str] = Form(None),
    year: Optional[str] = Form(None),
) -> MaterialForm:
    return MaterialForm(
        subjectName=subjectName,
        courseCode=courseCode,
        materialType=materialType,
        semester=semester,
        description=description,
        department=department,
        year=year,
    )


@app.get("/study-materials")
def list_materials(
    department: Optional[str] = Query(None),
    year: Optional[str] = Query(None),
    registry: MaterialRegistry = Depends(get_registry),
):
    return [to_public(m) for m in registry.list(department, year)]


@app.get("/study-materials/search")
def search_materials(query: Optional[str] = Query(None), registry: MaterialRegistry = Depends(get_registry)):
    return [to_public(m) for m in registry.search(query)]


@app.get("/study-materials/user-materials", dependencies=[Depends(get_current_user)])
def user_materials(
    deviceId: Optional[str] = Query(None),
    registry: MaterialRegistry = Depends(get_registry),
):
    return [to_public(m) for m in registry.list_by_uploader(deviceId)]


@app.post("/study-materials", status_code=201, dependencies=[Depends(get_current_user)])
def upload_material(
    form: MaterialForm = Depends(_material_form),
    deviceId: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    registry: MaterialRegistry = Depends(get_registry),
):
    logger.debug(f"POST /study-materials received file: {file.filename if file else 'none'}")
    stream = file.file if file else None
    filename = file.filename if file else None
    return to_public(registry.create(form, deviceId, stream, filename))


@app.put("/study-materials/{material_id}")
def update_material(
    material_id: str,
    form: MaterialForm = Depends(_material_form),
    uploadedBy: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: AuthInfo = Depends(get_current_user),
    registry: MaterialRegistry = Depends(get_registry),
):
    stream = file.file if file and file.filename else None
    filename = file.filename if file else None
    return to_public(registry.update(material_id, form, uploadedBy, user.is_admin, stream, filename))


@app.delete("/study-materials/{material_id}")
def delete_material(
    material_id: str,
    body: Optional[DeviceRequest] = None,
    user: AuthInfo = Depends(get_current_user),
    registry: MaterialRegistry = Depends(get_registry),
):
    return registry.delete(material_id, body.deviceId if body else None, user.is_admin)


@app.post("/study-materials/{material_id}/{kind}", dependencies=[Depends(get_current_user)])
def record_interaction(
    material_id: str,
    kind: Interaction,
    body: Optional[DeviceRequest] = None,
    registry: MaterialRegistry = Depends(get_registry),
):
    return to_public(registry.record_interaction(material_id, body.deviceId if body else None, kind))


# ----------------- Discussion forum -----------------
@app.get("/api/messages/global")
def global_messages(gateway: ModerationGateway = Depends(get_gateway)):
    return [to_public(m) for m in gateway.list_global()]


@app.get("/api/messages/department/{department}")
def department_messages(department: str, gateway: ModerationGateway = Depends(get_gateway)):
    return [to_public(m) for m in gateway.list_by_department(department)]


@app.post("/api/messages")
def post_message(req: MessageCreate, gateway: ModerationGateway = Depends(get_gateway)):
    return to_public(gateway.post_message(req.sender, req.content, req.isGlobal))


# ----------------- Chatbot -----------------
@app.post("/chat")
def chat(req: ChatRequest, gateway: ModerationGateway = Depends(get_gateway)):
    return {"reply": gateway.chat(req.message)}


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Connecting to MongoDB at {DATABASE_URL}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
