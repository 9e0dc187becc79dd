import shutil
from pathlib import Path
from uuid import uuid4

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError

from . import store
from .auth import authenticate_user, create_access_token, get_current_user, hash_password
from .config import get_settings
from .gateway import ModelGateway
from .logger import get_logger
from .models import User
from .pipeline import generate_advice

log = get_logger("routes")

router = APIRouter(prefix="/api")

MIN_PASSWORD_LENGTH = 6
CHAT_TITLE_CHARS = 50
DEFAULT_CHAT_TITLE = "New chat"


def get_gateway() -> ModelGateway:
    return ModelGateway.from_settings(get_settings())


async def _json_body(request: Request) -> dict:
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="JSON object expected")
    return data


def _field(data: dict, name: str) -> str:
    return str(data.get(name) or "").strip()


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "business_name": user.business_name,
        "specialization": user.specialization,
    }


# -------------------------------------------------------------------
# Account
# -------------------------------------------------------------------
@router.post("/register")
async def register(request: Request):
    data = await _json_body(request)
    username = _field(data, "username")
    password = _field(data, "password")
    business_name = _field(data, "business_name")
    specialization = _field(data, "specialization")
    if not username or not password or not business_name or not specialization:
        raise HTTPException(
            status_code=400,
            detail="Username, password, business_name and specialization are required",
        )
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if store.get_user_by_username(username):
        raise HTTPException(status_code=409, detail="Username already exists")

    user = store.create_user(username, hash_password(password), business_name, specialization)
    return {"token": create_access_token(user), "user": _user_payload(user)}


@router.post("/login")
async def login(request: Request):
    data = await _json_body(request)
    username = _field(data, "username")
    password = _field(data, "password")
    if not username or not password:
        raise HTTPException(status_code=400, detail="Username and password are required")
    user = authenticate_user(username, password)
    return {"token": create_access_token(user), "user": _user_payload(user)}


@router.get("/user")
async def get_user(user: User = Depends(get_current_user)):
    return {
        "user": {**_user_payload(user), "created_at": user.created_at},
        "stats": store.user_stats(user.id),
    }


@router.delete("/user")
async def delete_user(user: User = Depends(get_current_user)):
    store.delete_user(user.id)
    return {"message": "Account deleted successfully"}


# -------------------------------------------------------------------
# Files
# -------------------------------------------------------------------
@router.post("/files/upload")
async def upload_file(file: UploadFile = File(...), user: User = Depends(get_current_user)):
    if not file or not file.filename:
        raise HTTPException(status_code=400, detail="File is required")

    upload_dir = Path(get_settings().uploads_dir) / user.id
    upload_dir.mkdir(parents=True, exist_ok=True)

    file_id = str(uuid4())
    ext = Path(file.filename).suffix
    file_path = upload_dir / f"{file_id}{ext}"
    with file_path.open("wb") as dst:
        shutil.copyfileobj(file.file, dst)

    try:
        record = store.add_file(
            user.id,
            file.filename,
            str(file_path.resolve()),
            ext[1:].lower(),
            file_path.stat().st_size,
        )
    except SQLAlchemyError:
        store.remove_stored_file(str(file_path))
        raise

    return {
        "id": record.id,
        "filename": record.filename,
        "file_type": record.file_type,
        "file_size": record.file_size,
        "uploaded_at": record.uploaded_at,
    }


@router.get("/files")
async def get_files(user: User = Depends(get_current_user)):
    files = store.list_files(user.id)
    return {
        "files": [
            {
                "id": f.id,
                "filename": f.filename,
                "file_type": f.file_type,
                "file_size": f.file_size,
                "uploaded_at": f.uploaded_at,
            }
            for f in files
        ]
    }


@router.delete("/files/{file_id}")
async def delete_file(file_id: str, user: User = Depends(get_current_user)):
    if not store.delete_file(user.id, file_id):
        raise HTTPException(status_code=404, detail="File not found")
    return {"message": "File deleted successfully"}


# -------------------------------------------------------------------
# Chats
# -------------------------------------------------------------------
@router.post("/chats")
async def create_chat(request: Request, user: User = Depends(get_current_user)):
    try:
        data = await request.json()
    except ValueError:
        data = {}
    title = _field(data, "title") if isinstance(data, dict) else ""
    chat = store.create_chat(user.id, title or DEFAULT_CHAT_TITLE)
    return {
        "id": chat.id,
        "title": chat.title,
        "created_at": chat.created_at,
        "updated_at": chat.updated_at,
    }


@router.get("/chats")
async def get_chats(user: User = Depends(get_current_user)):
    return {
        "chats": [
            {
                "id": c.id,
                "user_id": c.user_id,
                "title": c.title,
                "created_at": c.created_at,
                "updated_at": c.updated_at,
            }
            for c in store.list_chats(user.id)
        ]
    }


@router.delete("/chats/{chat_id}")
async def delete_chat(chat_id: str, user: User = Depends(get_current_user)):
    if not store.delete_chat(user.id, chat_id):
        raise HTTPException(status_code=404, detail="Chat not found")
    return {"message": "Chat deleted successfully"}


def _chat_title(message: str) -> str:
    if len(message) > CHAT_TITLE_CHARS:
        return message[:CHAT_TITLE_CHARS] + "..."
    return message


@router.post("/chat")
async def send_message(
    request: Request,
    user: User = Depends(get_current_user),
    gateway: ModelGateway = Depends(get_gateway),
):
    data = await _json_body(request)
    message = _field(data, "message")
    category = _field(data, "category")
    chat_id = _field(data, "chat_id")
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")

    if not chat_id:
        chat_id = store.create_chat(user.id, _chat_title(message)).id
    else:
        if not store.get_chat(user.id, chat_id):
            raise HTTPException(status_code=404, detail="Chat not found")
        store.touch_chat(chat_id)

    files = store.get_user_files(user.id)
    response = await run_in_threadpool(generate_advice, gateway, user, message, category, files)

    record = store.add_message(chat_id, user.id, message, response, category)
    return {
        "id": record.id,
        "chat_id": chat_id,
        "message": record.message,
        "response": record.response,
        "category": record.category,
        "created_at": record.created_at,
    }


@router.get("/chat/{chat_id}/history")
async def get_chat_history(chat_id: str, user: User = Depends(get_current_user)):
    if not store.get_chat(user.id, chat_id):
        raise HTTPException(status_code=404, detail="Chat not found")
    return {
        "messages": [
            {
                "id": m.id,
                "chat_id": m.chat_id,
                "message": m.message,
                "response": m.response,
                "category": m.category,
                "created_at": m.created_at,
            }
            for m in store.chat_history(chat_id)
        ]
    }
