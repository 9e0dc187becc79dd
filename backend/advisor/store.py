from pathlib import Path
from typing import List, Optional

from sqlalchemy import func
from sqlmodel import select

from .db import get_session
from .logger import get_logger
from .models import Chat, Message, UploadedFile, User, utcnow

log = get_logger("store")


# -------------------------------------------------------------------
# Users
# -------------------------------------------------------------------
def create_user(username: str, password_hash: str, business_name: str, specialization: str) -> User:
    with get_session() as session:
        user = User(
            username=username,
            password_hash=password_hash,
            business_name=business_name,
            specialization=specialization,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user


def get_user(user_id: str) -> Optional[User]:
    with get_session() as session:
        return session.get(User, user_id)


def get_user_by_username(username: str) -> Optional[User]:
    with get_session() as session:
        return session.exec(select(User).where(User.username == username)).first()


def user_stats(user_id: str) -> dict:
    with get_session() as session:
        files_count = session.exec(
            select(func.count()).select_from(UploadedFile).where(UploadedFile.user_id == user_id)
        ).one()
        messages_count = session.exec(
            select(func.count()).select_from(Message).where(Message.user_id == user_id)
        ).one()
    return {"files_count": files_count, "messages_count": messages_count}


def delete_user(user_id: str) -> bool:
    """Delete a user with their messages, chats, file rows and stored files."""
    with get_session() as session:
        user = session.get(User, user_id)
        if not user:
            return False
        for m in session.exec(select(Message).where(Message.user_id == user_id)).all():
            session.delete(m)
        for c in session.exec(select(Chat).where(Chat.user_id == user_id)).all():
            session.delete(c)
        files = session.exec(select(UploadedFile).where(UploadedFile.user_id == user_id)).all()
        paths = [f.file_path for f in files]
        for f in files:
            session.delete(f)
        session.flush()
        session.delete(user)
        session.commit()

    for path in paths:
        remove_stored_file(path)
    return True


# -------------------------------------------------------------------
# Files
# -------------------------------------------------------------------
def add_file(user_id: str, filename: str, file_path: str, file_type: str, file_size: int) -> UploadedFile:
    with get_session() as session:
        record = UploadedFile(
            user_id=user_id,
            filename=filename,
            file_path=file_path,
            file_type=file_type,
            file_size=file_size,
        )
        session.add(record)
        session.commit()
        session.refresh(record)
        return record


def list_files(user_id: str) -> List[UploadedFile]:
    with get_session() as session:
        return session.exec(
            select(UploadedFile)
            .where(UploadedFile.user_id == user_id)
            .order_by(UploadedFile.uploaded_at.desc())
        ).all()


def get_user_files(user_id: str) -> List[UploadedFile]:
    """Files fed to the advice pipeline, oldest upload first."""
    with get_session() as session:
        return session.exec(
            select(UploadedFile)
            .where(UploadedFile.user_id == user_id)
            .order_by(UploadedFile.uploaded_at)
        ).all()


def remove_stored_file(path: str) -> None:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        log.warning("Stored file %s was already missing", path)
    except OSError as e:
        log.error("Could not remove stored file %s, it is now orphaned: %s", path, e)


def delete_file(user_id: str, file_id: str) -> bool:
    """Drop the file row, then the stored bytes (not transactional)."""
    with get_session() as session:
        record = session.exec(
            select(UploadedFile).where(UploadedFile.id == file_id, UploadedFile.user_id == user_id)
        ).first()
        if not record:
            return False
        path = record.file_path
        session.delete(record)
        session.commit()

    remove_stored_file(path)
    return True


# -------------------------------------------------------------------
# Chats and messages
# -------------------------------------------------------------------
def create_chat(user_id: str, title: str) -> Chat:
    with get_session() as session:
        now = utcnow()
        chat = Chat(user_id=user_id, title=title, created_at=now, updated_at=now)
        session.add(chat)
        session.commit()
        session.refresh(chat)
        return chat


def list_chats(user_id: str) -> List[Chat]:
    with get_session() as session:
        return session.exec(
            select(Chat).where(Chat.user_id == user_id).order_by(Chat.updated_at.desc())
        ).all()


def get_chat(user_id: str, chat_id: str) -> Optional[Chat]:
    with get_session() as session:
        return session.exec(select(Chat).where(Chat.id == chat_id, Chat.user_id == user_id)).first()


def touch_chat(chat_id: str) -> None:
    with get_session() as session:
        chat = session.get(Chat, chat_id)
        if chat:
            chat.updated_at = utcnow()
            session.add(chat)
            session.commit()


def delete_chat(user_id: str, chat_id: str) -> bool:
    with get_session() as session:
        chat = session.exec(select(Chat).where(Chat.id == chat_id, Chat.user_id == user_id)).first()
        if not chat:
            return False
        for m in session.exec(select(Message).where(Message.chat_id == chat_id)).all():
            session.delete(m)
        session.flush()
        session.delete(chat)
        session.commit()
        return True


def add_message(chat_id: str, user_id: str, message: str, response: str, category: str) -> Message:
    with get_session() as session:
        record = Message(
            chat_id=chat_id,
            user_id=user_id,
            message=message,
            response=response,
            category=category,
        )
        session.add(record)
        session.commit()
        session.refresh(record)
        return record


def chat_history(chat_id: str) -> List[Message]:
    with get_session() as session:
        return session.exec(
            select(Message).where(Message.chat_id == chat_id).order_by(Message.created_at)
        ).all()
