"""
Credential store for admin accounts.

Passwords only ever reach the collection as bcrypt hashes, and only the safe
projection produced by ``safe_user`` leaves this module's callers.
"""
import logging
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import to_object_id
from schemas import User, utcnow
from security import hash_password, pwd_context, verify_password

logger = logging.getLogger(__name__)

COLLECTION = "user"


class DuplicateEmailError(Exception):
    pass


def normalize_email(email: str) -> str:
    return str(email).strip().lower()


def safe_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "name": doc.get("name"),
        "email": doc.get("email"),
        "role": doc.get("role", "user"),
        "isActive": doc.get("isActive", True),
        "createdAt": doc.get("createdAt"),
        "updatedAt": doc.get("updatedAt"),
    }


class UserStore:
    def __init__(self, database: Database):
        self.collection = database[COLLECTION]

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid})

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"email": normalize_email(email)})

    def list(self) -> List[Dict[str, Any]]:
        return list(self.collection.find().sort("createdAt", 1))

    def create(self, name: str, email: str, password: str, role: str = "user") -> Dict[str, Any]:
        email = normalize_email(email)
        if self.find_by_email(email):
            raise DuplicateEmailError(email)
        user = User(name=name, email=email, password=hash_password(password), role=role)
        doc = user.model_dump(by_alias=True)
        doc["email"] = email
        try:
            doc["_id"] = self.collection.insert_one(doc).inserted_id
        except DuplicateKeyError:
            raise DuplicateEmailError(email)
        logger.info(f"Created {role} account {email}")
        return doc

    def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply camelCase ``changes``; returns the updated document or None if unknown."""
        oid = to_object_id(user_id)
        if oid is None:
            return None
        changes = dict(changes)
        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
            clash = self.collection.find_one({"email": changes["email"], "_id": {"$ne": oid}})
            if clash:
                raise DuplicateEmailError(changes["email"])
        if "password" in changes:
            changes["password"] = hash_password(changes["password"])
        changes["updatedAt"] = utcnow()
        try:
            return self.collection.find_one_and_update(
                {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            raise DuplicateEmailError(changes.get("email"))

    def set_password(self, user_id: str, new_password: str) -> Optional[Dict[str, Any]]:
        return self.update(user_id, {"password": new_password})

    def authenticate(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        """Return the account when the password matches, else None."""
        user = self.find_by_email(email)
        if user is None:
            # keep the timing of unknown emails close to wrong passwords
            pwd_context.dummy_verify()
            return None
        if not verify_password(password, user.get("password", "")):
            return None
        return user
