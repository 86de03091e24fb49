import logging

from fastapi import APIRouter, Depends
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import get_db
from errors import ApiError
from schemas import ChangePasswordRequest, LoginRequest, RegisterRequest, UserUpdate
from security import create_access_token, get_current_user, require_admin, verify_password
from user_store import DuplicateEmailError, UserStore, safe_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/users", tags=["Admin Users"])

INVALID_CREDENTIALS = "Invalid email or password"


def get_user_store(database: Database = Depends(get_db)) -> UserStore:
    return UserStore(database)


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, users: UserStore = Depends(get_user_store), _admin: dict = Depends(require_admin)):
    try:
        doc = users.create(payload.name, payload.email, payload.password, payload.role)
    except DuplicateEmailError:
        raise ApiError(400, "This email is already in use")
    except PyMongoError as exc:
        logger.exception("Error registering user")
        raise ApiError(500, "Error registering user", exc)
    return {"success": True, "message": "User registered successfully", "user": safe_user(doc)}


@router.post("/login")
def login(payload: LoginRequest, users: UserStore = Depends(get_user_store)):
    try:
        user = users.authenticate(payload.email, payload.password)
    except PyMongoError as exc:
        logger.exception("Error during login")
        raise ApiError(500, "Error during login", exc)
    if user is None:
        logger.info("Failed login attempt")
        raise ApiError(401, INVALID_CREDENTIALS)
    if not user.get("isActive", True):
        raise ApiError(401, "Account deactivated. Contact an administrator.")
    safe = safe_user(user)
    return {
        "success": True,
        "message": "Login successful",
        "token": create_access_token(safe),
        "user": safe,
    }


@router.get("/profile")
def get_profile(current: dict = Depends(get_current_user), users: UserStore = Depends(get_user_store)):
    try:
        user = users.get(current["id"])
    except PyMongoError as exc:
        logger.exception("Error fetching profile")
        raise ApiError(500, "Error fetching profile", exc)
    if user is None:
        raise ApiError(404, "User not found")
    return {"success": True, "user": safe_user(user)}


@router.get("")
def list_users(users: UserStore = Depends(get_user_store), _admin: dict = Depends(require_admin)):
    try:
        safe_users = [safe_user(doc) for doc in users.list()]
    except PyMongoError as exc:
        logger.exception("Error listing users")
        raise ApiError(500, "Error listing users", exc)
    return {"success": True, "count": len(safe_users), "users": safe_users}


@router.post("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    current: dict = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
):
    try:
        user = users.get(current["id"])
        if user is None:
            raise ApiError(404, "User not found")
        if not verify_password(payload.current_password, user.get("password", "")):
            raise ApiError(401, "Current password is incorrect")
        users.set_password(current["id"], payload.new_password)
    except PyMongoError as exc:
        logger.exception("Error changing password")
        raise ApiError(500, "Error changing password", exc)
    logger.info(f"Password changed for user {current['id']}")
    return {"success": True, "message": "Password changed successfully"}


@router.put("/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    users: UserStore = Depends(get_user_store),
    _admin: dict = Depends(require_admin),
):
    changes = payload.model_dump(by_alias=True, exclude_none=True)
    try:
        if users.get(user_id) is None:
            raise ApiError(404, "User not found")
        doc = users.update(user_id, changes) if changes else users.get(user_id)
    except DuplicateEmailError:
        raise ApiError(400, "This email is already in use")
    except PyMongoError as exc:
        logger.exception("Error updating user")
        raise ApiError(500, "Error updating user", exc)
    if doc is None:
        raise ApiError(404, "User not found")
    return {"success": True, "message": "User updated successfully", "user": safe_user(doc)}
