import json
import logging
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import ValidationError
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import create_document, get_db, serialize_document, to_object_id
from errors import ApiError
from schemas import CustomizationOptions, Product, Rating, RatingIn, average_rating, utcnow
from security import require_admin
from uploads import UploadRejected, discard_product_images, save_product_images

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/products", tags=["Admin Products"], dependencies=[Depends(require_admin)])

COLLECTION = "product"
REQUIRED_FIELDS = ("name", "description", "price", "category")
BOOLEAN_FIELDS = ("has3dModel", "isActive", "isFeatured")


def product_form(
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    subcategory: Optional[str] = Form(None),
    has_3d_model: Optional[str] = Form(None, alias="has3dModel"),
    model_3d_url: Optional[str] = Form(None, alias="model3dUrl"),
    customization_options: Optional[str] = Form(None, alias="customizationOptions"),
    stock: Optional[str] = Form(None),
    is_active: Optional[str] = Form(None, alias="isActive"),
    is_featured: Optional[str] = Form(None, alias="isFeatured"),
    tags: Optional[List[str]] = Form(None),
    ratings: Optional[str] = Form(None),
    keep_images: Optional[str] = Form(None, alias="keepImages"),
) -> Dict[str, Any]:
    """Raw multipart fields that were actually sent, keyed by their wire names."""
    fields = {
        "name": name,
        "description": description,
        "price": price,
        "category": category,
        "subcategory": subcategory,
        "has3dModel": has_3d_model,
        "model3dUrl": model_3d_url,
        "customizationOptions": customization_options,
        "stock": stock,
        "isActive": is_active,
        "isFeatured": is_featured,
        "tags": tags,
        "ratings": ratings,
        "keepImages": keep_images,
    }
    return {key: value for key, value in fields.items() if value is not None}


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def parse_tags(values: Any) -> List[str]:
    if isinstance(values, str):
        values = [values]
    tags = []
    for value in values:
        tags.extend(tag.strip() for tag in str(value).split(",") if tag.strip())
    return tags


def _parse_json(field: str, value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        raise ValueError(f"{field} must be valid JSON")


def normalize_product_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Convert form strings into stored types. Raises ValueError on bad input."""
    fields: Dict[str, Any] = {}
    for key in ("name", "description", "category", "subcategory"):
        if key in raw:
            fields[key] = str(raw[key]).strip()
    if "price" in raw:
        try:
            fields["price"] = float(raw["price"])
        except (TypeError, ValueError):
            raise ValueError("price must be a number")
    if "stock" in raw:
        try:
            fields["stock"] = int(raw["stock"]) if str(raw["stock"]).strip() else 0
        except (TypeError, ValueError):
            raise ValueError("stock must be an integer")
    for key in BOOLEAN_FIELDS:
        if key in raw:
            fields[key] = parse_bool(raw[key])
    if "model3dUrl" in raw:
        fields["model3dUrl"] = raw["model3dUrl"] or None
    if "tags" in raw:
        fields["tags"] = parse_tags(raw["tags"])
    if "customizationOptions" in raw:
        options = _parse_json("customizationOptions", raw["customizationOptions"]) or {}
        try:
            fields["customizationOptions"] = CustomizationOptions.model_validate(options).model_dump(by_alias=True)
        except ValidationError as exc:
            raise ValueError(f"customizationOptions is invalid: {exc.errors()[0]['msg']}")
    if "ratings" in raw:
        ratings = _parse_json("ratings", raw["ratings"]) or []
        try:
            fields["ratings"] = [Rating.model_validate(item).model_dump(by_alias=True) for item in ratings]
        except (ValidationError, TypeError, AttributeError):
            raise ValueError("ratings must be a list of {userId, rating 1-5, comment}")
    return fields


def validated_product(doc: Dict[str, Any]) -> Dict[str, Any]:
    try:
        product = Product.model_validate(doc)
    except ValidationError as exc:
        first = exc.errors()[0]
        raise ApiError(400, f"{'.'.join(str(p) for p in first['loc'])}: {first['msg']}")
    return product.model_dump(by_alias=True)


def find_product_or_404(database: Database, product_id: str) -> Dict[str, Any]:
    oid = to_object_id(product_id)
    product = database[COLLECTION].find_one({"_id": oid}) if oid is not None else None
    if product is None:
        raise ApiError(404, "Product not found")
    return product


@router.post("", status_code=201)
def create_product(
    raw: Dict[str, Any] = Depends(product_form),
    images: Optional[List[UploadFile]] = File(None),
    database: Database = Depends(get_db),
):
    missing = [field for field in REQUIRED_FIELDS if not str(raw.get(field, "")).strip()]
    if missing:
        raise ApiError(400, f"Missing required fields: {', '.join(missing)}")
    try:
        fields = normalize_product_fields(raw)
    except ValueError as exc:
        raise ApiError(400, str(exc))
    fields.setdefault("isActive", True)
    doc = validated_product(fields)
    try:
        doc["images"] = save_product_images(images)
    except UploadRejected as exc:
        raise ApiError(400, str(exc))
    try:
        doc["_id"] = create_document(database, COLLECTION, doc)
    except PyMongoError as exc:
        logger.exception("Error creating product")
        discard_product_images(doc["images"])
        raise ApiError(500, "Error creating product", exc)
    logger.info(f"Created product {doc['_id']} ({doc['name']})")
    return {"success": True, "message": "Product created successfully", "product": serialize_document(doc)}


@router.get("")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "createdAt",
    order: str = "desc",
    database: Database = Depends(get_db),
):
    filter_q: Dict[str, Any] = {}
    if category:
        filter_q["category"] = category
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filter_q["$or"] = [{"name": pattern}, {"description": pattern}, {"tags": pattern}]
    direction = ASCENDING if order.lower() == "asc" else DESCENDING
    try:
        total = database[COLLECTION].count_documents(filter_q)
        cursor = (
            database[COLLECTION]
            .find(filter_q)
            .sort([(sort, direction), ("_id", direction)])
            .skip((page - 1) * limit)
            .limit(limit)
        )
        products = [serialize_document(doc) for doc in cursor]
    except PyMongoError as exc:
        logger.exception("Error listing products")
        raise ApiError(500, "Error listing products", exc)
    return {
        "success": True,
        "count": len(products),
        "total": total,
        "totalPages": -(-total // limit),
        "currentPage": page,
        "products": products,
    }


@router.get("/stats")
def get_product_stats(database: Database = Depends(get_db)):
    products = database[COLLECTION]
    try:
        category_counts = list(products.aggregate([
            {"$group": {"_id": "$category", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
        ]))
        stock = list(products.aggregate([{"$group": {"_id": None, "totalStock": {"$sum": "$stock"}}}]))
        stats = {
            "totalProducts": products.count_documents({}),
            "activeProducts": products.count_documents({"isActive": True}),
            "featuredProducts": products.count_documents({"isFeatured": True}),
            "products3D": products.count_documents({"has3dModel": True}),
            "categoryCounts": category_counts,
            "totalStock": stock[0]["totalStock"] if stock else 0,
        }
    except PyMongoError as exc:
        logger.exception("Error computing product statistics")
        raise ApiError(500, "Error computing product statistics", exc)
    return {"success": True, "stats": stats}


@router.get("/{product_id}")
def get_product(product_id: str, database: Database = Depends(get_db)):
    product = find_product_or_404(database, product_id)
    return {"success": True, "product": serialize_document(product)}


@router.put("/{product_id}")
def update_product(
    product_id: str,
    raw: Dict[str, Any] = Depends(product_form),
    images: Optional[List[UploadFile]] = File(None),
    database: Database = Depends(get_db),
):
    existing = find_product_or_404(database, product_id)
    try:
        changes = normalize_product_fields(raw)
    except ValueError as exc:
        raise ApiError(400, str(exc))
    # validate before any file is written
    merged = validated_product({**existing, **changes, "updatedAt": utcnow()})
    merged.pop("createdAt", None)

    try:
        new_images = save_product_images(images)
    except UploadRejected as exc:
        raise ApiError(400, str(exc))
    if new_images:
        if parse_bool(raw.get("keepImages", False)):
            merged["images"] = list(existing.get("images", [])) + new_images
        else:
            merged["images"] = new_images

    try:
        updated = database[COLLECTION].find_one_and_update(
            {"_id": existing["_id"]}, {"$set": merged}, return_document=ReturnDocument.AFTER
        )
    except PyMongoError as exc:
        logger.exception("Error updating product")
        discard_product_images(new_images)
        raise ApiError(500, "Error updating product", exc)
    if updated is None:
        discard_product_images(new_images)
        raise ApiError(404, "Product not found")
    return {"success": True, "message": "Product updated successfully", "product": serialize_document(updated)}


@router.post("/{product_id}/ratings", status_code=201)
def add_rating(
    product_id: str,
    payload: RatingIn,
    current: dict = Depends(require_admin),
    database: Database = Depends(get_db),
):
    product = find_product_or_404(database, product_id)
    rating = Rating(user_id=current["id"], rating=payload.rating, comment=payload.comment)
    ratings = [Rating.model_validate(item) for item in product.get("ratings", [])] + [rating]
    try:
        updated = database[COLLECTION].find_one_and_update(
            {"_id": product["_id"]},
            {
                "$push": {"ratings": rating.model_dump(by_alias=True)},
                "$set": {"averageRating": average_rating(ratings), "updatedAt": utcnow()},
            },
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as exc:
        logger.exception("Error adding rating")
        raise ApiError(500, "Error adding rating", exc)
    return {"success": True, "message": "Rating added", "product": serialize_document(updated)}


@router.delete("/{product_id}")
def delete_product(product_id: str, database: Database = Depends(get_db)):
    product = find_product_or_404(database, product_id)
    try:
        database[COLLECTION].delete_one({"_id": product["_id"]})
    except PyMongoError as exc:
        logger.exception("Error deleting product")
        raise ApiError(500, "Error deleting product", exc)
    logger.info(f"Deleted product {product_id}")
    return {"success": True, "message": "Product deleted successfully"}
