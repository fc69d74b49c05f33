"""
Repositories

Each entity has an abstract repository the services depend on and a MongoDB
implementation built on pymongo. Reads return serialized dicts (`id` instead
of `_id`, ObjectIds as strings); relations are resolved the way an ORM
populate would, with one extra query per related collection.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from bson import ObjectId
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

import schemas
from auth import hash_password, is_hashed
from database import create_document, now_utc, oid, serialize_doc
from errors import DuplicateError, NotFoundError, ValidationError
from sanitize import sanitize

log = logging.getLogger("storefront.repositories")

M = TypeVar("M", bound=BaseModel)

USER_PRIVATE_FIELDS = ("password", "refresh_token", "access_token")


def validate(model: Type[M], data: Any) -> M:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        messages = []
        for err in e.errors():
            loc = ".".join(str(part) for part in err["loc"])
            messages.append(f"{loc}: {err['msg']}" if loc else err["msg"])
        raise ValidationError(errors=messages)


def duplicate_error(e: DuplicateKeyError, resource: str) -> DuplicateError:
    key_value = (e.details or {}).get("keyValue") or {}
    if key_value:
        field, value = next(iter(key_value.items()))
        return DuplicateError(f'A {resource} with this {field} "{value}" already exists')
    return DuplicateError()


def fix_image_path(image: str) -> str:
    if image.startswith("/uploads/") or image.startswith("http"):
        return image
    return f"/uploads/{image}"


def average_rating(ratings: Iterable[Dict[str, Any]]) -> float:
    stars = [r.get("star") or 0 for r in ratings or []]
    return round(sum(stars) / len(stars), 2) if stars else 0


class MongoRepository:
    collection_name: str = ""

    def __init__(self, db):
        self.db = db
        self.collection = db[self.collection_name]

    def _populate(self, docs: List[Dict[str, Any]], field: str, collection: str,
                  projection: Iterable[str]) -> List[Dict[str, Any]]:
        ids = {d[field] for d in docs if isinstance(d.get(field), ObjectId)}
        if not ids:
            return docs
        fields = {name: 1 for name in projection}
        related = {r["_id"]: r for r in self.db[collection].find({"_id": {"$in": list(ids)}}, fields)}
        for d in docs:
            if d.get(field) in related:
                d[field] = related[d[field]]
        return docs


# --------------------- Users ---------------------

class UserRepository(ABC):
    @abstractmethod
    def create_user(self, data) -> Dict[str, Any]: ...

    @abstractmethod
    def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def update_cart(self, user_id: str, items) -> Dict[str, Any]: ...

    @abstractmethod
    def delete_user(self, user_id: str) -> Dict[str, Any]: ...


class MongoUserRepository(MongoRepository, UserRepository):
    collection_name = "user"

    @staticmethod
    def _public(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if doc is None:
            return None
        out = serialize_doc(doc)
        for name in USER_PRIVATE_FIELDS:
            out.pop(name, None)
        out["picture"] = schemas.profile_picture(out.get("firstname"), out.get("lastname"), out.get("picture"))
        return out

    def create_user(self, data) -> Dict[str, Any]:
        user = validate(schemas.User, data)
        doc = user.model_dump()
        if doc.get("password") and not is_hashed(doc["password"]):
            doc["password"] = hash_password(doc["password"])
        for field in ("google_id", "azure_id"):
            if doc.get(field) is None:
                doc.pop(field, None)
        doc["cart"] = [{**item, "product": oid(item["product"])} for item in doc["cart"]]
        try:
            inserted_id = oid(create_document(self.collection_name, doc, self.db))
        except DuplicateKeyError:
            raise DuplicateError("Email already registered")
        return self._public(self.collection.find_one({"_id": inserted_id}))

    def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._public(self.collection.find_one({"_id": oid(user_id)}))

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self._public(self.collection.find_one({"email": email.strip().lower()}))

    def update_cart(self, user_id: str, items) -> Dict[str, Any]:
        cart = [validate(schemas.CartItem, item).model_dump() for item in items]
        for item in cart:
            item["product"] = oid(item["product"])
        doc = self.collection.find_one_and_update(
            {"_id": oid(user_id)},
            {"$set": {"cart": cart, "updated_at": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFoundError("User")
        return self._public(doc)

    def delete_user(self, user_id: str) -> Dict[str, Any]:
        doc = self.collection.find_one_and_delete({"_id": oid(user_id)})
        if doc is None:
            raise NotFoundError("User")
        return self._public(doc)


# --------------------- Categories ---------------------

class CategoryRepository(ABC):
    @abstractmethod
    def get_categories(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def get_category_by_slug(self, slug: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def get_category_by_id(self, category_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def create_category(self, data) -> Dict[str, Any]: ...

    @abstractmethod
    def find_or_create_category(self, data) -> Dict[str, Any]: ...

    @abstractmethod
    def update_category(self, category_id: str, data: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    def delete_category(self, category_id: str) -> Dict[str, Any]: ...


class MongoCategoryRepository(MongoRepository, CategoryRepository):
    collection_name = "category"

    def get_categories(self) -> List[Dict[str, Any]]:
        return serialize_doc(list(self.collection.find().sort("name", 1)))

    def get_category_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        return serialize_doc(self.collection.find_one({"slug": slug.lower()}))

    def get_category_by_id(self, category_id: str) -> Optional[Dict[str, Any]]:
        return serialize_doc(self.collection.find_one({"_id": oid(category_id)}))

    def create_category(self, data) -> Dict[str, Any]:
        category = validate(schemas.Category, data)
        doc = category.model_dump()
        doc["subs"] = [oid(s) for s in doc["subs"]]
        try:
            inserted_id = oid(create_document(self.collection_name, doc, self.db))
        except DuplicateKeyError as e:
            raise duplicate_error(e, "category")
        return self.get_category_by_id(inserted_id)

    def find_or_create_category(self, data) -> Dict[str, Any]:
        category = validate(schemas.Category, data)
        existing = self.collection.find_one({"name": category.name})
        if existing:
            return serialize_doc(existing)
        return self.create_category(category)

    def update_category(self, category_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        update = sanitize(dict(data))
        update.pop("subs", None)
        if "name" in update:
            checked = validate(schemas.Category, {"name": update["name"], "slug": update.get("slug")})
            update["name"], update["slug"] = checked.name, checked.slug
        update["updated_at"] = now_utc()
        try:
            doc = self.collection.find_one_and_update(
                {"_id": oid(category_id)}, {"$set": update}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as e:
            raise duplicate_error(e, "category")
        if doc is None:
            raise NotFoundError("Category")
        return serialize_doc(doc)

    def delete_category(self, category_id: str) -> Dict[str, Any]:
        doc = self.collection.find_one_and_delete({"_id": oid(category_id)})
        if doc is None:
            raise NotFoundError("Category")
        return serialize_doc(doc)


# --------------------- Sub-categories ---------------------

class SubRepository(ABC):
    @abstractmethod
    def get_subs(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def get_sub_by_slug(self, slug: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def get_sub_by_id(self, sub_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def get_subs_by_category(self, category_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def create_sub(self, data) -> Dict[str, Any]: ...

    @abstractmethod
    def find_or_create_sub(self, data) -> Dict[str, Any]: ...

    @abstractmethod
    def update_sub(self, sub_id: str, data: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    def delete_sub(self, sub_id: str) -> Dict[str, Any]: ...


class MongoSubRepository(MongoRepository, SubRepository):
    """Keeps every category's `subs` array in step with the subs pointing at it."""
    collection_name = "sub"

    def _read(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return serialize_doc(self._populate(docs, "parent", "category", ("name", "slug")))

    def get_subs(self) -> List[Dict[str, Any]]:
        return self._read(list(self.collection.find().sort("name", 1)))

    def get_sub_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        doc = self.collection.find_one({"slug": slug.lower()})
        return self._read([doc])[0] if doc else None

    def get_sub_by_id(self, sub_id: str) -> Optional[Dict[str, Any]]:
        doc = self.collection.find_one({"_id": oid(sub_id)})
        return self._read([doc])[0] if doc else None

    def get_subs_by_category(self, category_id: str) -> List[Dict[str, Any]]:
        return serialize_doc(list(self.collection.find({"parent": oid(category_id)}).sort("name", 1)))

    def _require_category(self, category_id: ObjectId) -> None:
        if not self.db["category"].find_one({"_id": category_id}, {"_id": 1}):
            raise NotFoundError(message=f"Category with ID {category_id} does not exist")

    def create_sub(self, data) -> Dict[str, Any]:
        sub = validate(schemas.Sub, data)
        doc = sub.model_dump()
        doc["parent"] = oid(doc["parent"])
        self._require_category(doc["parent"])
        try:
            inserted_id = oid(create_document(self.collection_name, doc, self.db))
        except DuplicateKeyError as e:
            raise duplicate_error(e, "sub-category")
        self.db["category"].update_one({"_id": doc["parent"]}, {"$addToSet": {"subs": inserted_id}})
        return self.get_sub_by_id(inserted_id)

    def find_or_create_sub(self, data) -> Dict[str, Any]:
        sub = validate(schemas.Sub, data)
        existing = self.collection.find_one({"name": sub.name})
        if existing:
            return self._read([existing])[0]
        return self.create_sub(sub)

    def update_sub(self, sub_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        _id = oid(sub_id)
        current = self.collection.find_one({"_id": _id})
        if current is None:
            raise NotFoundError("Sub-category")
        update = sanitize(dict(data))
        if "name" in update:
            checked = validate(schemas.Sub, {"name": update["name"], "slug": update.get("slug"),
                                             "parent": str(current["parent"])})
            update["name"], update["slug"] = checked.name, checked.slug
        if "parent" in update:
            update["parent"] = oid(update["parent"])
            self._require_category(update["parent"])
        update["updated_at"] = now_utc()
        try:
            self.collection.update_one({"_id": _id}, {"$set": update})
        except DuplicateKeyError as e:
            raise duplicate_error(e, "sub-category")
        new_parent = update.get("parent")
        if new_parent is not None and new_parent != current["parent"]:
            self.db["category"].update_one({"_id": current["parent"]}, {"$pull": {"subs": _id}})
            self.db["category"].update_one({"_id": new_parent}, {"$addToSet": {"subs": _id}})
        return self.get_sub_by_id(_id)

    def delete_sub(self, sub_id: str) -> Dict[str, Any]:
        doc = self.collection.find_one_and_delete({"_id": oid(sub_id)})
        if doc is None:
            raise NotFoundError("Sub-category")
        self.db["category"].update_one({"_id": doc["parent"]}, {"$pull": {"subs": doc["_id"]}})
        return serialize_doc(doc)


# --------------------- Products ---------------------

class ProductRepository(ABC):
    @abstractmethod
    def find_products(self, category: Optional[str] = None, sub: Optional[str] = None, q: Optional[str] = None,
                      min_price: Optional[float] = None, max_price: Optional[float] = None,
                      limit: int = 0) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def get_latest_products(self, limit: int) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def get_product_by_slug(self, slug: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def get_product_by_id(self, product_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def create_product(self, data) -> Dict[str, Any]: ...

    @abstractmethod
    def find_or_create_product(self, data) -> Dict[str, Any]: ...

    @abstractmethod
    def update_product(self, product_id: str, data: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    def delete_product(self, product_id: str) -> Dict[str, Any]: ...

    @abstractmethod
    def set_rating(self, product_id: str, user_id: str, star: int) -> Dict[str, Any]: ...

    @abstractmethod
    def get_user_rating(self, product_id: str, user_id: str) -> Optional[int]: ...

    @abstractmethod
    def rating_summary(self, product_id: str) -> Dict[str, Any]: ...

    @abstractmethod
    def top_rated(self, limit: int) -> List[Dict[str, Any]]: ...


class MongoProductRepository(MongoRepository, ProductRepository):
    collection_name = "product"

    def _comment_counts(self, ids: List[ObjectId]) -> Dict[ObjectId, int]:
        pipeline = [
            {"$match": {"product": {"$in": ids}}},
            {"$group": {"_id": "$product", "count": {"$sum": 1}}},
        ]
        return {row["_id"]: row["count"] for row in self.db["comment"].aggregate(pipeline)}

    def _read(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self._populate(docs, "category", "category", ("name", "slug"))
        self._populate(docs, "sub", "sub", ("name", "slug"))
        counts = self._comment_counts([d["_id"] for d in docs])
        out = []
        for doc in docs:
            product = serialize_doc(doc)
            product["images"] = [fix_image_path(i) for i in product.get("images") or []]
            product["averageRating"] = average_rating(product.get("rating"))
            product["commentsCount"] = counts.get(doc["_id"], 0)
            out.append(product)
        return out

    def _read_one(self, doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        return self._read([doc])[0] if doc else None

    def _check_relations(self, category_id: ObjectId, sub_id: ObjectId) -> None:
        category = self.db["category"].find_one({"_id": category_id})
        if not category:
            raise ValidationError(f"Category with ID {category_id} does not exist")
        sub = self.db["sub"].find_one({"_id": sub_id})
        if not sub:
            raise ValidationError(f"Sub-category with ID {sub_id} does not exist")
        if sub["parent"] != category_id:
            raise ValidationError(f'Sub-category "{sub["name"]}" does not belong to category "{category["name"]}"')

    def find_products(self, category: Optional[str] = None, sub: Optional[str] = None, q: Optional[str] = None,
                      min_price: Optional[float] = None, max_price: Optional[float] = None,
                      limit: int = 0) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if category:
            query["category"] = oid(category)
        if sub:
            query["sub"] = oid(sub)
        if q:
            # literal text match, user input never becomes regex syntax
            pattern = re.escape(q)
            query["$or"] = [
                {"title": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
            ]
        price: Dict[str, float] = {}
        if min_price is not None:
            price["$gte"] = min_price
        if max_price is not None:
            price["$lte"] = max_price
        if price:
            query["price"] = price
        cursor = self.collection.find(query).sort("created_at", DESCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return self._read(list(cursor))

    def get_latest_products(self, limit: int) -> List[Dict[str, Any]]:
        return self._read(list(self.collection.find().sort("created_at", DESCENDING).limit(limit)))

    def get_product_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        return self._read_one(self.collection.find_one({"slug": slug.lower()}))

    def get_product_by_id(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self._read_one(self.collection.find_one({"_id": oid(product_id)}))

    def create_product(self, data) -> Dict[str, Any]:
        product = validate(schemas.Product, data)
        doc = product.model_dump()
        doc["category"], doc["sub"] = oid(doc["category"]), oid(doc["sub"])
        self._check_relations(doc["category"], doc["sub"])
        doc["rating"] = [{"star": r["star"], "posted_by": oid(r["posted_by"])} for r in doc["rating"]]
        try:
            inserted_id = oid(create_document(self.collection_name, doc, self.db))
        except DuplicateKeyError as e:
            raise duplicate_error(e, "product")
        return self.get_product_by_id(inserted_id)

    def find_or_create_product(self, data) -> Dict[str, Any]:
        product = validate(schemas.Product, data)
        existing = self.collection.find_one({"title": product.title})
        if existing:
            return self._read_one(existing)
        return self.create_product(product)

    def update_product(self, product_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        _id = oid(product_id)
        current = self.collection.find_one({"_id": _id})
        if current is None:
            raise NotFoundError("Product")
        update = sanitize(dict(data))
        update.pop("rating", None)
        merged = {k: current[k] for k in schemas.Product.model_fields if k in current and k != "rating"}
        merged["category"], merged["sub"] = str(current["category"]), str(current["sub"])
        if "title" in update and "slug" not in update:
            merged.pop("slug", None)
        merged.update(update)
        product = validate(schemas.Product, merged)

        update = product.model_dump(exclude={"rating"})
        update["category"], update["sub"] = oid(update["category"]), oid(update["sub"])
        if update["category"] != current["category"] or update["sub"] != current["sub"]:
            self._check_relations(update["category"], update["sub"])
        update["updated_at"] = now_utc()
        try:
            self.collection.update_one({"_id": _id}, {"$set": update})
        except DuplicateKeyError as e:
            raise duplicate_error(e, "product")
        return self.get_product_by_id(_id)

    def delete_product(self, product_id: str) -> Dict[str, Any]:
        doc = self.collection.find_one_and_delete({"_id": oid(product_id)})
        if doc is None:
            raise NotFoundError("Product")
        removed = self.db["comment"].delete_many({"product": doc["_id"]}).deleted_count
        log.info("Deleted product %s and %d comment(s)", doc["_id"], removed)
        return serialize_doc(doc)

    def set_rating(self, product_id: str, user_id: str, star: int) -> Dict[str, Any]:
        _id, user = oid(product_id), oid(user_id)
        doc = self.collection.find_one({"_id": _id}, {"rating": 1})
        if doc is None:
            raise NotFoundError("Product")
        ratings = doc.get("rating") or []
        for rating in ratings:
            if rating.get("posted_by") == user:
                rating["star"] = star
                break
        else:
            ratings.append({"star": star, "posted_by": user})
        self.collection.update_one({"_id": _id}, {"$set": {"rating": ratings, "updated_at": now_utc()}})
        return self.get_product_by_id(_id)

    def get_user_rating(self, product_id: str, user_id: str) -> Optional[int]:
        doc = self.collection.find_one({"_id": oid(product_id)}, {"rating": 1})
        if doc is None:
            raise NotFoundError("Product")
        user = oid(user_id)
        for rating in doc.get("rating") or []:
            if rating.get("posted_by") == user:
                return rating.get("star")
        return None

    def rating_summary(self, product_id: str) -> Dict[str, Any]:
        pipeline = [
            {"$match": {"_id": oid(product_id)}},
            {"$unwind": "$rating"},
            {"$group": {
                "_id": "$_id",
                "averageRating": {"$avg": "$rating.star"},
                "ratingsCount": {"$sum": 1},
            }},
        ]
        rows = list(self.collection.aggregate(pipeline))
        if not rows:
            return {"averageRating": 0, "ratingsCount": 0}
        return {"averageRating": round(rows[0]["averageRating"], 2), "ratingsCount": rows[0]["ratingsCount"]}

    def top_rated(self, limit: int) -> List[Dict[str, Any]]:
        pipeline = [
            {"$unwind": "$rating"},
            {"$group": {
                "_id": "$_id",
                "title": {"$first": "$title"},
                "slug": {"$first": "$slug"},
                "price": {"$first": "$price"},
                "averageRating": {"$avg": "$rating.star"},
                "ratingsCount": {"$sum": 1},
            }},
            {"$sort": {"averageRating": -1, "ratingsCount": -1}},
            {"$limit": limit},
        ]
        rows = serialize_doc(list(self.collection.aggregate(pipeline)))
        for row in rows:
            row["averageRating"] = round(row["averageRating"], 2)
        return rows


# --------------------- Comments ---------------------

class CommentRepository(ABC):
    @abstractmethod
    def add_comment(self, data) -> Dict[str, Any]: ...

    @abstractmethod
    def get_comment_by_id(self, comment_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def get_all_comments(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def get_comments_by_product(self, product_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def get_comments_by_user(self, user_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def get_comment_by_user_and_product(self, user_id: str, product_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def update_comment(self, comment_id: str, data: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    def delete_comment(self, comment_id: str) -> Dict[str, Any]: ...

    @abstractmethod
    def rating_stats(self, product_id: str) -> Dict[str, Any]: ...


class MongoCommentRepository(MongoRepository, CommentRepository):
    collection_name = "comment"

    USER_FIELDS = ("firstname", "lastname", "picture")
    PRODUCT_FIELDS = ("title", "slug", "price")

    def _read(self, docs, users: bool = True, products: bool = True) -> List[Dict[str, Any]]:
        if users:
            self._populate(docs, "user", "user", self.USER_FIELDS)
        if products:
            self._populate(docs, "product", "product", self.PRODUCT_FIELDS)
        return serialize_doc(docs)

    def add_comment(self, data) -> Dict[str, Any]:
        comment = validate(schemas.Comment, data)
        doc = comment.model_dump()
        doc["product"], doc["user"] = oid(doc["product"]), oid(doc["user"])
        if not self.db["product"].find_one({"_id": doc["product"]}, {"_id": 1}):
            raise NotFoundError(message=f"Product with ID {doc['product']} not found.")
        if not self.db["user"].find_one({"_id": doc["user"]}, {"_id": 1}):
            raise NotFoundError(message=f"User with ID {doc['user']} not found.")
        try:
            inserted_id = oid(create_document(self.collection_name, doc, self.db))
        except DuplicateKeyError:
            raise DuplicateError("You have already commented on this product")
        return self.get_comment_by_id(inserted_id)

    def get_comment_by_id(self, comment_id: str) -> Optional[Dict[str, Any]]:
        doc = self.collection.find_one({"_id": oid(comment_id)})
        return self._read([doc])[0] if doc else None

    def get_all_comments(self) -> List[Dict[str, Any]]:
        return self._read(list(self.collection.find().sort("created_at", DESCENDING)))

    def get_comments_by_product(self, product_id: str) -> List[Dict[str, Any]]:
        docs = list(self.collection.find({"product": oid(product_id)}).sort("created_at", DESCENDING))
        return self._read(docs, products=False)

    def get_comments_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        docs = list(self.collection.find({"user": oid(user_id)}).sort("created_at", DESCENDING))
        return self._read(docs, users=False)

    def get_comment_by_user_and_product(self, user_id: str, product_id: str) -> Optional[Dict[str, Any]]:
        return serialize_doc(self.collection.find_one({"user": oid(user_id), "product": oid(product_id)}))

    def update_comment(self, comment_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        _id = oid(comment_id)
        current = self.collection.find_one({"_id": _id})
        if current is None:
            raise NotFoundError("Comment")
        update = {k: v for k, v in sanitize(dict(data)).items() if k in ("text", "rating")}
        merged = {"product": str(current["product"]), "user": str(current["user"]),
                  "text": current["text"], "rating": current.get("rating"), **update}
        checked = validate(schemas.Comment, merged)
        self.collection.update_one(
            {"_id": _id},
            {"$set": {"text": checked.text, "rating": checked.rating, "updated_at": now_utc()}},
        )
        return self.get_comment_by_id(_id)

    def delete_comment(self, comment_id: str) -> Dict[str, Any]:
        doc = self.collection.find_one_and_delete({"_id": oid(comment_id)})
        if doc is None:
            raise NotFoundError("Comment")
        return serialize_doc(doc)

    def rating_stats(self, product_id: str) -> Dict[str, Any]:
        pipeline = [
            {"$match": {"product": oid(product_id), "rating": {"$ne": None}}},
            {"$group": {
                "_id": "$product",
                "averageRating": {"$avg": "$rating"},
                "ratingsCount": {"$sum": 1},
            }},
        ]
        rows = list(self.collection.aggregate(pipeline))
        if not rows:
            return {"averageRating": 0, "ratingsCount": 0}
        return {"averageRating": round(rows[0]["averageRating"], 2), "ratingsCount": rows[0]["ratingsCount"]}


# --------------------- Password reset tokens ---------------------

class PasswordResetRepository(ABC):
    @abstractmethod
    def create_token(self, user_id: str, token: str, hashed_token: str) -> Dict[str, Any]: ...

    @abstractmethod
    def find_by_hashed_token(self, hashed_token: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def delete_tokens_for_user(self, user_id: str) -> int: ...


class MongoPasswordResetRepository(MongoRepository, PasswordResetRepository):
    collection_name = "password_reset_token"

    def create_token(self, user_id: str, token: str, hashed_token: str) -> Dict[str, Any]:
        record = validate(schemas.PasswordResetToken,
                          {"user_id": str(user_id), "token": token, "hashed_token": hashed_token})
        doc = record.model_dump()
        doc["user_id"] = oid(doc["user_id"])
        try:
            inserted_id = oid(create_document(self.collection_name, doc, self.db))
        except DuplicateKeyError as e:
            raise duplicate_error(e, "reset token")
        return serialize_doc(self.collection.find_one({"_id": inserted_id}))

    def find_by_hashed_token(self, hashed_token: str) -> Optional[Dict[str, Any]]:
        return serialize_doc(self.collection.find_one({"hashed_token": hashed_token}))

    def delete_tokens_for_user(self, user_id: str) -> int:
        return self.collection.delete_many({"user_id": oid(user_id)}).deleted_count
