"""
Services

Business operations on top of the repository abstractions. Services never
touch pymongo directly, so any repository implementation can be injected.
"""

import hashlib
import secrets
from typing import Any, Dict, List, Optional

from errors import NotFoundError, ValidationError
from repositories import (
    CategoryRepository,
    CommentRepository,
    PasswordResetRepository,
    ProductRepository,
    SubRepository,
    UserRepository,
)


class UserService:
    def __init__(self, user_repository: UserRepository):
        self.user_repository = user_repository

    def create_user(self, data) -> Dict[str, Any]:
        return self.user_repository.create_user(data)

    def get_user(self, user_id: str) -> Dict[str, Any]:
        user = self.user_repository.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User")
        return user

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.user_repository.get_user_by_email(email)

    def update_cart(self, user_id: str, items) -> Dict[str, Any]:
        return self.user_repository.update_cart(user_id, items)

    def delete_user(self, user_id: str) -> Dict[str, Any]:
        return self.user_repository.delete_user(user_id)


class CategoryService:
    def __init__(self, category_repository: CategoryRepository):
        self.category_repository = category_repository

    def get_categories(self) -> List[Dict[str, Any]]:
        return self.category_repository.get_categories()

    def get_category_by_slug(self, slug: str) -> Dict[str, Any]:
        category = self.category_repository.get_category_by_slug(slug)
        if category is None:
            raise NotFoundError("Category")
        return category

    def get_category_by_id(self, category_id: str) -> Dict[str, Any]:
        category = self.category_repository.get_category_by_id(category_id)
        if category is None:
            raise NotFoundError("Category")
        return category

    def create_category(self, data) -> Dict[str, Any]:
        return self.category_repository.create_category(data)

    def find_or_create_category(self, data) -> Dict[str, Any]:
        return self.category_repository.find_or_create_category(data)

    def update_category(self, category_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.category_repository.update_category(category_id, data)

    def delete_category(self, category_id: str) -> Dict[str, Any]:
        return self.category_repository.delete_category(category_id)


class SubService:
    def __init__(self, sub_repository: SubRepository):
        self.sub_repository = sub_repository

    def get_subs(self) -> List[Dict[str, Any]]:
        return self.sub_repository.get_subs()

    def get_sub_by_slug(self, slug: str) -> Dict[str, Any]:
        sub = self.sub_repository.get_sub_by_slug(slug)
        if sub is None:
            raise NotFoundError("Sub-category")
        return sub

    def get_subs_by_category(self, category_id: str) -> List[Dict[str, Any]]:
        return self.sub_repository.get_subs_by_category(category_id)

    def create_sub(self, data) -> Dict[str, Any]:
        return self.sub_repository.create_sub(data)

    def find_or_create_sub(self, data) -> Dict[str, Any]:
        return self.sub_repository.find_or_create_sub(data)

    def update_sub(self, sub_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.sub_repository.update_sub(sub_id, data)

    def delete_sub(self, sub_id: str) -> Dict[str, Any]:
        return self.sub_repository.delete_sub(sub_id)


class ProductService:
    def __init__(self, product_repository: ProductRepository, comment_repository: Optional[CommentRepository] = None):
        self.product_repository = product_repository
        self.comment_repository = comment_repository

    def find_products(self, **filters) -> List[Dict[str, Any]]:
        return self.product_repository.find_products(**filters)

    def get_latest_products(self, limit: int = 3) -> List[Dict[str, Any]]:
        return self.product_repository.get_latest_products(limit)

    def get_product_by_slug(self, slug: str) -> Dict[str, Any]:
        product = self.product_repository.get_product_by_slug(slug)
        if product is None:
            raise NotFoundError("Product")
        return product

    def get_product_by_id(self, product_id: str) -> Dict[str, Any]:
        product = self.product_repository.get_product_by_id(product_id)
        if product is None:
            raise NotFoundError("Product")
        return product

    def create_product(self, data) -> Dict[str, Any]:
        return self.product_repository.create_product(data)

    def find_or_create_product(self, data) -> Dict[str, Any]:
        return self.product_repository.find_or_create_product(data)

    def update_product(self, product_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.product_repository.update_product(product_id, data)

    def delete_product(self, product_id: str) -> Dict[str, Any]:
        return self.product_repository.delete_product(product_id)

    def rate_product(self, product_id: str, user_id: str, star: int) -> Dict[str, Any]:
        """Sets the user's star for a product, replacing any earlier one."""
        if not isinstance(star, int) or isinstance(star, bool) or not 1 <= star <= 5:
            raise ValidationError("Rating must be an integer between 1 and 5")
        product = self.product_repository.set_rating(product_id, user_id, star)
        return {"product": product, "summary": self.product_repository.rating_summary(product_id)}

    def get_user_rating(self, product_id: str, user_id: str) -> Optional[int]:
        return self.product_repository.get_user_rating(product_id, user_id)

    def rating_overview(self, product_id: str) -> Dict[str, Any]:
        """Star ratings stored on the product plus the ratings left in comments."""
        self.get_product_by_id(product_id)
        overview = {"stars": self.product_repository.rating_summary(product_id)}
        if self.comment_repository is not None:
            overview["comments"] = self.comment_repository.rating_stats(product_id)
        return overview

    def top_rated(self, limit: int = 5) -> List[Dict[str, Any]]:
        return self.product_repository.top_rated(limit)


class CommentService:
    def __init__(self, comment_repository: CommentRepository):
        self.comment_repository = comment_repository

    def add_comment(self, data) -> Dict[str, Any]:
        return self.comment_repository.add_comment(data)

    def get_all_comments(self) -> List[Dict[str, Any]]:
        return self.comment_repository.get_all_comments()

    def get_comments_by_product(self, product_id: str) -> List[Dict[str, Any]]:
        return self.comment_repository.get_comments_by_product(product_id)

    def get_comments_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        return self.comment_repository.get_comments_by_user(user_id)

    def get_comment_by_user_and_product(self, user_id: str, product_id: str) -> Optional[Dict[str, Any]]:
        return self.comment_repository.get_comment_by_user_and_product(user_id, product_id)

    def update_comment(self, comment_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.comment_repository.update_comment(comment_id, data)

    def delete_comment(self, comment_id: str) -> Dict[str, Any]:
        return self.comment_repository.delete_comment(comment_id)

    def rating_stats(self, product_id: str) -> Dict[str, Any]:
        return self.comment_repository.rating_stats(product_id)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class PasswordResetService:
    def __init__(self, password_reset_repository: PasswordResetRepository):
        self.password_reset_repository = password_reset_repository

    def issue_token(self, user_id: str) -> str:
        """Replaces any pending token for the user and returns the new raw token."""
        self.password_reset_repository.delete_tokens_for_user(user_id)
        token = secrets.token_urlsafe(32)
        self.password_reset_repository.create_token(user_id, token, hash_token(token))
        return token

    def verify_token(self, token: str) -> Optional[str]:
        record = self.password_reset_repository.find_by_hashed_token(hash_token(token))
        return record["user_id"] if record else None

    def consume_token(self, token: str) -> str:
        user_id = self.verify_token(token)
        if user_id is None:
            raise ValidationError("Invalid or expired reset token")
        self.password_reset_repository.delete_tokens_for_user(user_id)
        return user_id
