"""
Service factories

Build each service over the repository implementation matching
DATABASE_TYPE. Only MongoDB is available; asking for MySQL fails loudly
instead of handing out a half-working repository.
"""

import logging

import config
import database
from errors import DatabaseNotConfiguredError, UnsupportedDatabaseError
from repositories import (
    MongoCategoryRepository,
    MongoCommentRepository,
    MongoPasswordResetRepository,
    MongoProductRepository,
    MongoSubRepository,
    MongoUserRepository,
)
from services import (
    CategoryService,
    CommentService,
    PasswordResetService,
    ProductService,
    SubService,
    UserService,
)

log = logging.getLogger("storefront.factories")

MONGO_ALIASES = ("mongodb", "mongo", "mongoose")


def resolve_db(database_type=None, db=None):
    database_type = (database_type or config.DATABASE_TYPE).lower()
    if database_type not in MONGO_ALIASES:
        log.error("Unsupported DATABASE_TYPE %s", database_type)
        raise UnsupportedDatabaseError(database_type)
    db = database.db if db is None else db
    if db is None:
        raise DatabaseNotConfiguredError()
    return db


def create_user_service(database_type=None, db=None) -> UserService:
    return UserService(MongoUserRepository(resolve_db(database_type, db)))


def create_category_service(database_type=None, db=None) -> CategoryService:
    return CategoryService(MongoCategoryRepository(resolve_db(database_type, db)))


def create_sub_service(database_type=None, db=None) -> SubService:
    return SubService(MongoSubRepository(resolve_db(database_type, db)))


def create_product_service(database_type=None, db=None) -> ProductService:
    db = resolve_db(database_type, db)
    return ProductService(MongoProductRepository(db), MongoCommentRepository(db))


def create_comment_service(database_type=None, db=None) -> CommentService:
    return CommentService(MongoCommentRepository(resolve_db(database_type, db)))


def create_password_reset_service(database_type=None, db=None) -> PasswordResetService:
    return PasswordResetService(MongoPasswordResetRepository(resolve_db(database_type, db)))
