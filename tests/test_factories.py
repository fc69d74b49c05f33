import pytest

import database
import factories
from errors import DatabaseNotConfiguredError, UnsupportedDatabaseError
from repositories import MongoCommentRepository, MongoProductRepository
from services import ProductService


def test_mongo_aliases_build_services(db):
    for alias in ("mongodb", "MONGOOSE", "mongo"):
        service = factories.create_product_service(alias)
        assert isinstance(service, ProductService)
        assert isinstance(service.product_repository, MongoProductRepository)
        assert isinstance(service.comment_repository, MongoCommentRepository)


def test_mysql_is_rejected(db):
    with pytest.raises(UnsupportedDatabaseError) as exc:
        factories.create_category_service("mysql")
    assert exc.value.message == "Unsupported DATABASE_TYPE: mysql"


def test_missing_database(monkeypatch):
    monkeypatch.setattr(database, "db", None)
    with pytest.raises(DatabaseNotConfiguredError):
        factories.create_comment_service()


def test_explicit_db_wins_over_global(db, monkeypatch):
    monkeypatch.setattr(database, "db", None)
    service = factories.create_sub_service(db=db)
    assert service.get_subs() == []
