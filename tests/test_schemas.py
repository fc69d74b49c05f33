import pytest
from pydantic import ValidationError

from schemas import Category, Comment, InvoiceOrder, Product, Sub, User, profile_picture, slugify


def test_slugify_strips_accents_and_symbols():
    assert slugify("  Élégant Laptops! ") == "elegant-laptops"


def test_slugify_falls_back_to_random_value():
    assert len(slugify("!!!")) == 32


def test_user_normalizes_email_and_lastname():
    user = User(email="  John.Doe@Example.COM ", password="x", lastname=" doe ")
    assert user.email == "john.doe@example.com"
    assert user.lastname == "DOE"
    assert user.role == "user"
    assert user.is_active is False


def test_user_requires_password_without_oauth_id():
    with pytest.raises(ValidationError):
        User(email="a@example.com")
    assert User(email="a@example.com", azure_id="azure-1").password is None


def test_user_rejects_unknown_role():
    with pytest.raises(ValidationError):
        User(email="a@example.com", password="x", role="superuser")


def test_profile_picture_uses_initials():
    assert "name=AL" in profile_picture("ada", "LOVELACE")
    assert profile_picture("ada", "LOVELACE", "p.png") == "p.png"
    assert profile_picture(None, None).startswith("https://ui-avatars.com/api/?name=&")


def test_category_name_length_and_slug():
    assert Category(name="Home Office").slug == "home-office"
    with pytest.raises(ValidationError):
        Category(name="ab")
    with pytest.raises(ValidationError):
        Category(name="x" * 33)


def test_sub_requires_parent():
    with pytest.raises(ValidationError):
        Sub(name="Gaming")


def test_product_enums_and_limits():
    base = {"title": "Pixel", "description": "d", "price": 10, "category": "c", "sub": "s"}
    assert Product(**base).slug == "pixel"
    with pytest.raises(ValidationError):
        Product(**base, brand="Nokia")
    with pytest.raises(ValidationError):
        Product(**base, color="Pink")
    with pytest.raises(ValidationError):
        Product(**{**base, "title": "t" * 33})
    with pytest.raises(ValidationError):
        Product(**{**base, "price": -1})


def test_comment_rating_bounds():
    assert Comment(product="p", user="u", text=" nice ").text == "nice"
    with pytest.raises(ValidationError):
        Comment(product="p", user="u", text="ok", rating=6)
    with pytest.raises(ValidationError):
        Comment(product="p", user="u", text="x" * 1001)


def test_invoice_total_defaults_to_item_sum():
    order = InvoiceOrder(
        user={"name": "Ada", "email": "ada@example.com"},
        items=[
            {"product": {"title": "Mouse", "price": 19.99}, "quantity": 2},
            {"product": {"title": "Pad", "price": 5}, "quantity": 1},
        ],
    )
    assert order.computed_total == 44.98
    assert order.model_copy(update={"total": 40}).computed_total == 40
