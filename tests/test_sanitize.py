from sanitize import sanitize


def test_sanitize_drops_operators_recursively():
    dirty = {
        "name": "ok",
        "$gt": "",
        "profile.role": "admin",
        "nested": {"$ne": None, "keep": [{"$where": "1", "v": 2}]},
    }
    assert sanitize(dirty) == {"name": "ok", "nested": {"keep": [{"v": 2}]}}


def test_sanitize_leaves_scalars():
    assert sanitize("$gt") == "$gt"
    assert sanitize([1, "a"]) == [1, "a"]
