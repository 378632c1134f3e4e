import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query

from conftest import identity_of
from ototamirci.exceptions import AuthorizationError, NotFoundError, StoreError, ValidationError
from ototamirci.models import Review, Shop
from ototamirci.services.reviews import aggregate_rating, list_reviews, round_rating, submit_review


def stored_rating(db, shop_id):
    db.expire_all()
    return db.query(Shop).filter(Shop.id == shop_id).one().rating


def test_upsert_then_recompute_scenario(db, make_user, make_shop):
    shop = make_shop(latitude=41.0, longitude=29.0)
    u1 = identity_of(make_user())
    u2 = identity_of(make_user())
    assert stored_rating(db, shop.id) == 0.0

    submit_review(db, u1, shop.id, 5, "great")
    assert stored_rating(db, shop.id) == 5.0

    submit_review(db, u2, shop.id, 3, "ok")
    assert stored_rating(db, shop.id) == 4.0

    review = submit_review(db, u1, shop.id, 1)
    assert stored_rating(db, shop.id) == 2.0
    assert review.rating == 1
    assert review.comment is None
    assert db.query(Review).filter(Review.shop_id == shop.id).count() == 2


def test_resubmitting_same_review_is_idempotent(db, make_user, make_shop):
    shop = make_shop()
    customer = identity_of(make_user())
    other = identity_of(make_user())
    submit_review(db, other, shop.id, 2, "meh")

    first = submit_review(db, customer, shop.id, 5, "great")
    rating_after_first = stored_rating(db, shop.id)
    second = submit_review(db, customer, shop.id, 5, "great")

    assert first.id == second.id
    assert stored_rating(db, shop.id) == rating_after_first == 3.5
    assert db.query(Review).filter(Review.shop_id == shop.id, Review.user_id == customer.id).count() == 1


def test_rating_is_rounded_to_two_decimals(db, make_user, make_shop):
    shop = make_shop()
    for rating in (5, 4, 4):
        submit_review(db, identity_of(make_user()), shop.id, rating)

    assert stored_rating(db, shop.id) == 4.33


def test_mechanic_cannot_review(db, make_user, make_shop):
    shop = make_shop()
    mechanic = identity_of(make_user("mechanic"))

    with pytest.raises(AuthorizationError):
        submit_review(db, mechanic, shop.id, 5)
    assert db.query(Review).count() == 0


@pytest.mark.parametrize("rating", [0, 6, -1, 4.5, "5", True])
def test_rating_outside_range_is_rejected(db, make_user, make_shop, rating):
    shop = make_shop()
    with pytest.raises(ValidationError):
        submit_review(db, identity_of(make_user()), shop.id, rating)


def test_review_for_missing_shop(db, make_user):
    with pytest.raises(NotFoundError):
        submit_review(db, identity_of(make_user()), 999, 4)


def test_store_failure_rolls_back_review_and_aggregate(db, make_user, make_shop, monkeypatch):
    shop = make_shop()
    customer = identity_of(make_user())
    submit_review(db, customer, shop.id, 4)

    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("connection lost"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(StoreError) as excinfo:
        submit_review(db, customer, shop.id, 1)
    monkeypatch.undo()

    assert "connection lost" not in excinfo.value.message
    assert stored_rating(db, shop.id) == 4.0
    assert db.query(Review).filter(Review.shop_id == shop.id).one().rating == 4


def test_interleaved_sessions_both_count(engine, session_factory, make_user, make_shop):
    shop_id = make_shop().id
    first = identity_of(make_user())
    second = identity_of(make_user())

    session_a = session_factory()
    session_b = session_factory()
    try:
        # Both sessions see the shop before either review lands
        assert session_a.get(Shop, shop_id).rating == 0.0
        assert session_b.get(Shop, shop_id).rating == 0.0

        submit_review(session_a, first, shop_id, 5)

        statements = []

        def record(conn, cursor, statement, parameters, context, executemany):
            statements.append(" ".join(statement.split()).upper())

        event.listen(engine, "before_cursor_execute", record)
        try:
            submit_review(session_b, second, shop_id, 2)
        finally:
            event.remove(engine, "before_cursor_execute", record)

        assert session_b.get(Shop, shop_id).rating == 3.5
        assert stored_rating(session_a, shop_id) == 3.5
    finally:
        session_a.close()
        session_b.close()

    def position(prefix):
        return next(i for i, sql in enumerate(statements) if sql.startswith(prefix))

    # Shop row first, then the review write, then the average over stored rows
    assert position("SELECT SHOPS.") < position("INSERT INTO REVIEWS")
    assert position("INSERT INTO REVIEWS") < position("SELECT AVG(REVIEWS.RATING)")
    assert position("SELECT AVG(REVIEWS.RATING)") < position("UPDATE SHOPS")


def test_shop_lookup_locks_the_row(db, make_user, make_shop, monkeypatch):
    shop = make_shop()
    locked = []
    real_with_for_update = Query.with_for_update

    def tracking_with_for_update(self, *args, **kwargs):
        locked.append(self.column_descriptions[0]["entity"])
        return real_with_for_update(self, *args, **kwargs)

    monkeypatch.setattr(Query, "with_for_update", tracking_with_for_update)
    submit_review(db, identity_of(make_user()), shop.id, 4)

    assert locked == [Shop]


def test_list_reviews_newest_first_with_average(db, make_user, make_shop):
    shop = make_shop()
    alice = make_user(name="Alice")
    bob = make_user(name="Bob")
    first = submit_review(db, identity_of(alice), shop.id, 5, "great")
    second = submit_review(db, identity_of(bob), shop.id, 2, "slow")

    result = list_reviews(db, shop.id)

    assert [r.id for r in result["reviews"]] == [second.id, first.id]
    assert [r.user_name for r in result["reviews"]] == ["Bob", "Alice"]
    assert result["average_rating"] == 3.5
    assert result["review_count"] == 2


def test_list_reviews_for_shop_without_reviews(db, make_shop):
    shop = make_shop()
    assert list_reviews(db, shop.id) == {"reviews": [], "average_rating": 0.0, "review_count": 0}


def test_list_reviews_for_missing_shop(db):
    with pytest.raises(NotFoundError):
        list_reviews(db, 42)


def test_aggregate_helpers():
    assert aggregate_rating([]) == 0.0
    assert aggregate_rating([5, 3]) == 4.0
    assert aggregate_rating([1, 2, 2]) == 1.67
    assert aggregate_rating([4, 5, 5, 5, 5, 5, 5, 4]) == 4.75
    assert round_rating(None) == 0.0
    assert round_rating(4.125) == 4.13
