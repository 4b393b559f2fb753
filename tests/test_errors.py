import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from fishstore import errors


def build_app(debug):
    app = FastAPI()
    errors.register_handlers(app, debug=debug)

    @app.get("/exhausted")
    def exhausted():
        raise errors.OrderNumberExhausted()

    @app.get("/upstream")
    def upstream():
        raise errors.UpstreamServiceFailure("image host")

    @app.get("/boom")
    def boom():
        raise RuntimeError("disk on fire")

    @app.get("/teapot")
    def teapot():
        raise HTTPException(status_code=418, detail="I'm a teapot")

    @app.get("/typed")
    def typed(page: int):
        return {"page": page}

    return app


@pytest.fixture()
def error_client():
    return TestClient(build_app(debug=False), raise_server_exceptions=False)


def test_store_errors_map_to_their_status(error_client):
    response = error_client.get("/exhausted")

    assert response.status_code == 503
    assert response.json() == {"message": "Could not allocate an order number, please try again"}


def test_upstream_failure(error_client):
    response = error_client.get("/upstream")

    assert response.status_code == 502
    assert response.json() == {"message": "image host request failed"}


def test_request_validation_is_400(error_client):
    response = error_client.get("/typed", params={"page": "first"})

    assert response.status_code == 400
    assert response.json()["message"] == "Validation failed"
    assert response.json()["errors"][0]["field"] == "page"


def test_unexpected_error_hides_details(error_client):
    response = error_client.get("/boom")

    assert response.status_code == 500
    assert response.json() == {"message": "Something went wrong!"}


def test_unexpected_error_detail_in_development():
    client = TestClient(build_app(debug=True), raise_server_exceptions=False)

    response = client.get("/boom")

    assert response.json() == {"message": "Something went wrong!", "error": "disk on fire"}


def test_unknown_route_uses_message_body(error_client):
    response = error_client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"message": "Route not found"}


def test_wrong_method_uses_message_body(error_client):
    response = error_client.delete("/typed")

    assert response.status_code == 405
    assert response.json() == {"message": "Method Not Allowed"}
    assert "GET" in response.headers["allow"]


def test_http_exception_keeps_its_detail(error_client):
    response = error_client.get("/teapot")

    assert response.status_code == 418
    assert response.json() == {"message": "I'm a teapot"}


@pytest.mark.parametrize(
    "error, status",
    [
        (errors.ValidationFailed(), 400),
        (errors.InvalidCredentials(), 401),
        (errors.Unauthenticated(), 401),
        (errors.Forbidden(), 403),
        (errors.DuplicateEmail(), 400),
        (errors.ProductUnavailable(1), 400),
        (errors.InsufficientStock(1, "Cod", requested=2, available=1), 400),
        (errors.InvalidOrExpiredToken(), 400),
        (errors.CategoryInUse(), 400),
        (errors.NotFound("Order"), 404),
        (errors.OrderNumberExhausted(), 503),
        (errors.UpstreamServiceFailure("mail"), 502),
        (errors.InternalError(), 500),
    ],
)
def test_status_codes(error, status):
    assert error.status_code == status
    assert error.to_dict()["message"]
