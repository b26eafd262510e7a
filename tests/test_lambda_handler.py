"""Tests for AWS Lambda handler."""

import base64
import json

from lambda_handler import lambda_handler


class TestLambdaHandler:
    """Test the Lambda handler routes and responses."""

    def test_health_check(self):
        """GET /health returns healthy status."""
        event = {"httpMethod": "GET", "path": "/health"}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["status"] == "healthy"

    def test_api_info(self):
        event = {"httpMethod": "GET", "path": "/api"}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["status"] == "ok"
        assert "calculate_commission" in body["endpoints"]

    def test_cors_preflight(self):
        event = {"httpMethod": "OPTIONS", "path": "/calculate_commission"}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 200
        assert "Access-Control-Allow-Origin" in response["headers"]

    def test_not_found(self):
        event = {"httpMethod": "GET", "path": "/orders"}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 404

    def test_calculate_commission(self):
        payload = {"sale_price": 699, "msp": 600, "base_commission": 100}
        event = {"httpMethod": "POST", "path": "/calculate_commission", "body": json.dumps(payload)}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["total_commission"]["value"] == 149.5
        assert body["negotiation_bonus"]["value"] == 49.5
        assert body["is_below_msp"] == False

    def test_calculate_commission_below_msp(self):
        payload = {"sale_price": 550, "msp": 600}
        event = {"httpMethod": "POST", "path": "/calculate_commission", "body": json.dumps(payload)}
        body = json.loads(lambda_handler(event, None)["body"])

        assert body["total_commission"]["value"] == 0
        assert body["total_commission"]["description"] == "Below MSP - requires approval"

    def test_calculate_override(self):
        event = {"httpMethod": "POST", "path": "/calculate_override", "body": json.dumps({"sale_price": 1000})}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["override_commission"]["value"] == 20.0

    def test_base64_body(self):
        raw = json.dumps({"sale_price": 700, "msp": 600}).encode("utf-8")
        event = {
            "httpMethod": "POST",
            "path": "/calculate_commission",
            "body": base64.b64encode(raw).decode("ascii"),
            "isBase64Encoded": True,
        }
        body = json.loads(lambda_handler(event, None)["body"])

        assert body["total_commission"]["value"] == 150.0

    def test_empty_body(self):
        event = {"httpMethod": "POST", "path": "/calculate_commission", "body": ""}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 400
        assert "error" in json.loads(response["body"])

    def test_invalid_json(self):
        event = {"httpMethod": "POST", "path": "/calculate_commission", "body": "not valid json"}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 400

    def test_validation_error(self):
        payload = {"sale_price": 0, "msp": 600}
        event = {"httpMethod": "POST", "path": "/calculate_commission", "body": json.dumps(payload)}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 400
        body = json.loads(response["body"])
        assert body["status"] == "validation_failed"

    def test_http_api_format(self):
        """Supports HTTP API v2 event format."""
        event = {"requestContext": {"http": {"method": "GET"}}, "rawPath": "/health"}
        response = lambda_handler(event, None)

        assert response["statusCode"] == 200
