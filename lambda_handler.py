"""
AWS Lambda handler for the TapOnce commission calculator.

Serves the stateless part of the engine (commission and override math).
Order lifecycle and ledger endpoints need shared state and are served by
the Flask app in main.py.
"""

import base64
import json
import logging
import os

from taponce.calculators import CommissionCalculator
from taponce.config import Settings
from taponce.errors import TapOnceError
from taponce.models import to_decimal
from taponce.output import OutputBuilder

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Environment (dev, staging, prod)
ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")

# Initialize calculator (reused across warm invocations)
settings = Settings.from_env()
calculator = CommissionCalculator(settings)
output = OutputBuilder()

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
}


def _response(status_code, body):
    return {"statusCode": status_code, "headers": CORS_HEADERS, "body": json.dumps(body)}


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events for:
    - GET /health
    - GET /api
    - POST /calculate_commission
    - POST /calculate_override
    - OPTIONS (CORS preflight)
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    if path == "/health" and http_method == "GET":
        return _response(200, {"status": "healthy", "environment": ENVIRONMENT})
    elif path == "/api" and http_method == "GET":
        return handle_api_info()
    elif path == "/calculate_commission" and http_method == "POST":
        return handle_json_request(event, calculate_commission)
    elif path == "/calculate_override" and http_method == "POST":
        return handle_json_request(event, calculate_override)
    else:
        return _response(404, {"error": "Not found", "path": path})


def handle_api_info():
    """API information endpoint."""
    return _response(
        200,
        {
            "status": "ok",
            "message": "TapOnce Commission Calculator API",
            "version": "1.0",
            "environment": ENVIRONMENT,
            "runtime": "AWS Lambda",
            "endpoints": {
                "calculate_commission": "/calculate_commission [POST]",
                "calculate_override": "/calculate_override [POST]",
                "health": "/health [GET]",
            },
        },
    )


def calculate_commission(input_data):
    sale_price = to_decimal(input_data.get("sale_price"), "sale_price")
    msp = to_decimal(input_data.get("msp"), "msp")
    base = input_data.get("base_commission")
    base = to_decimal(base, "base_commission") if base is not None else None

    logger.info(f"Calculating commission: sale_price={sale_price}, msp={msp}")
    result = calculator.calculate(sale_price, msp, base)
    return output.commission(result, sale_price, msp)


def calculate_override(input_data):
    sale_price = to_decimal(input_data.get("sale_price"), "sale_price")
    rate = input_data.get("rate")
    rate = to_decimal(rate, "rate") if rate is not None else settings.override_rate

    logger.info(f"Calculating override: sale_price={sale_price}, rate={rate}")
    amount = calculator.calculate_override(sale_price, rate)
    return output.override(sale_price, amount, rate)


def handle_json_request(event, handler):
    """Parse the request body and run handler on it."""
    try:
        body = event.get("body", "")
        if isinstance(body, str):
            if not body:
                return _response(400, {"error": "No input data provided", "status": "failed"})
            # Handle base64 encoded body (API Gateway)
            if event.get("isBase64Encoded"):
                body = base64.b64decode(body).decode("utf-8")
            input_data = json.loads(body)
        else:
            input_data = body

        if not isinstance(input_data, dict):
            return _response(400, {"error": "Request body must be a JSON object", "status": "failed"})

        return _response(200, handler(input_data))

    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {str(e)}")
        return _response(400, {"error": f"Invalid JSON: {str(e)}", "status": "failed"})

    except TapOnceError as e:
        logger.error(f"Validation error: {str(e)}")
        return _response(400, {"error": f"Validation error: {str(e)}", "status": "validation_failed"})

    except Exception as e:
        # Unexpected errors - log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return _response(500, {"error": "An unexpected error occurred during processing", "status": "failed"})
